import asyncio
import unittest

from portfolio_admin.core.errors import NotFoundError, RateLimitError, ServerError
from portfolio_admin.core.retry import (
    DEFAULT_RETRY_POLICY,
    RemoteCallResult,
    RetryExecutor,
    RetryPolicy,
)


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class TestRetryPolicy(unittest.TestCase):
    def test_default_delays(self):
        self.assertEqual(DEFAULT_RETRY_POLICY.max_attempts, 3)
        self.assertAlmostEqual(DEFAULT_RETRY_POLICY.delay_for(0), 0.5)
        self.assertAlmostEqual(DEFAULT_RETRY_POLICY.delay_for(1), 1.0)

    def test_invalid_policies_rejected(self):
        with self.assertRaises(ValueError):
            RetryPolicy(max_attempts=0)
        with self.assertRaises(ValueError):
            RetryPolicy(base_delay_ms=-1)
        with self.assertRaises(ValueError):
            RetryPolicy(backoff_multiplier=0.5)


class TestRetryExecutor(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.sleep = RecordingSleep()
        self.executor = RetryExecutor(sleep=self.sleep)

    async def test_success_on_first_attempt(self):
        async def operation():
            return {"_id": "1"}

        result = await self.executor.execute(operation)
        self.assertTrue(result.ok)
        self.assertEqual(result.value, {"_id": "1"})
        self.assertEqual(result.attempts, 1)
        self.assertEqual(self.sleep.delays, [])

    async def test_rate_limited_until_exhausted(self):
        calls = []

        async def operation():
            calls.append(1)
            raise RateLimitError("429", status_code=429)

        result = await self.executor.execute(operation)

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, RateLimitError)
        self.assertEqual(result.attempts, 3)
        self.assertEqual(len(calls), 3)
        self.assertEqual(self.sleep.delays, [0.5, 1.0])

    async def test_rate_limited_then_success(self):
        outcomes = [RateLimitError("429"), {"ok": True}]

        async def operation():
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        result = await self.executor.execute(operation)
        self.assertTrue(result.ok)
        self.assertEqual(result.attempts, 2)
        self.assertEqual(self.sleep.delays, [0.5])

    async def test_other_errors_are_not_retried(self):
        for error in (ServerError("500", status_code=500), NotFoundError("404", status_code=404)):
            calls = []

            async def operation():
                calls.append(1)
                raise error

            result = await self.executor.execute(operation)
            self.assertFalse(result.ok)
            self.assertIs(result.error, error)
            self.assertEqual(result.attempts, 1)
            self.assertEqual(len(calls), 1)
        self.assertEqual(self.sleep.delays, [])

    async def test_returned_failure_outcome_is_retried(self):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                return RemoteCallResult.failure(RateLimitError("429"))
            return RemoteCallResult.success("done")

        result = await self.executor.execute(operation)
        self.assertEqual(result.value, "done")
        self.assertEqual(result.attempts, 2)

    async def test_custom_policy(self):
        policy = RetryPolicy(max_attempts=4, base_delay_ms=100, backoff_multiplier=3)

        async def operation():
            raise RateLimitError("429")

        result = await self.executor.execute(operation, policy)
        self.assertEqual(result.attempts, 4)
        for actual, expected in zip(self.sleep.delays, [0.1, 0.3, 0.9]):
            self.assertAlmostEqual(actual, expected)

    async def test_concurrent_executions_are_independent(self):
        counters = {"a": 0, "b": 0}

        def make_operation(name, failures):
            async def operation():
                counters[name] += 1
                await asyncio.sleep(0)
                if counters[name] <= failures:
                    raise RateLimitError("429")
                return name
            return operation

        first, second = await asyncio.gather(
            self.executor.execute(make_operation("a", 2)),
            self.executor.execute(make_operation("b", 0)),
        )
        self.assertEqual((first.value, first.attempts), ("a", 3))
        self.assertEqual((second.value, second.attempts), ("b", 1))

    def test_unwrap_raises_held_error(self):
        error = ServerError("boom")
        with self.assertRaises(ServerError):
            RemoteCallResult.failure(error).unwrap()
        self.assertEqual(RemoteCallResult.success(5).unwrap(), 5)


if __name__ == '__main__':
    unittest.main()
