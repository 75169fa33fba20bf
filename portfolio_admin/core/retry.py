"""
Retry Policy Executor
=====================

Wraps a single asynchronous remote operation and retries it with exponential
backoff when, and only when, the server reports rate limiting.

Key Features:
-------------
- Outcome Objects: ``execute`` never raises a ``RemoteCallError``; it returns a
  ``RemoteCallResult`` carrying either the value or the last failure.
- Parameterised Policy: attempts, base delay and multiplier are supplied per
  call through an immutable ``RetryPolicy``.
- Injectable Sleeper: the delay is awaited through a coroutine function passed
  to the executor, so tests can observe delays without waiting.
- Stateless: no counters are shared between calls; concurrent executions are
  independent.

Author: Portfolio Admin Project
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from portfolio_admin.core import config
from portfolio_admin.core.errors import RateLimitError, RemoteCallError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# POLICY
# ============================================================================

@dataclass(frozen=True)
class RetryPolicy:
    """
    Immutable retry configuration.

    Attributes:
        max_attempts: Total attempts including the first one (>= 1).
        base_delay_ms: Delay before the first retry in milliseconds (>= 0).
        backoff_multiplier: Growth factor applied per retry (>= 1).
    """
    max_attempts: int = config.MAX_RETRIES
    base_delay_ms: float = config.RETRY_BASE_DELAY_MS
    backoff_multiplier: float = config.RETRY_BACKOFF_MULTIPLIER

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.backoff_multiplier < 1:
            raise ValueError(f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}")

    def delay_for(self, retry_index: int) -> float:
        """Delay in seconds before retry ``retry_index`` (0 for the first retry)."""
        return (self.base_delay_ms * (self.backoff_multiplier ** retry_index)) / 1000.0


DEFAULT_RETRY_POLICY = RetryPolicy()


# ============================================================================
# OUTCOME
# ============================================================================

@dataclass
class RemoteCallResult(Generic[T]):
    """
    Outcome of a remote operation: either ``value`` or ``error`` is meaningful.

    ``error`` is a ``RemoteCallError``, except for upload results of files
    rejected before sending, which carry the ``UploadValidationError``.
    """
    value: Optional[T] = None
    error: Optional[Exception] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T = None, attempts: int = 1) -> "RemoteCallResult[T]":
        return cls(value=value, attempts=attempts)

    @classmethod
    def failure(cls, error: Exception, attempts: int = 1) -> "RemoteCallResult[T]":
        return cls(error=error, attempts=attempts)

    def unwrap(self) -> T:
        """Return the value or raise the held error."""
        if self.error is not None:
            raise self.error
        return self.value


# ============================================================================
# EXECUTOR
# ============================================================================

class RetryExecutor:
    """
    Executes remote operations under a ``RetryPolicy``.

    Usage:
        ```python
        executor = RetryExecutor()
        result = await executor.execute(lambda: api.projects.list())
        if result.ok:
            projects = result.value
        ```
    """

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        label: str = "remote call",
    ) -> RemoteCallResult:
        """
        Run ``operation`` until it succeeds, fails with a non-retryable error,
        or runs out of attempts.

        Args:
            operation: Zero-argument callable returning an awaitable. The
                awaitable may produce a plain value or a ``RemoteCallResult``,
                or raise a ``RemoteCallError``.
            policy: Retry configuration for this call.
            label: Name used in log messages.

        Returns:
            RemoteCallResult with the value, or with the last failure.
        """
        last_failure: Optional[RemoteCallError] = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                outcome = await operation()
            except RemoteCallError as e:
                outcome = RemoteCallResult.failure(e)

            if not isinstance(outcome, RemoteCallResult):
                return RemoteCallResult.success(outcome, attempts=attempt)
            if outcome.ok:
                return RemoteCallResult.success(outcome.value, attempts=attempt)

            last_failure = outcome.error
            if not isinstance(last_failure, RateLimitError):
                logger.debug(f"[RETRY] {label} failed with {type(last_failure).__name__}; not retrying")
                return RemoteCallResult.failure(last_failure, attempts=attempt)

            if attempt == policy.max_attempts:
                break

            delay = policy.delay_for(attempt - 1)
            logger.warning(
                f"[RETRY] {label} rate limited (attempt {attempt}/{policy.max_attempts}), "
                f"retrying in {delay:.2f}s"
            )
            await self._sleep(delay)

        logger.error(f"[RETRY] {label} still rate limited after {policy.max_attempts} attempts")
        return RemoteCallResult.failure(last_failure, attempts=policy.max_attempts)
