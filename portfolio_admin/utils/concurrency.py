"""
Daemon Worker Pool
==================

Executor used to run blocking HTTP calls (``requests``) off the asyncio event
loop. Worker threads are daemons so a hung request never keeps the process
alive at exit.
"""

import asyncio
import functools
import logging
import queue
import threading
from concurrent.futures import Executor, Future

from portfolio_admin.core.config import MAX_NETWORK_WORKERS

logger = logging.getLogger(__name__)


class DaemonThreadPoolExecutor(Executor):
    """
    A ThreadPoolExecutor-like class that guarantees worker threads are daemons.

    It implements the subset of the concurrent.futures.Executor interface the
    admin console needs: ``submit``, ``map``, context management, and
    ``run`` for awaiting a blocking call from a coroutine.
    """
    def __init__(self, max_workers=None, thread_name_prefix='NetworkWorker'):
        if max_workers is None:
            max_workers = MAX_NETWORK_WORKERS
        if max_workers < 1:
            raise ValueError("max_workers must be greater than 0")

        self._max_workers = max_workers
        self._thread_name_prefix = thread_name_prefix
        self._work_queue = queue.Queue()
        self._threads = []
        self._idle = 0
        self._shutdown = False
        self._lock = threading.Lock()

    def submit(self, fn, *args, **kwargs):
        """Schedule ``fn(*args, **kwargs)`` and return a Future for its result."""
        with self._lock:
            if self._shutdown:
                raise RuntimeError('cannot schedule new futures after shutdown')

            f = Future()
            self._work_queue.put((fn, args, kwargs, f))
            self._adjust_thread_count()
        return f

    def _adjust_thread_count(self):
        # Caller holds self._lock
        if self._work_queue.qsize() <= self._idle:
            return
        if len(self._threads) < self._max_workers:
            t = threading.Thread(
                target=self._worker_loop,
                daemon=True,
                name=f"{self._thread_name_prefix}-{len(self._threads)}"
            )
            t.start()
            self._threads.append(t)

    def _worker_loop(self):
        while True:
            with self._lock:
                self._idle += 1
            item = self._work_queue.get()
            with self._lock:
                self._idle -= 1

            if item is None:
                # Sentinel
                self._work_queue.task_done()
                break

            fn, args, kwargs, future = item
            if not future.set_running_or_notify_cancel():
                self._work_queue.task_done()
                continue

            try:
                future.set_result(fn(*args, **kwargs))
            except BaseException as e:
                future.set_exception(e)
            finally:
                self._work_queue.task_done()

    def shutdown(self, wait=True, *, cancel_futures=False):
        with self._lock:
            self._shutdown = True
            threads = list(self._threads)

        if cancel_futures:
            while True:
                try:
                    item = self._work_queue.get_nowait()
                except queue.Empty:
                    break
                if item is not None:
                    item[3].cancel()
                self._work_queue.task_done()

        # Send sentinel to all threads
        for _ in threads:
            self._work_queue.put(None)

        if wait:
            for t in threads:
                t.join()

    def map(self, fn, *iterables, timeout=None, chunksize=1):
        """
        Returns an iterator equivalent to map(fn, *iterables).

        All calls are submitted up front; results are yielded in input order.
        """
        if timeout is not None:
            raise NotImplementedError("timeout not supported in DaemonThreadPoolExecutor.map")

        futures = [self.submit(fn, *args) for args in zip(*iterables)]
        for f in futures:
            yield f.result()

    async def run(self, fn, *args, **kwargs):
        """Await a blocking call on one of the pool's worker threads."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self, functools.partial(fn, *args, **kwargs))

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False
