"""
Blocking Executor
Runs database queries and password hashing off the event loop
"""

import asyncio
import contextvars
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BlockingExecutor:
    """
    Bounded thread pool for blocking work awaited from async code.

    The caller's contextvars (structlog context, correlation id) are copied
    into the worker thread so log lines keep their request correlation.
    """

    def __init__(self, max_workers: int):
        self.max_workers = max_workers
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="blocking")

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run ``func(*args, **kwargs)`` on the pool and await its result.

        Exceptions raised by ``func`` propagate to the awaiting coroutine.
        """
        loop = asyncio.get_running_loop()
        context = contextvars.copy_context()
        call = functools.partial(context.run, func, *args, **kwargs)
        return await loop.run_in_executor(self._pool, call)

    def shutdown(self, wait: bool = True) -> None:
        logger.info("blocking_executor_shutdown", wait=wait)
        self._pool.shutdown(wait=wait)
