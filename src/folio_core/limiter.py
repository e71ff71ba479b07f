"""Admission gate bounding concurrent translation work."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from typing import cast


class ConcurrencyLimiter:
    """Fixed-size FIFO admission gate.

    At most ``max_concurrent`` units hold a slot at once; waiting units are
    admitted in arrival order. There is no retry, backoff or priority.
    """

    def __init__(self, max_concurrent: int) -> None:
        """Initialize the limiter.

        Args:
            max_concurrent: Maximum number of units in flight.

        Raises:
            ValueError: If max_concurrent is not positive.
        """
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")
        self._max_concurrent = max_concurrent
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._in_flight = 0
        self._peak_in_flight = 0

    @property
    def max_concurrent(self) -> int:
        """Return the configured slot count."""
        return self._max_concurrent

    @property
    def in_flight(self) -> int:
        """Return the number of units currently holding a slot."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Return the highest number of units ever in flight at once."""
        return self._peak_in_flight

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold a slot for the duration of the context."""
        async with self._semaphore:
            self._in_flight += 1
            self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
            try:
                yield
            finally:
                self._in_flight -= 1

    async def run[ResultT](
        self, operation: Callable[[], Awaitable[ResultT]]
    ) -> ResultT:
        """Run an operation once a slot is free.

        Args:
            operation: Zero-argument coroutine factory.

        Returns:
            ResultT: The operation result.
        """
        async with self.slot():
            return await operation()


async def gather_fail_fast[ResultT](
    operations: Sequence[Callable[[], Awaitable[ResultT]]],
) -> list[ResultT]:
    """Run operations concurrently with results aligned to input order.

    The first failure cancels the remaining operations and is re-raised
    without its exception group wrapper.

    Args:
        operations: Zero-argument coroutine factories.

    Returns:
        list[ResultT]: Results in input order.
    """
    if not operations:
        return []
    results: list[ResultT | None] = [None] * len(operations)

    async def _run(index: int, operation: Callable[[], Awaitable[ResultT]]) -> None:
        results[index] = await operation()

    try:
        async with asyncio.TaskGroup() as group:
            for index, operation in enumerate(operations):
                group.create_task(_run(index, operation))
    except ExceptionGroup as error_group:
        raise first_error(error_group) from error_group

    return [cast(ResultT, result) for result in results]


def first_error(error: BaseException) -> BaseException:
    """Return the first leaf exception of a (possibly nested) exception group.

    Returns:
        BaseException: The first non-group exception.
    """
    while isinstance(error, BaseExceptionGroup):
        error = error.exceptions[0]
    return error
