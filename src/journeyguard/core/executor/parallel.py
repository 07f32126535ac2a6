"""Bounded-concurrency execution with cooperative fail-fast."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Skipped(Generic[T]):
    """Placeholder for an item never started because a stop was requested."""

    item: T


async def execute_parallel(
    items: Sequence[T],
    fn: Callable[[T], Awaitable[R]],
    max_concurrency: int = 1,
    should_stop: Callable[[], bool] | None = None,
) -> list[R | Skipped[T]]:
    """Run ``fn`` over ``items`` with at most ``max_concurrency`` in flight.

    Results come back in input order. Workers poll ``should_stop`` before
    taking the next item; in-flight work always completes, and every item not
    yet started is returned as :class:`Skipped`.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be >= 1")
    if not items:
        return []

    results: list[R | Skipped[T] | None] = [None] * len(items)
    queue: asyncio.Queue[int] = asyncio.Queue()
    for index in range(len(items)):
        queue.put_nowait(index)

    async def worker() -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            if should_stop is not None and should_stop():
                results[index] = Skipped(items[index])
                continue
            results[index] = await fn(items[index])

    workers = min(max_concurrency, len(items))
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results  # type: ignore[return-value]
