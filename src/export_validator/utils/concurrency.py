"""Bounded fan-out of blocking work (stat calls, file decoding) onto worker threads."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class WorkerPool:
    """At most ``limit`` awaitables run at once; results come back in submission order."""

    limit: int

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise ValueError(f"worker limit must be > 0, got {self.limit}")

    async def gather(self, jobs: Iterable[Awaitable[R]]) -> list[R]:
        gate = asyncio.Semaphore(self.limit)

        async def guarded(job: Awaitable[R]) -> R:
            async with gate:
                return await job

        return list(await asyncio.gather(*(guarded(job) for job in jobs)))


def map_ordered(
    func: Callable[[T], R],
    items: Sequence[T],
    *,
    max_concurrency: int = 8,
) -> list[R]:
    """``[func(item) for item in items]``, computed on up to ``max_concurrency`` threads.

    The first exception raised by ``func`` propagates. With one item or one
    worker everything runs inline on the calling thread.
    """

    if not items:
        return []
    if max_concurrency <= 1 or len(items) == 1:
        return [func(item) for item in items]

    pool = WorkerPool(min(max_concurrency, len(items)))

    async def fan_out() -> list[R]:
        return await pool.gather(asyncio.to_thread(func, item) for item in items)

    return asyncio.run(fan_out())


__all__ = ["WorkerPool", "map_ordered"]
