"""Bounded-concurrency runner for batches of independent async jobs."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Tuple, TypeVar

from .models import BatchOutcome

logger = logging.getLogger("ig_links")

T = TypeVar("T")
R = TypeVar("R")


async def _call(fn: Callable[[T], Awaitable[R]], item: T) -> R:
    return await fn(item)


def _settle(task: "asyncio.Task[R]", index: int, item: T) -> BatchOutcome[T, R]:
    if task.cancelled():
        return BatchOutcome(index, item, error=asyncio.CancelledError())
    error = task.exception()
    if error is None:
        return BatchOutcome(index, item, result=task.result())
    if not isinstance(error, Exception):
        raise error
    logger.debug("Item %d (%s) failed: %s", index, item, error)
    return BatchOutcome(index, item, error=error)


async def iter_outcomes(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> AsyncIterator[BatchOutcome[T, R]]:
    """Run ``fn`` over ``items`` and yield outcomes in completion order.

    At most ``concurrency`` calls are in flight. A new item is started as soon
    as any running call settles, and failures are reported as outcomes rather
    than raised, so one bad item never stops its siblings.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    queue = iter(enumerate(items))
    pending: Dict["asyncio.Task[R]", Tuple[int, T]] = {}

    def admit() -> None:
        while len(pending) < concurrency:
            try:
                index, item = next(queue)
            except StopIteration:
                return
            pending[asyncio.ensure_future(_call(fn, item))] = (index, item)

    try:
        admit()
        while pending:
            done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            settled = []
            for task in done:
                index, item = pending.pop(task)
                settled.append(_settle(task, index, item))
            admit()
            for outcome in settled:
                yield outcome
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


async def run_batch(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> List[BatchOutcome[T, R]]:
    """Run the whole batch and return one outcome per item, in input order."""
    outcomes = [outcome async for outcome in iter_outcomes(items, fn, concurrency)]
    outcomes.sort(key=lambda outcome: outcome.index)
    return outcomes
