"""
Block search over range-count queries.

The only question ever asked of the node is "how many PairCreated events are in
[lo, hi]?". ``count(lo, x) > 0`` is monotone in ``x``, so the first block of an
unseen event is the leftmost x where that predicate flips to true.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable

from ..ports.source import EventSource

logger = logging.getLogger(__name__)

Predicate = Callable[[int], Awaitable[bool]]


async def find_leftmost_true(lo: int, hi: int, predicate: Predicate, *, boundary: Predicate | None = None) -> int:
    """Smallest x in [lo, hi] with ``predicate(x)``, assuming ``predicate(hi)`` holds.

    ``predicate`` must be false below the answer and true from it onwards; ``lo``
    itself may be either. Once the bounds are adjacent, ``boundary(lo)`` (default
    ``predicate``) decides between ``lo`` and ``hi``. Ranges of one or two points
    never enter the halving loop.
    """
    if lo > hi:
        raise ValueError(f"empty search range [{lo}, {hi}]")
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if await predicate(mid):
            hi = mid
        else:
            lo = mid
    if lo == hi:
        return lo
    return lo if await (boundary or predicate)(lo) else hi


class IntervalCounter:
    """Issues inclusive range-count queries and keeps a tally for reporting."""

    def __init__(self, source: EventSource) -> None:
        self.source = source
        self.queries = 0

    async def count_in_range(self, lo: int, hi: int) -> int:
        if lo > hi:
            raise ValueError(f"empty range [{lo}, {hi}]")
        self.queries += 1
        return await self.source.count_in_range(lo, hi)


async def locate_creation_block(counter: IntervalCounter, lo: int, hi: int) -> int:
    """First block in [lo, hi] holding a matching event.

    Caller guarantees ``count_in_range(lo, hi) > 0``; on a range without events
    the result is meaningless.
    """
    origin = lo

    async def any_up_to(x: int) -> bool:
        return await counter.count_in_range(origin, x) > 0

    # lo only ever moves onto blocks where [origin, lo] is empty, so the final
    # check reduces to the single block lo
    async def any_at(x: int) -> bool:
        return await counter.count_in_range(x, x) > 0

    block = await find_leftmost_true(lo, hi, any_up_to, boundary=any_at)
    logger.debug("located creation block %d in [%d, %d]", block, origin, hi)
    return block
