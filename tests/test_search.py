"""Tests for the leftmost-true search and the creation-block locator."""

from __future__ import annotations

import itertools
import math

import pytest

from conftest import FakeEventSource
from pairfind.application.search import IntervalCounter, find_leftmost_true, locate_creation_block


def _threshold(t: int):
    calls: list[int] = []

    async def pred(x: int) -> bool:
        calls.append(x)
        return x >= t

    return pred, calls


class TestFindLeftmostTrue:
    """Generic search over synthetic monotone predicates."""

    @pytest.mark.asyncio
    async def test_every_threshold_in_small_ranges(self) -> None:
        for lo in range(0, 6):
            for hi in range(lo, 12):
                for t in range(lo, hi + 1):
                    pred, _ = _threshold(t)
                    assert await find_leftmost_true(lo, hi, pred) == t, (lo, hi, t)

    @pytest.mark.asyncio
    async def test_true_below_lo_returns_lo(self) -> None:
        pred, _ = _threshold(-100)
        assert await find_leftmost_true(10, 20, pred) == 10

    @pytest.mark.asyncio
    async def test_single_point_range_does_not_probe(self) -> None:
        pred, calls = _threshold(7)
        assert await find_leftmost_true(7, 7, pred) == 7
        assert calls == []

    @pytest.mark.asyncio
    async def test_two_point_range_probes_once(self) -> None:
        for t in (7, 8):
            pred, calls = _threshold(t)
            assert await find_leftmost_true(7, 8, pred) == t
            assert calls == [7]

    @pytest.mark.asyncio
    async def test_boundary_probe_used_for_final_step(self) -> None:
        pred, calls = _threshold(5)
        seen: list[int] = []

        async def boundary(x: int) -> bool:
            seen.append(x)
            return x >= 5

        assert await find_leftmost_true(0, 9, pred, boundary=boundary) == 5
        assert seen == [4]
        assert calls == [4, 6, 5]

    @pytest.mark.asyncio
    async def test_logarithmic_probe_count(self) -> None:
        pred, calls = _threshold(123_456)
        assert await find_leftmost_true(0, 1_000_000, pred) == 123_456
        assert len(calls) <= math.ceil(math.log2(1_000_000)) + 1

    @pytest.mark.asyncio
    async def test_empty_range_rejected(self) -> None:
        pred, _ = _threshold(0)
        with pytest.raises(ValueError):
            await find_leftmost_true(5, 4, pred)


class TestIntervalCounter:
    @pytest.mark.asyncio
    async def test_monotone_in_hi(self) -> None:
        counter = IntervalCounter(FakeEventSource([3, 3, 8, 15, 40]))
        for lo in range(0, 45, 3):
            prev = 0
            for hi in range(lo, 50):
                n = await counter.count_in_range(lo, hi)
                assert n >= prev
                prev = n

    @pytest.mark.asyncio
    async def test_single_block_and_tally(self) -> None:
        counter = IntervalCounter(FakeEventSource([3, 3, 8]))
        assert await counter.count_in_range(3, 3) == 2
        assert await counter.count_in_range(4, 4) == 0
        assert counter.queries == 2

    @pytest.mark.asyncio
    async def test_inverted_range_rejected(self) -> None:
        counter = IntervalCounter(FakeEventSource([1]))
        with pytest.raises(ValueError):
            await counter.count_in_range(2, 1)


class TestLocateCreationBlock:
    @pytest.mark.asyncio
    async def test_exhaustive_small_layouts(self) -> None:
        """Every event layout over 7 blocks, every range holding at least one event."""
        blocks = range(7)
        for mask in range(1, 1 << len(blocks)):
            layout = [b for b in blocks if mask & (1 << b)]
            counter = IntervalCounter(FakeEventSource(layout))
            for lo, hi in itertools.combinations_with_replacement(blocks, 2):
                inside = [b for b in layout if lo <= b <= hi]
                if not inside:
                    continue
                got = await locate_creation_block(counter, lo, hi)
                assert got == min(inside), (layout, lo, hi, got)
                assert await counter.count_in_range(lo, got) > 0
                assert got == lo or await counter.count_in_range(lo, got - 1) == 0

    @pytest.mark.asyncio
    async def test_single_block_window_returns_lo_without_queries(self) -> None:
        counter = IntervalCounter(FakeEventSource([500]))
        assert await locate_creation_block(counter, 500, 500) == 500
        assert counter.queries == 0

    @pytest.mark.asyncio
    async def test_event_at_window_edges(self) -> None:
        counter = IntervalCounter(FakeEventSource([1000]))
        assert await locate_creation_block(counter, 0, 1000) == 1000
        counter = IntervalCounter(FakeEventSource([0, 999]))
        assert await locate_creation_block(counter, 0, 1000) == 0

    @pytest.mark.asyncio
    async def test_query_budget_for_default_window(self) -> None:
        counter = IntervalCounter(FakeEventSource([617]))
        assert await locate_creation_block(counter, 0, 1000) == 617
        assert counter.queries <= math.ceil(math.log2(1001)) + 1
