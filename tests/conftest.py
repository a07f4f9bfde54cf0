"""
Shared fakes: an in-memory EventSource and RecordStore.
"""
from __future__ import annotations

import pytest
from eth_utils import to_checksum_address

from pairfind.domain.errors import TransientSourceError
from pairfind.domain.models import PairCreatedEvent, PairRecord, ProgressState
from pairfind.domain.value_types import Address


def addr(i: int) -> Address:
    return Address(to_checksum_address("0x" + f"{i:040x}"))


def make_event(order: int, block: int) -> PairCreatedEvent:
    return PairCreatedEvent(
        emission_order=order,
        pair=addr(0x1000 + order),
        token0=addr(0x2000 + order),
        token1=addr(0x3000 + order),
        block_number=block,
        log_index=order,
    )


class FakeEventSource:
    """Events at fixed blocks; emission orders are assigned 1.. in block order."""

    def __init__(self, blocks: list[int], *, head: int | None = None, total: int | None = None,
                 fail_calls: set[int] | None = None) -> None:
        self.events = [make_event(i + 1, b) for i, b in enumerate(sorted(blocks))]
        self.head = head if head is not None else (max(blocks) if blocks else 0) + 5_000
        self.total = total
        self.fail_calls = fail_calls or set()
        self.calls = 0
        self.ranges: list[tuple[int, int]] = []

    def _tick(self) -> None:
        self.calls += 1
        if self.calls in self.fail_calls:
            raise TransientSourceError(f"injected failure on call {self.calls}")

    async def total_count(self) -> int:
        self._tick()
        return len(self.events) if self.total is None else self.total

    async def count_in_range(self, lo: int, hi: int) -> int:
        assert lo <= hi, (lo, hi)
        self._tick()
        self.ranges.append((lo, hi))
        return sum(1 for e in self.events if lo <= e.block_number <= hi)

    async def events_at_block(self, block: int) -> list[PairCreatedEvent]:
        self._tick()
        return [e for e in self.events if e.block_number == block]

    async def latest_block(self) -> int:
        self._tick()
        return self.head


class MemoryStore:
    """RecordStore keeping flushed rows in a list; pending rows vanish on close()."""

    def __init__(self, records: list[PairRecord] | None = None, genesis_block: int = 0) -> None:
        self.records = list(records or [])
        self.genesis_block = genesis_block
        self.pending: list[PairRecord] = []
        self.flushes = 0
        self.appends = 0

    def recover(self) -> ProgressState:
        if not self.records:
            return ProgressState(0, self.genesis_block)
        return ProgressState(len(self.records), self.records[-1].block + 1)

    def append(self, record: PairRecord) -> None:
        self.appends += 1
        self.pending.append(record)

    def flush(self) -> None:
        self.flushes += 1
        self.records.extend(self.pending)
        self.pending.clear()

    def close(self) -> None:
        self.pending.clear()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
