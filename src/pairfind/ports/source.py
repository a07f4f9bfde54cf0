# pairfind/ports/source.py
from __future__ import annotations

from typing import Protocol
from ..domain.models import PairCreatedEvent


class EventSource(Protocol):
    """Port for the pair-factory event feed (JSON-RPC node, replay cache, test fake)."""

    async def total_count(self) -> int:
        """Return how many matching events the contract has ever emitted."""

    async def count_in_range(self, lo: int, hi: int) -> int:
        """Return the number of matching events with block in [lo, hi] inclusive."""

    async def events_at_block(self, block: int) -> list[PairCreatedEvent]:
        """Return every matching event at exactly `block`, in emission order."""

    async def latest_block(self) -> int:
        """Return the chain head as an integer."""
