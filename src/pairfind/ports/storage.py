# pairfind/ports/storage.py
from __future__ import annotations

from typing import Protocol
from ..domain.models import PairRecord, ProgressState


class RecordStore(Protocol):
    """Port for the durable, append-only record sequence (the checkpoint)."""

    def recover(self) -> ProgressState:
        """Read every flushed record and derive (found_count, next_block)."""

    def append(self, record: PairRecord) -> None:
        """Buffer one record at the tail; not durable until flush()."""

    def flush(self) -> None:
        """Make every buffered record durable."""

    def close(self) -> None:
        """Release the backing file; unflushed records are dropped."""
