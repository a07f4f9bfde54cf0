from __future__ import annotations
from dataclasses import dataclass
from .value_types import Address, ShellPhase, Topic0

@dataclass(slots=True, frozen=True)
class EventLog:
    address: Address
    topics: tuple[Topic0, ...]   # lowercased with 0x
    data_hex: str
    block_number: int
    tx_hash: str
    log_index: int

@dataclass(slots=True, frozen=True)
class PairRecord:
    id: int              # zero-based emission rank
    block: int
    address: Address
    token0: Address
    token1: Address

    def as_row(self) -> tuple[int, int, str, str, str]:
        return (self.id, self.block, self.address, self.token0, self.token1)

@dataclass(slots=True, frozen=True)
class PairCreatedEvent:
    emission_order: int  # allPairs.length right after creation, 1-based
    pair: Address
    token0: Address
    token1: Address
    block_number: int
    log_index: int = 0

    def to_record(self) -> PairRecord:
        return PairRecord(
            id=self.emission_order - 1,
            block=self.block_number,
            address=self.pair,
            token0=self.token0,
            token1=self.token1,
        )

@dataclass(slots=True, frozen=True)
class ProgressState:
    found_count: int
    next_block: int

@dataclass(slots=True)
class ExtractionReport:
    found_count: int
    target_count: int
    next_block: int
    appended: int = 0
    windows_scanned: int = 0
    windows_flushed: int = 0
    range_queries: int = 0

@dataclass(slots=True, frozen=True)
class ShellState:
    phase: ShellPhase
    attempt: int = 0
    delay: float = 0.0
    error: str | None = None
