from __future__ import annotations
import csv, io, logging, os
from typing import Iterator

from eth_utils import is_address

from ..domain.errors import CorruptStateError
from ..domain.models import PairRecord, ProgressState
from ..domain.value_types import Address
from ..ports.storage import RecordStore

logger = logging.getLogger(__name__)

FIELDS = ("id", "block", "address", "token0", "token1")


def _parse_row(row: list[str], path: str, line_no: int) -> PairRecord:
    if len(row) != len(FIELDS):
        raise CorruptStateError(
            f"{path}:{line_no}: expected {len(FIELDS)} fields, got {len(row)}", path, line_no
        )
    rid, blk, addr, t0, t1 = (c.strip() for c in row)
    try:
        rec_id, block = int(rid), int(blk)
    except ValueError:
        raise CorruptStateError(f"{path}:{line_no}: non-integer id/block {rid!r},{blk!r}", path, line_no) from None
    if rec_id < 0 or block < 0:
        raise CorruptStateError(f"{path}:{line_no}: negative id/block", path, line_no)
    for a in (addr, t0, t1):
        if not is_address(a):
            raise CorruptStateError(f"{path}:{line_no}: bad address {a!r}", path, line_no)
    return PairRecord(rec_id, block, Address(addr), Address(t0), Address(t1))


def read_records(path: str) -> Iterator[PairRecord]:
    """Yield every persisted record in append order, validating the sequence as it goes."""
    if not os.path.exists(path):
        return
    expected_id = 0
    last_block = -1
    with open(path, "r", newline="") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            row = next(csv.reader([line]))
            rec = _parse_row(row, path, line_no)
            if rec.id != expected_id:
                raise CorruptStateError(
                    f"{path}:{line_no}: id {rec.id} out of sequence (expected {expected_id})", path, line_no
                )
            if rec.block < last_block:
                raise CorruptStateError(
                    f"{path}:{line_no}: block {rec.block} precedes {last_block}", path, line_no
                )
            expected_id += 1
            last_block = rec.block
            yield rec


class CsvRecordStore(RecordStore):
    """
    Headerless CSV rows ``id,block,address,token0,token1``, opened in append mode.
    Appends are buffered in memory and only hit the file on flush(), so recovery
    never sees a half-processed window.
    """
    def __init__(self, path: str, genesis_block: int = 0, *, create: bool = True) -> None:
        self.path = path
        self.genesis_block = genesis_block
        if create:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            open(self.path, "a").close()
        self._pending: list[PairRecord] = []
        self._fh: io.TextIOWrapper | None = None

    def recover(self) -> ProgressState:
        count = 0
        last: PairRecord | None = None
        for rec in read_records(self.path):
            count += 1
            last = rec
        state = ProgressState(
            found_count=count,
            next_block=last.block + 1 if last is not None else self.genesis_block,
        )
        logger.debug("recovered %d records from %s, next block %d", count, self.path, state.next_block)
        return state

    def append(self, record: PairRecord) -> None:
        self._pending.append(record)

    def flush(self) -> None:
        if not self._pending:
            return
        if self._fh is None:
            self._fh = open(self.path, "a", newline="")
        w = csv.writer(self._fh, lineterminator="\n")
        w.writerows(r.as_row() for r in self._pending)
        self._fh.flush(); os.fsync(self._fh.fileno())
        self._pending.clear()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def close(self) -> None:
        if self._pending:
            logger.debug("dropping %d unflushed records", len(self._pending))
            self._pending.clear()
        if self._fh is not None:
            self._fh.close()
            self._fh = None
