from __future__ import annotations
import os, pyarrow as pa, pyarrow.parquet as pq
from typing import Iterable

from ..domain.models import PairRecord
from .csv_store import read_records

PAIRS_SCHEMA = pa.schema([
    pa.field("id",      pa.uint64()),
    pa.field("block",   pa.int64()),
    pa.field("address", pa.string()),
    pa.field("token0",  pa.string()),
    pa.field("token1",  pa.string()),
])

def records_to_table(records: Iterable[PairRecord]) -> pa.Table:
    recs = list(records)
    return pa.Table.from_arrays(
        arrays=[
            pa.array([r.id for r in recs], PAIRS_SCHEMA.field("id").type),
            pa.array([r.block for r in recs], PAIRS_SCHEMA.field("block").type),
            pa.array([r.address for r in recs], pa.string()),
            pa.array([r.token0 for r in recs], pa.string()),
            pa.array([r.token1 for r in recs], pa.string()),
        ],
        schema=PAIRS_SCHEMA,
    )

def export_parquet(csv_path: str, out_path: str, codec: str = "zstd") -> int:
    """Write every flushed record of `csv_path` to `out_path`; returns the row count."""
    table = records_to_table(read_records(csv_path))
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    tmp = out_path + ".tmp"
    pq.write_table(table, tmp, compression=None if codec == "none" else codec)
    os.replace(tmp, out_path)
    return table.num_rows
