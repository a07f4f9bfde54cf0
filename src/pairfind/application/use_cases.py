from __future__ import annotations
import asyncio, logging
from typing import Callable

from ..domain.errors import SourceInconsistencyError
from ..domain.models import ExtractionReport, ProgressState
from ..ports.source import EventSource
from ..ports.storage import RecordStore
from .search import IntervalCounter, locate_creation_block

logger = logging.getLogger(__name__)

DEFAULT_STEP = 1_000

FlushCallback = Callable[[ProgressState, int], None]


class ExtractionDriver:
    """
    One resumable pass over the factory's history.

    Every run() starts from store.recover(); nothing is carried in memory between
    runs, so a failed run can simply be started again.
    """
    def __init__(
        self,
        source: EventSource,
        store: RecordStore,
        *,
        step: int = DEFAULT_STEP,
        on_flush: FlushCallback | None = None,
    ) -> None:
        if step < 0:
            raise ValueError("step must be >= 0")
        self.source = source
        self.store = store
        self.step = step
        self.on_flush = on_flush
        self.recovered: ProgressState | None = None
        self.flushed: ProgressState | None = None   # last durable checkpoint of the current run

    @property
    def made_progress(self) -> bool:
        """True when the latest run flushed records beyond what it recovered."""
        if self.recovered is None or self.flushed is None:
            return False
        return self.flushed.found_count > self.recovered.found_count

    async def run(self) -> ExtractionReport:
        progress = self.store.recover()
        self.recovered = self.flushed = progress
        found, next_block = progress.found_count, progress.next_block
        counter = IntervalCounter(self.source)
        appended = scanned = flushed = 0

        try:
            target = await self.source.total_count()
            head = await self.source.latest_block()
            logger.info("resuming at block %d with %d/%d pairs (head %d)", next_block, found, target, head)
            if found > target:
                raise SourceInconsistencyError(
                    f"store holds {found} records but the source reports only {target}",
                    {"found": found, "target": target},
                )

            while found < target:
                if next_block > head:
                    raise SourceInconsistencyError(
                        f"reached head {head} with {found}/{target} pairs",
                        {"found": found, "target": target, "head": head},
                    )
                window_end = min(next_block + self.step, head)
                n = await counter.count_in_range(next_block, window_end)
                scanned += 1
                if n == 0:
                    next_block = window_end + 1
                    continue

                remaining = n
                while remaining > 0:
                    block = await locate_creation_block(counter, next_block, window_end)
                    events = await self.source.events_at_block(block)
                    if not events or len(events) > remaining:
                        raise SourceInconsistencyError(
                            f"block {block} returned {len(events)} events, {remaining} expected in "
                            f"[{next_block}, {window_end}]",
                            {"block": block, "remaining": remaining},
                        )
                    for ev in events:
                        rec = ev.to_record()
                        if rec.id != found:
                            raise SourceInconsistencyError(
                                f"pair #{rec.id} at block {block} does not follow #{found - 1}",
                                {"block": block, "id": rec.id, "expected": found},
                            )
                        self.store.append(rec)
                        found += 1
                        appended += 1
                    remaining -= len(events)
                    next_block = block + 1

                await asyncio.to_thread(self.store.flush)
                self.flushed = ProgressState(found, next_block)
                flushed += 1
                logger.info("flushed %d/%d pairs, next block %d", found, target, next_block)
                if self.on_flush is not None:
                    self.on_flush(self.flushed, target)
        finally:
            self.store.close()

        return ExtractionReport(
            found_count=found,
            target_count=target,
            next_block=next_block,
            appended=appended,
            windows_scanned=scanned,
            windows_flushed=flushed,
            range_queries=counter.queries,
        )
