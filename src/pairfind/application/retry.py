from __future__ import annotations
import asyncio, logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..domain.errors import FatalError, RetriesExhaustedError
from ..domain.models import ExtractionReport, ShellState
from .use_cases import ExtractionDriver

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    max_attempts: int | None = None      # total runs allowed; None: retry forever
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * (self.multiplier ** (attempt - 1)))


class RetryShell:
    """
    Runs the driver until it completes.

    running -> done on success; running -> failed on a FatalError or when the
    attempt ceiling is hit; otherwise running -> retrying(attempt, delay) -> running.
    A failed run that still flushed new records resets the failure count.
    """
    def __init__(
        self,
        driver: ExtractionDriver,
        policy: RetryPolicy = RetryPolicy(),
        *,
        on_state: Callable[[ShellState], None] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.driver = driver
        self.policy = policy
        self.on_state = on_state
        self._sleep = sleep
        self.state = ShellState("running")

    def _set(self, state: ShellState) -> None:
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    async def run(self) -> ExtractionReport:
        failures = 0
        while True:
            self._set(ShellState("running", failures))
            try:
                report = await self.driver.run()
            except FatalError as e:
                logger.error("fatal: %s", e)
                self._set(ShellState("failed", failures, error=str(e)))
                raise
            except Exception as e:
                if self.driver.made_progress:
                    failures = 0
                failures += 1
                if self.policy.max_attempts is not None and failures >= self.policy.max_attempts:
                    logger.error("giving up after %d attempts: %s", failures, e)
                    self._set(ShellState("failed", failures, error=str(e)))
                    raise RetriesExhaustedError(failures, e) from e
                delay = self.policy.delay_for(failures)
                logger.warning("run failed (%s: %s); retry %d in %.1fs", type(e).__name__, e, failures, delay)
                self._set(ShellState("retrying", failures, delay, str(e)))
                await self._sleep(delay)
                continue
            self._set(ShellState("done", failures))
            logger.info("all %d pairs extracted", report.found_count)
            return report
