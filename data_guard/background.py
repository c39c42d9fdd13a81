"""Background loops: counter sampling and the periodic alert check."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from .ledger import CounterLedger
from .run import AlertRun

logger = logging.getLogger(__name__)

_TASK_SAMPLER = "sampler"
_TASK_CHECKER = "checker"


@dataclass
class Supervisor:
    """Owns the background tasks started by ``serve``."""

    ledger: CounterLedger
    alert_run: AlertRun
    sample_interval_s: float
    check_interval_s: float
    tasks: dict[str, asyncio.Task] = field(default_factory=dict)

    def ensure_started(self) -> None:
        for name, factory in (
            (_TASK_SAMPLER, self._sampler_loop),
            (_TASK_CHECKER, self._checker_loop),
        ):
            task = self.tasks.get(name)
            if isinstance(task, asyncio.Task) and not task.done():
                continue
            self.tasks[name] = asyncio.create_task(factory(), name=name)

    async def stop(self) -> None:
        tasks = [t for t in self.tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self.tasks.clear()

    async def wait(self) -> None:
        await asyncio.gather(*self.tasks.values())

    async def _sampler_loop(self) -> None:
        logger.info("Starting sampler loop (interval=%ss)", self.sample_interval_s)
        while True:
            try:
                start = time.monotonic()
                await asyncio.to_thread(self.ledger.sample)
                elapsed = time.monotonic() - start
                await asyncio.sleep(max(0.0, self.sample_interval_s - elapsed))
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Sampler loop error")
                await asyncio.sleep(self.sample_interval_s)

    async def _checker_loop(self) -> None:
        logger.info("Starting alert check loop (interval=%ss)", self.check_interval_s)
        while True:
            try:
                start = time.monotonic()
                await self.alert_run.run_once()
                elapsed = time.monotonic() - start
                await asyncio.sleep(max(0.0, self.check_interval_s - elapsed))
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Alert check loop error")
                await asyncio.sleep(self.check_interval_s)
