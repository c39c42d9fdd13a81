"""One invocation of the data limit alert check.

Sequence: read settings, read dedupe state, compute windows, aggregate monthly
usage, decide, dispatch, persist. Precondition: runs never overlap. The
scheduler awaits each run before starting the next, so the dedupe state
read-decide-write needs no lock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol

from . import alerting
from .models.alerts import DedupeState, RunOutcome, RunReport
from .models.settings import AlertSettings
from .models.usage import ALL_NETWORK_CLASSES, NetworkClass
from .notify import Dispatcher, dispatcher_for
from .state import StateStoreError
from .usage import UsageAggregator
from .utils import device_label
from .windows import compute_windows, period_key_for

logger = logging.getLogger(__name__)


class SettingsReader(Protocol):
    def read(self) -> AlertSettings | None: ...


class StateStore(Protocol):
    def read(self) -> DedupeState: ...

    def write(self, state: DedupeState) -> None: ...


class AlertRun:
    """Check monthly usage against the limit and alert at most once per month.

    A failed dispatch still marks the period as alerted. The next chance to
    alert is the next month, so a broken mail setup cannot turn every run into
    another send attempt.
    """

    def __init__(
        self,
        settings_store: SettingsReader,
        state_store: StateStore,
        aggregator: UsageAggregator,
        dispatcher_factory: Callable[[str], Dispatcher] = dispatcher_for,
        clock: Callable[[], datetime] = datetime.now,
        week_start: int = 0,
        device: str | None = None,
    ) -> None:
        self.settings_store = settings_store
        self.state_store = state_store
        self.aggregator = aggregator
        self.dispatcher_factory = dispatcher_factory
        self.clock = clock
        self.week_start = week_start
        self.device = device or device_label()

    async def run_once(self) -> RunReport:
        try:
            report = await self._run()
        except asyncio.CancelledError:
            raise
        except StateStoreError as exc:
            logger.error("Alert run failed: %s", exc)
            return RunReport(outcome=RunOutcome.FAILED, error=str(exc))
        except Exception as exc:
            logger.exception("Alert run failed")
            return RunReport(outcome=RunOutcome.FAILED, error=str(exc))
        logger.info("Alert run finished: %s", report.outcome.value)
        return report

    async def _run(self) -> RunReport:
        settings = await asyncio.to_thread(self.settings_store.read)
        if settings is None:
            logger.info("No settings configured; skipping alert check")
            return RunReport(outcome=RunOutcome.NOT_ELIGIBLE)
        missing = settings.missing_fields()
        if missing:
            logger.info("Settings incomplete (%s); skipping", ", ".join(missing))
            return RunReport(outcome=RunOutcome.NOT_ELIGIBLE)

        state = await asyncio.to_thread(self.state_store.read)

        now = self.clock()
        windows = compute_windows(now, self.week_start)
        monthly = await asyncio.to_thread(
            self.aggregator.total_bytes, windows.monthly, ALL_NETWORK_CLASSES
        )
        period = period_key_for(now)

        decision = alerting.decide(
            monthly, settings.limit_bytes, period, state.last_alerted_period
        )
        logger.info(
            "Period %s usage %d of limit %d bytes (last alerted: %s) -> %s",
            period,
            decision.monthly_usage_bytes,
            decision.limit_bytes,
            state.last_alerted_period or "never",
            "alert" if decision.should_alert else "skip",
        )
        if not decision.should_alert:
            return RunReport(outcome=RunOutcome.SKIPPED, decision=decision)

        dispatcher = self.dispatcher_factory(settings.channel)
        try:
            message = dispatcher.format_message(decision, self.device)
            dispatched = await dispatcher.send(
                settings.sender_address or "",
                settings.sender_credential or "",
                settings.recipient_address or "",
                message,
            )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Dispatcher raised while sending alert for %s", period)
            dispatched = False
        if not dispatched:
            logger.warning(
                "Alert for %s was not delivered; not retrying this period", period
            )

        await asyncio.to_thread(
            self.state_store.write, DedupeState(last_alerted_period=period)
        )
        return RunReport(
            outcome=RunOutcome.ALERTED, decision=decision, dispatched=dispatched
        )


@dataclass(frozen=True)
class UsageSummary:
    now: datetime
    daily: dict[NetworkClass, int]
    weekly: dict[NetworkClass, int]
    monthly: dict[NetworkClass, int]
    limit_bytes: int

    @staticmethod
    def _total(values: dict[NetworkClass, int]) -> int:
        return sum(values.values())

    @property
    def daily_total(self) -> int:
        return self._total(self.daily)

    @property
    def weekly_total(self) -> int:
        return self._total(self.weekly)

    @property
    def monthly_total(self) -> int:
        return self._total(self.monthly)

    @property
    def limit_fraction(self) -> float | None:
        if self.limit_bytes <= 0:
            return None
        return self.monthly_total / self.limit_bytes


def usage_summary(
    now: datetime,
    aggregator: UsageAggregator,
    week_start: int = 0,
    limit_bytes: int = 0,
) -> UsageSummary:
    """Daily, weekly and monthly usage per network class, all ending at ``now``."""
    windows = compute_windows(now, week_start)

    def _per_class(window) -> dict[NetworkClass, int]:
        return {c: aggregator.class_bytes(c, window) for c in NetworkClass}

    return UsageSummary(
        now=now,
        daily=_per_class(windows.daily),
        weekly=_per_class(windows.weekly),
        monthly=_per_class(windows.monthly),
        limit_bytes=max(0, limit_bytes),
    )
