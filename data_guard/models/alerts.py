"""Alert period, dedupe state and run result dataclasses."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True, order=True)
class PeriodKey:
    """Calendar month used as the alert deduplication granularity."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month out of range: {self.month}")

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @classmethod
    def parse(cls, raw: str) -> PeriodKey:
        match = _PERIOD_RE.match((raw or "").strip())
        if not match:
            raise ValueError(f"invalid period key: {raw!r}")
        return cls(year=int(match.group(1)), month=int(match.group(2)))


@dataclass(frozen=True)
class DedupeState:
    last_alerted_period: PeriodKey | None = None


@dataclass(frozen=True)
class AlertDecision:
    should_alert: bool
    period_key: PeriodKey
    monthly_usage_bytes: int
    limit_bytes: int


class RunOutcome(str, Enum):
    NOT_ELIGIBLE = "not_eligible"
    SKIPPED = "skipped"
    ALERTED = "alerted"
    FAILED = "failed"


@dataclass
class RunReport:
    outcome: RunOutcome
    decision: AlertDecision | None = None
    dispatched: bool | None = None
    error: str | None = None
