"""Usage window and counter dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class NetworkClass(str, Enum):
    MOBILE = "mobile"
    WIFI = "wifi"


ALL_NETWORK_CLASSES: frozenset[NetworkClass] = frozenset(NetworkClass)


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"window start {self.start} is after end {self.end}")

    @property
    def is_empty(self) -> bool:
        return self.start == self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end


@dataclass(frozen=True)
class UsageWindows:
    daily: TimeWindow
    weekly: TimeWindow
    monthly: TimeWindow


@dataclass(frozen=True)
class UsageSample:
    received_bytes: int = 0
    transmitted_bytes: int = 0

    @property
    def total_bytes(self) -> int:
        return max(0, self.received_bytes) + max(0, self.transmitted_bytes)
