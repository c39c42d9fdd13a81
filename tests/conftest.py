"""Shared test fixtures and dummy collaborators."""

from __future__ import annotations

from datetime import datetime

import pytest

from data_guard.models.alerts import AlertDecision, DedupeState
from data_guard.models.settings import AlertSettings
from data_guard.models.usage import NetworkClass, TimeWindow, UsageSample
from data_guard.state import StateStoreError
from data_guard.usage import UsageUnavailable

GB = 1024 * 1024 * 1024


class DummySettingsStore:
    """Settings store returning a fixed snapshot."""

    def __init__(self, settings: AlertSettings | None) -> None:
        self.settings = settings
        self.reads = 0

    def read(self) -> AlertSettings | None:
        self.reads += 1
        return self.settings


class MemoryStateStore:
    """In-memory dedupe state store; can be told to fail writes."""

    def __init__(self, state: DedupeState | None = None) -> None:
        self.state = state or DedupeState()
        self.writes: list[DedupeState] = []
        self.fail_writes = False

    def read(self) -> DedupeState:
        return self.state

    def write(self, state: DedupeState) -> None:
        if self.fail_writes:
            raise StateStoreError("disk full")
        self.writes.append(state)
        self.state = state


class FakeUsageSource:
    """Usage source returning configured totals per network class.

    A value that is an exception instance is raised instead of returned.
    """

    def __init__(self, values: dict[NetworkClass, object] | None = None) -> None:
        self.values: dict[NetworkClass, object] = values or {}
        self.queries: list[tuple[NetworkClass, TimeWindow]] = []

    def query(self, network_class: NetworkClass, window: TimeWindow) -> UsageSample | None:
        self.queries.append((network_class, window))
        value = self.values.get(network_class)
        if isinstance(value, BaseException):
            raise value
        if value is None:
            return None
        return UsageSample(received_bytes=int(value), transmitted_bytes=0)


class DummyDispatcher:
    """Dispatcher recording sends instead of delivering them."""

    def __init__(self, ok: bool = True) -> None:
        self.ok = ok
        self.sent: list[tuple[str, str, str, str]] = []

    def format_message(self, decision: AlertDecision, device: str) -> str:
        return f"{device} over limit in {decision.period_key}"

    async def send(
        self,
        sender_address: str,
        sender_credential: str,
        recipient_address: str,
        message: str,
    ) -> bool:
        self.sent.append((sender_address, sender_credential, recipient_address, message))
        return self.ok


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def unavailable(network_class: NetworkClass) -> UsageUnavailable:
    return UsageUnavailable(network_class, "permission denied")


@pytest.fixture
def complete_settings() -> AlertSettings:
    return AlertSettings(
        data_limit_bytes=5 * GB,
        recipient_address="R@example.com",
        sender_address="S@example.com",
        sender_credential="C",
    )
