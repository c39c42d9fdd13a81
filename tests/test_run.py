import asyncio
from dataclasses import replace
from datetime import datetime

import pytest
from conftest import (
    GB,
    DummyDispatcher,
    DummySettingsStore,
    FakeClock,
    FakeUsageSource,
    MemoryStateStore,
    unavailable,
)

from data_guard.models.alerts import DedupeState, PeriodKey, RunOutcome
from data_guard.models.usage import NetworkClass
from data_guard.run import AlertRun, usage_summary
from data_guard.usage import UsageAggregator


def make_run(settings, state=None, usage=None, now=None, dispatcher=None):
    source = FakeUsageSource(usage or {})
    dispatcher = dispatcher or DummyDispatcher()
    clock = FakeClock(now or datetime(2024, 3, 15, 12, 0))
    state_store = MemoryStateStore(state)
    run = AlertRun(
        settings_store=DummySettingsStore(settings),
        state_store=state_store,
        aggregator=UsageAggregator(source),
        dispatcher_factory=lambda channel: dispatcher,
        clock=clock,
        device="test-device",
    )
    return run, source, dispatcher, clock, state_store


@pytest.mark.asyncio
async def test_end_to_end_monthly_scenario(complete_settings) -> None:
    run, source, dispatcher, clock, state_store = make_run(
        complete_settings, usage={NetworkClass.WIFI: 6_000_000_000}
    )

    report = await run.run_once()
    assert report.outcome is RunOutcome.ALERTED
    assert report.decision.should_alert
    assert len(dispatcher.sent) == 1
    assert dispatcher.sent[0][:3] == ("S@example.com", "C", "R@example.com")
    assert "test-device" in dispatcher.sent[0][3]
    assert state_store.state == DedupeState(last_alerted_period=PeriodKey(2024, 3))

    source.values[NetworkClass.WIFI] = 7_000_000_000
    report = await run.run_once()
    assert report.outcome is RunOutcome.SKIPPED
    assert not report.decision.should_alert
    assert len(dispatcher.sent) == 1

    clock.now = datetime(2024, 4, 1, 0, 5)
    source.values[NetworkClass.WIFI] = 100_000_000
    report = await run.run_once()
    assert report.outcome is RunOutcome.SKIPPED
    assert len(dispatcher.sent) == 1
    assert state_store.state.last_alerted_period == PeriodKey(2024, 3)

    clock.now = datetime(2024, 4, 20, 9, 0)
    source.values[NetworkClass.WIFI] = 6_000_000_000
    report = await run.run_once()
    assert report.outcome is RunOutcome.ALERTED
    assert len(dispatcher.sent) == 2
    assert state_store.state.last_alerted_period == PeriodKey(2024, 4)


@pytest.mark.asyncio
async def test_many_runs_same_period_dispatch_once(complete_settings) -> None:
    run, source, dispatcher, clock, _ = make_run(
        complete_settings, usage={NetworkClass.MOBILE: 6 * GB}
    )
    for day in range(1, 29):
        clock.now = datetime(2024, 2, day, 18, 0)
        source.values[NetworkClass.MOBILE] = (6 + day) * GB
        await run.run_once()
    assert len(dispatcher.sent) == 1


@pytest.mark.asyncio
async def test_monthly_window_is_queried(complete_settings) -> None:
    run, source, _, _, _ = make_run(complete_settings, usage={NetworkClass.WIFI: 1})
    await run.run_once()
    windows = {w for _, w in source.queries}
    assert len(windows) == 1
    window = windows.pop()
    assert window.start == datetime(2024, 3, 1)
    assert window.end == datetime(2024, 3, 15, 12, 0)


@pytest.mark.asyncio
async def test_month_start_midnight_reads_zero(complete_settings) -> None:
    run, source, dispatcher, _, _ = make_run(
        complete_settings,
        usage={NetworkClass.WIFI: 100 * GB},
        now=datetime(2024, 4, 1),
    )
    report = await run.run_once()
    assert report.outcome is RunOutcome.SKIPPED
    assert report.decision.monthly_usage_bytes == 0
    assert source.queries == []
    assert dispatcher.sent == []


@pytest.mark.asyncio
async def test_missing_settings_not_eligible() -> None:
    run, source, dispatcher, _, state_store = make_run(None)
    report = await run.run_once()
    assert report.outcome is RunOutcome.NOT_ELIGIBLE
    assert source.queries == []
    assert dispatcher.sent == []
    assert state_store.writes == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field", ["recipient_address", "sender_address", "sender_credential"]
)
async def test_incomplete_settings_not_eligible(complete_settings, field) -> None:
    settings = replace(complete_settings, **{field: "   "})
    run, _, dispatcher, _, state_store = make_run(
        settings, usage={NetworkClass.WIFI: 100 * GB}
    )
    report = await run.run_once()
    assert report.outcome is RunOutcome.NOT_ELIGIBLE
    assert dispatcher.sent == []
    assert state_store.writes == []


@pytest.mark.asyncio
async def test_zero_limit_never_alerts(complete_settings) -> None:
    settings = replace(complete_settings, data_limit_bytes=0)
    run, _, dispatcher, _, _ = make_run(settings, usage={NetworkClass.WIFI: 100 * GB})
    report = await run.run_once()
    assert report.outcome is RunOutcome.SKIPPED
    assert dispatcher.sent == []


@pytest.mark.asyncio
async def test_failed_dispatch_still_marks_period(complete_settings) -> None:
    dispatcher = DummyDispatcher(ok=False)
    run, _, _, _, state_store = make_run(
        complete_settings, usage={NetworkClass.WIFI: 6 * GB}, dispatcher=dispatcher
    )
    report = await run.run_once()
    assert report.outcome is RunOutcome.ALERTED
    assert report.dispatched is False
    assert state_store.state.last_alerted_period == PeriodKey(2024, 3)

    await run.run_once()
    assert len(dispatcher.sent) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        UnicodeEncodeError("ascii", "pässwort", 1, 2, "ordinal not in range(128)"),
        ValueError("Header values may not contain linefeed or carriage return"),
        RuntimeError("unexpected"),
    ],
)
async def test_raising_dispatcher_still_marks_period(complete_settings, error) -> None:
    class RaisingDispatcher(DummyDispatcher):
        async def send(self, *args) -> bool:
            self.sent.append(args)
            raise error

    dispatcher = RaisingDispatcher()
    run, _, _, _, state_store = make_run(
        complete_settings, usage={NetworkClass.WIFI: 6 * GB}, dispatcher=dispatcher
    )
    report = await run.run_once()
    assert report.outcome is RunOutcome.ALERTED
    assert report.dispatched is False
    assert state_store.writes == [DedupeState(last_alerted_period=PeriodKey(2024, 3))]

    for _ in range(3):
        report = await run.run_once()
        assert report.outcome is RunOutcome.SKIPPED
    assert len(dispatcher.sent) == 1


@pytest.mark.asyncio
async def test_state_write_failure_fails_run_and_allows_realert(complete_settings) -> None:
    run, _, dispatcher, _, state_store = make_run(
        complete_settings, usage={NetworkClass.WIFI: 6 * GB}
    )
    state_store.fail_writes = True
    report = await run.run_once()
    assert report.outcome is RunOutcome.FAILED
    assert "disk full" in report.error

    state_store.fail_writes = False
    report = await run.run_once()
    assert report.outcome is RunOutcome.ALERTED
    assert len(dispatcher.sent) == 2


@pytest.mark.asyncio
async def test_partial_source_failure_still_alerts(complete_settings) -> None:
    run, _, dispatcher, _, _ = make_run(
        complete_settings,
        usage={
            NetworkClass.MOBILE: unavailable(NetworkClass.MOBILE),
            NetworkClass.WIFI: 6 * GB,
        },
    )
    report = await run.run_once()
    assert report.outcome is RunOutcome.ALERTED
    assert len(dispatcher.sent) == 1


@pytest.mark.asyncio
async def test_unexpected_error_is_contained(complete_settings) -> None:
    class BrokenStore:
        def read(self):
            raise RuntimeError("db gone")

        def write(self, state):
            raise AssertionError("should not be written")

    run, _, dispatcher, _, _ = make_run(complete_settings, usage={NetworkClass.WIFI: 6 * GB})
    run.state_store = BrokenStore()
    report = await run.run_once()
    assert report.outcome is RunOutcome.FAILED
    assert dispatcher.sent == []


@pytest.mark.asyncio
async def test_cancelled_dispatch_leaves_state_untouched(complete_settings) -> None:
    started = asyncio.Event()

    class SlowDispatcher(DummyDispatcher):
        async def send(self, *args) -> bool:
            started.set()
            await asyncio.sleep(3600)
            return True

    run, _, _, _, state_store = make_run(
        complete_settings,
        usage={NetworkClass.WIFI: 6 * GB},
        dispatcher=SlowDispatcher(),
    )
    task = asyncio.create_task(run.run_once())
    await asyncio.wait_for(started.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert state_store.writes == []


def test_usage_summary_per_class_and_fraction():
    source = FakeUsageSource({NetworkClass.MOBILE: 1 * GB, NetworkClass.WIFI: 3 * GB})
    summary = usage_summary(
        datetime(2024, 3, 15, 12, 0), UsageAggregator(source), limit_bytes=8 * GB
    )
    assert summary.daily_total == 4 * GB
    assert summary.monthly[NetworkClass.MOBILE] == 1 * GB
    assert summary.limit_fraction == pytest.approx(0.5)
    assert {w.end for _, w in source.queries} == {datetime(2024, 3, 15, 12, 0)}


def test_usage_summary_without_limit():
    summary = usage_summary(datetime(2024, 3, 15), UsageAggregator(FakeUsageSource()))
    assert summary.limit_fraction is None
    assert summary.monthly_total == 0
