"""Entrypoint for running data_guard.

This module wires the stores, usage ledger and alert run together and exposes
the ``serve``, ``run-once``, ``sample``, ``status`` and ``configure`` commands.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from . import config
from .background import Supervisor
from .ledger import CounterLedger, InterfaceClassifier
from .logger import setup_logging
from .models.alerts import RunOutcome
from .models.settings import BYTES_PER_GB, CHANNELS
from .run import AlertRun, usage_summary
from .settings_store import JsonSettingsStore
from .state import DedupeStateStore
from .usage import UsageAggregator
from .utils import device_label, fmt_bytes

logger = logging.getLogger(__name__)


def build_ledger(cfg: config.Config) -> CounterLedger:
    classifier = InterfaceClassifier(
        mobile=list(cfg.MOBILE_INTERFACES), wifi=list(cfg.WIFI_INTERFACES)
    )
    return CounterLedger(
        cfg.LEDGER_FILE, classifier, retention_days=cfg.LEDGER_RETENTION_DAYS
    )


def build_alert_run(cfg: config.Config, ledger: CounterLedger) -> AlertRun:
    return AlertRun(
        settings_store=JsonSettingsStore(cfg.SETTINGS_FILE),
        state_store=DedupeStateStore(cfg.STATE_FILE),
        aggregator=UsageAggregator(ledger),
        week_start=cfg.WEEK_START,
        device=device_label(cfg.DEVICE_NAME),
    )


async def serve(cfg: config.Config) -> None:
    ledger = build_ledger(cfg)
    supervisor = Supervisor(
        ledger=ledger,
        alert_run=build_alert_run(cfg, ledger),
        sample_interval_s=cfg.SAMPLE_INTERVAL_S,
        check_interval_s=cfg.CHECK_INTERVAL_S,
    )
    supervisor.ensure_started()
    try:
        await supervisor.wait()
    finally:
        await supervisor.stop()


async def run_once(cfg: config.Config) -> int:
    ledger = build_ledger(cfg)
    await asyncio.to_thread(ledger.sample)
    report = await build_alert_run(cfg, ledger).run_once()
    return 1 if report.outcome is RunOutcome.FAILED else 0


def print_status(cfg: config.Config) -> None:
    ledger = build_ledger(cfg)
    ledger.sample()
    settings = JsonSettingsStore(cfg.SETTINGS_FILE).read()
    limit = settings.limit_bytes if settings else 0
    summary = usage_summary(
        datetime.now(), UsageAggregator(ledger), cfg.WEEK_START, limit
    )
    print(f"Device:  {device_label(cfg.DEVICE_NAME)}")
    for label, values, total in (
        ("Today", summary.daily, summary.daily_total),
        ("Week", summary.weekly, summary.weekly_total),
        ("Month", summary.monthly, summary.monthly_total),
    ):
        parts = " | ".join(f"{c.value} {fmt_bytes(v)}" for c, v in values.items())
        print(f"{label + ':':<8} {fmt_bytes(total)} ({parts})")
    if summary.limit_fraction is None:
        print("Limit:   not set")
    else:
        print(f"Limit:   {fmt_bytes(limit)} ({summary.limit_fraction * 100:.0f}% used)")


def configure(cfg: config.Config, args: argparse.Namespace) -> None:
    limit_bytes = None
    if args.limit_gb is not None:
        limit_bytes = max(0, int(args.limit_gb * BYTES_PER_GB))
    updated = JsonSettingsStore(cfg.SETTINGS_FILE).update(
        data_limit_bytes=limit_bytes,
        recipient_address=args.recipient,
        sender_address=args.sender,
        sender_credential=args.credential,
        channel=args.channel,
    )
    missing = updated.missing_fields()
    if missing:
        print(f"Saved. Alerts stay off until set: {', '.join(missing)}")
    else:
        print("Saved.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="data-guard", description="Monthly data usage limit alerts."
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log at DEBUG level"
    )
    parser.add_argument("--log-file", help="also log to this file, rotated daily")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="sample counters and check the limit periodically")
    sub.add_parser("run-once", help="sample counters and run one alert check")
    sub.add_parser("sample", help="record one interface counter sample")
    sub.add_parser("status", help="show daily, weekly and monthly usage")
    conf = sub.add_parser("configure", help="update alert settings")
    conf.add_argument("--limit-gb", type=float)
    conf.add_argument("--recipient")
    conf.add_argument("--sender")
    conf.add_argument("--credential")
    conf.add_argument("--channel", choices=sorted(CHANNELS))
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None, args.log_file)
    cfg = config.settings
    command = args.command or "serve"

    if command == "serve":
        logger.info("Starting data_guard")
        try:
            asyncio.run(serve(cfg))
        except KeyboardInterrupt:
            logger.info("Stopped")
        return 0
    if command == "run-once":
        return asyncio.run(run_once(cfg))
    if command == "sample":
        build_ledger(cfg).sample()
        return 0
    if command == "status":
        print_status(cfg)
        return 0
    if command == "configure":
        configure(cfg, args)
        return 0
    return 2


if __name__ == "__main__":
    sys.exit(main())
