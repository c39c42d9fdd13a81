"""Central configuration for data_guard."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def _split_patterns(s: str, default: str) -> List[str]:
    """Parse comma-separated string into a list of interface name patterns.

    Example:
        >>> _split_patterns("wlan*, eth0", "")
        ['wlan*', 'eth0']
    """
    return [p.strip() for p in (s or default).split(",") if p.strip()]


def parse_week_start(raw: str | None, default: int = 0) -> int:
    """Return the weekday index (Monday=0) for a day name or ISO number 1-7.

    Unknown values fall back to ``default``.
    """
    text = (raw or "").strip().lower()
    if not text:
        return default
    if text.isdigit():
        number = int(text)
        return number - 1 if 1 <= number <= 7 else default
    for name, index in _WEEKDAYS.items():
        if len(text) >= 3 and name.startswith(text):
            return index
    return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, "") or default)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass
class Config:
    """Configuration for data_guard.

    All values are loaded from environment variables with sensible defaults.
    """

    DATA_DIR: Path
    SETTINGS_FILE: Path
    STATE_FILE: Path
    LEDGER_FILE: Path
    CHECK_INTERVAL_S: float
    SAMPLE_INTERVAL_S: float
    WEEK_START: int
    MOBILE_INTERFACES: List[str]
    WIFI_INTERFACES: List[str]
    SMTP_HOST: str
    SMTP_PORT: int
    SMTP_TIMEOUT_S: float
    DEVICE_NAME: str | None
    LEDGER_RETENTION_DAYS: int


def _read_config() -> Config:
    """Read all configuration from environment variables.

    Note:
        Invalid numeric values fall back to the defaults.
    """
    data_dir = Path(
        os.environ.get("DATA_GUARD_DATA_DIR") or "~/.local/share/data_guard"
    ).expanduser()

    def _file(name: str, default: str) -> Path:
        raw = os.environ.get(name)
        return Path(raw).expanduser() if raw else data_dir / default

    return Config(
        DATA_DIR=data_dir,
        SETTINGS_FILE=_file("DATA_GUARD_SETTINGS_FILE", "settings.json"),
        STATE_FILE=_file("DATA_GUARD_STATE_FILE", "alert_state.json"),
        LEDGER_FILE=_file("DATA_GUARD_LEDGER_FILE", "usage_ledger.json"),
        CHECK_INTERVAL_S=_float_env("CHECK_INTERVAL_S", 6 * 60 * 60),
        SAMPLE_INTERVAL_S=_float_env("SAMPLE_INTERVAL_S", 5 * 60),
        WEEK_START=parse_week_start(os.environ.get("WEEK_START")),
        MOBILE_INTERFACES=_split_patterns(
            os.environ.get("MOBILE_INTERFACES", ""), "wwan*,rmnet*,ppp*,usb*,wwp*"
        ),
        WIFI_INTERFACES=_split_patterns(
            os.environ.get("WIFI_INTERFACES", ""), "wlan*,wlp*,wl*,eth*,en*"
        ),
        SMTP_HOST=os.environ.get("SMTP_HOST") or "smtp.gmail.com",
        SMTP_PORT=_int_env("SMTP_PORT", 465),
        SMTP_TIMEOUT_S=_float_env("SMTP_TIMEOUT_S", 20.0),
        DEVICE_NAME=os.environ.get("DEVICE_NAME") or None,
        LEDGER_RETENTION_DAYS=_int_env("LEDGER_RETENTION_DAYS", 62),
    )


settings = _read_config()


def validate_config() -> None:
    """Log warnings for configuration values that will not work well."""
    if settings.CHECK_INTERVAL_S <= 0:
        logger.warning("CHECK_INTERVAL_S must be positive; using 6h")
        settings.CHECK_INTERVAL_S = 6 * 60 * 60
    if settings.SAMPLE_INTERVAL_S <= 0:
        logger.warning("SAMPLE_INTERVAL_S must be positive; using 5m")
        settings.SAMPLE_INTERVAL_S = 5 * 60
    if settings.SAMPLE_INTERVAL_S > 60 * 60:
        logger.warning(
            "SAMPLE_INTERVAL_S is over an hour; counter resets between samples "
            "will under-count usage."
        )
    if not settings.MOBILE_INTERFACES and not settings.WIFI_INTERFACES:
        logger.warning("No interface patterns configured; usage will always be 0.")


validate_config()
