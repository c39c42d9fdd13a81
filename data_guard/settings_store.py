"""Settings file read by each alert run."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from .models.settings import BYTES_PER_GB, CHANNEL_EMAIL, AlertSettings
from .utils import write_json_atomic

logger = logging.getLogger(__name__)


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _limit_bytes(data: dict[str, Any]) -> int | None:
    raw = data.get("data_limit_bytes")
    if raw is not None:
        try:
            return max(0, int(raw))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid data_limit_bytes: %r", raw)
            return None
    raw_gb = data.get("data_limit_gb")
    if raw_gb is None:
        return None
    try:
        return max(0, int(float(raw_gb) * BYTES_PER_GB))
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid data_limit_gb: %r", raw_gb)
        return None


def settings_from_dict(data: dict[str, Any]) -> AlertSettings:
    return AlertSettings(
        data_limit_bytes=_limit_bytes(data),
        recipient_address=_opt_str(data.get("recipient_address")),
        sender_address=_opt_str(data.get("sender_address")),
        sender_credential=_opt_str(data.get("sender_credential")),
        channel=(_opt_str(data.get("channel")) or CHANNEL_EMAIL).lower(),
    )


def settings_to_dict(settings: AlertSettings) -> dict[str, Any]:
    return {
        "data_limit_bytes": settings.data_limit_bytes,
        "recipient_address": settings.recipient_address,
        "sender_address": settings.sender_address,
        "sender_credential": settings.sender_credential,
        "channel": settings.channel,
    }


class JsonSettingsStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> AlertSettings | None:
        """Return the current settings snapshot, or None if unset or unreadable."""
        try:
            if not self.path.exists():
                return None
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception:
            logger.exception("Failed to load settings from %s", self.path)
            return None
        if not isinstance(data, dict):
            logger.error("Settings file %s does not hold an object", self.path)
            return None
        return settings_from_dict(data)

    def save(self, settings: AlertSettings) -> None:
        write_json_atomic(self.path, settings_to_dict(settings))
        logger.info("Saved settings to %s", self.path)

    def update(self, **changes: Any) -> AlertSettings:
        """Merge ``changes`` (None values ignored) into the stored settings."""
        current = self.read() or AlertSettings()
        updated = replace(
            current, **{k: v for k, v in changes.items() if v is not None}
        )
        self.save(updated)
        return updated
