"""Alert settings snapshot."""

from __future__ import annotations

from dataclasses import dataclass

BYTES_PER_GB = 1024 * 1024 * 1024

CHANNEL_EMAIL = "email"
CHANNEL_TELEGRAM = "telegram"
CHANNELS = frozenset({CHANNEL_EMAIL, CHANNEL_TELEGRAM})


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass(frozen=True)
class AlertSettings:
    """Single-row alert configuration, read once per run."""

    data_limit_bytes: int | None = None
    recipient_address: str | None = None
    sender_address: str | None = None
    sender_credential: str | None = None
    channel: str = CHANNEL_EMAIL

    @property
    def limit_bytes(self) -> int:
        return max(0, int(self.data_limit_bytes or 0))

    def missing_fields(self) -> list[str]:
        missing = [
            name
            for name in ("recipient_address", "sender_address", "sender_credential")
            if not _present(getattr(self, name))
        ]
        if self.channel not in CHANNELS:
            missing.append("channel")
        return missing

    def is_complete(self) -> bool:
        return not self.missing_fields()
