"""Durable single-slot store for the last alerted period."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from .models.alerts import DedupeState, PeriodKey
from .utils import write_json_atomic

logger = logging.getLogger(__name__)


class StateStoreError(Exception):
    """The dedupe state could not be persisted."""


class DedupeStateStore:
    """JSON file holding ``{"last_alerted_period": "YYYY-MM"}``.

    Callers must not run two read-decide-write cycles concurrently; the
    scheduler guarantees runs do not overlap.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> DedupeState:
        """Load the persisted state; missing or corrupt files read as empty."""
        try:
            if not self.path.exists():
                return DedupeState()
            data = json.loads(self.path.read_text(encoding="utf-8"))
            raw = data.get("last_alerted_period") if isinstance(data, dict) else None
            if not raw:
                return DedupeState()
            return DedupeState(last_alerted_period=PeriodKey.parse(str(raw)))
        except Exception:
            logger.exception("Failed to load alert state from %s", self.path)
            return DedupeState()

    def write(self, state: DedupeState) -> None:
        period = state.last_alerted_period
        data = {"last_alerted_period": str(period) if period else None}
        try:
            write_json_atomic(self.path, data)
        except OSError as exc:
            raise StateStoreError(
                f"failed to write alert state to {self.path}: {exc}"
            ) from exc
        logger.debug("Saved alert state to %s: %s", self.path, data)
