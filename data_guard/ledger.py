"""Interface counter ledger backed by psutil.

psutil only reports cumulative counters since boot, so the ledger samples them
periodically and books the deltas into hourly buckets per network class. The
ledger then answers window queries for the usage aggregator.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Iterable

import psutil

from .models.usage import NetworkClass, TimeWindow, UsageSample
from .usage import UsageUnavailable
from .utils import write_json_atomic

logger = logging.getLogger(__name__)

_BUCKET_FMT = "%Y-%m-%dT%H:00"
_LOOPBACK = ("lo", "lo*", "Loopback*")


def _local_naive(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant
    return instant.astimezone().replace(tzinfo=None)


def _bucket_start(instant: datetime) -> datetime:
    return _local_naive(instant).replace(minute=0, second=0, microsecond=0)


def _matches(name: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatchcase(name, p) for p in patterns)


@dataclass
class InterfaceClassifier:
    """Map host NIC names onto network classes using fnmatch patterns."""

    mobile: list[str] = field(default_factory=list)
    wifi: list[str] = field(default_factory=list)

    def classify(self, nic: str) -> NetworkClass | None:
        if _matches(nic, _LOOPBACK):
            return None
        if _matches(nic, self.mobile):
            return NetworkClass.MOBILE
        if _matches(nic, self.wifi):
            return NetworkClass.WIFI
        return None


@dataclass
class _Counter:
    rx: int
    tx: int


class CounterLedger:
    """Usage source that books psutil counter deltas into hourly buckets."""

    def __init__(
        self,
        path: Path,
        classifier: InterfaceClassifier,
        retention_days: int = 62,
    ) -> None:
        self.path = Path(path)
        self.classifier = classifier
        self.retention_days = max(1, int(retention_days))
        self._lock = Lock()
        self._counters: dict[str, _Counter] = {}
        self._buckets: dict[str, dict[str, list[int]]] = {
            c.value: {} for c in NetworkClass
        }
        self._load_error: str | None = None
        self._load()

    def _load(self) -> None:
        try:
            if not self.path.exists():
                return
            data = json.loads(self.path.read_text(encoding="utf-8"))
            for nic, raw in (data.get("counters") or {}).items():
                self._counters[str(nic)] = _Counter(
                    rx=int(raw.get("rx", 0)), tx=int(raw.get("tx", 0))
                )
            for cls in NetworkClass:
                buckets = (data.get("buckets") or {}).get(cls.value) or {}
                self._buckets[cls.value] = {
                    str(k): [int(v[0]), int(v[1])] for k, v in buckets.items()
                }
            logger.info("Loaded usage ledger from %s", self.path)
        except Exception as exc:
            logger.exception("Failed to load usage ledger from %s", self.path)
            self._load_error = f"ledger unreadable: {exc}"

    def _save(self) -> None:
        data = {
            "counters": {
                nic: {"rx": c.rx, "tx": c.tx} for nic, c in self._counters.items()
            },
            "buckets": self._buckets,
            "updated_at": time.time(),
        }
        write_json_atomic(self.path, data)

    def _prune(self, now: datetime) -> None:
        cutoff = (_bucket_start(now) - timedelta(days=self.retention_days)).strftime(
            _BUCKET_FMT
        )
        for buckets in self._buckets.values():
            for key in [k for k in buckets if k < cutoff]:
                buckets.pop(key, None)

    def record(self, counters: dict[str, tuple[int, int]], now: datetime) -> int:
        """Book the deltas of ``counters`` (nic -> (rx, tx)) at ``now``.

        Returns the number of bytes booked. A NIC seen for the first time only
        sets its baseline. A counter lower than the previous reading means the
        counter was reset, and the new reading is booked as the delta.
        """
        key = _bucket_start(now).strftime(_BUCKET_FMT)
        booked = 0
        with self._lock:
            for nic, (rx, tx) in counters.items():
                cls = self.classifier.classify(nic)
                if cls is None:
                    continue
                prev = self._counters.get(nic)
                self._counters[nic] = _Counter(rx=rx, tx=tx)
                if prev is None:
                    continue
                d_rx = rx - prev.rx if rx >= prev.rx else rx
                d_tx = tx - prev.tx if tx >= prev.tx else tx
                if d_rx == 0 and d_tx == 0:
                    continue
                bucket = self._buckets[cls.value].setdefault(key, [0, 0])
                bucket[0] += d_rx
                bucket[1] += d_tx
                booked += d_rx + d_tx
            self._prune(now)
            try:
                self._save()
            except OSError:
                logger.exception("Failed to save usage ledger to %s", self.path)
            else:
                # A successful write replaces whatever could not be read.
                self._load_error = None
        return booked

    def sample(self, now: datetime | None = None) -> int:
        """Read psutil NIC counters and book them."""
        now = now or datetime.now()
        try:
            raw = psutil.net_io_counters(pernic=True) or {}
        except (psutil.Error, OSError):
            logger.exception("Failed reading interface counters")
            return 0
        counters = {nic: (c.bytes_recv, c.bytes_sent) for nic, c in raw.items()}
        booked = self.record(counters, now)
        logger.debug("Sampled %d interfaces, booked %d bytes", len(counters), booked)
        return booked

    def query(self, network_class: NetworkClass, window: TimeWindow) -> UsageSample:
        if self._load_error:
            raise UsageUnavailable(network_class, self._load_error)
        if window.is_empty:
            return UsageSample()
        start = _local_naive(window.start)
        end = _local_naive(window.end)
        rx = tx = 0
        with self._lock:
            buckets = dict(self._buckets.get(network_class.value, {}))
        for key, (b_rx, b_tx) in buckets.items():
            hour = datetime.strptime(key, _BUCKET_FMT)
            if start <= hour < end:
                rx += b_rx
                tx += b_tx
        return UsageSample(received_bytes=rx, transmitted_bytes=tx)
