"""Usage source contract and the fault-tolerant usage aggregator."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .models.usage import ALL_NETWORK_CLASSES, NetworkClass, TimeWindow, UsageSample

logger = logging.getLogger(__name__)


class UsageUnavailable(Exception):
    """The usage source cannot report data for a network class."""

    def __init__(self, network_class: NetworkClass, reason: str) -> None:
        super().__init__(f"{network_class.value} usage unavailable: {reason}")
        self.network_class = network_class
        self.reason = reason


class UsageSource(Protocol):
    def query(
        self, network_class: NetworkClass, window: TimeWindow
    ) -> UsageSample | None: ...


class UsageAggregator:
    """Sum received and transmitted bytes across network classes.

    A class whose query fails contributes 0 and the remaining classes are still
    summed. Under-counting is preferred over aborting the alert run, so no
    exception leaves ``total_bytes``.
    """

    def __init__(self, source: UsageSource) -> None:
        self.source = source

    def class_bytes(self, network_class: NetworkClass, window: TimeWindow) -> int:
        if window.is_empty:
            return 0
        try:
            sample = self.source.query(network_class, window)
        except UsageUnavailable as exc:
            logger.warning("%s", exc)
            return 0
        except Exception:
            logger.exception(
                "Usage query failed for %s; counting it as 0", network_class.value
            )
            return 0
        if sample is None:
            return 0
        return sample.total_bytes

    def total_bytes(
        self,
        window: TimeWindow,
        network_classes: Iterable[NetworkClass] = ALL_NETWORK_CLASSES,
    ) -> int:
        classes = sorted(set(network_classes), key=lambda c: c.value)
        return sum(self.class_bytes(c, window) for c in classes)
