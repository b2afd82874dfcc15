"""Append-only, deduplicating store of samples for one vital-sign trace."""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable, Iterator
from typing import Callable, List, Optional

from .models import TraceSeries, VitalSample

logger = logging.getLogger(__name__)

TraceObserver = Callable[[TraceSeries], None]


class TraceBuffer:
    """Time-ordered trace for one vital sign within one recording session.

    Samples whose ``time`` is not strictly greater than the newest stored
    sample are dropped without raising, since upstream delivery may repeat
    or reorder data. The RLock keeps snapshots consistent while a producer
    appends; in practice both sides run on the session's owning thread.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._samples: List[VitalSample] = []
        self._last_time: Optional[float] = None
        self._observers: List[TraceObserver] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ ingest
    def append(self, sample: VitalSample) -> bool:
        """Append ``sample`` if it is newer than the last stored one."""
        with self._lock:
            accepted = self._accept(sample)
            series = tuple(self._samples) if accepted else None
        if series is not None:
            self._notify(series)
        return accepted

    def extend(self, samples: Iterable[VitalSample]) -> int:
        """Append samples in order and return how many were accepted."""
        with self._lock:
            count = 0
            for sample in samples:
                if self._accept(sample):
                    count += 1
            series = tuple(self._samples) if count else None
        if series is not None:
            self._notify(series)
        return count

    def reset(self) -> None:
        """Drop all samples and forget the last accepted timestamp."""
        with self._lock:
            self._samples = []
            self._last_time = None
        self._notify(())

    # ------------------------------------------------------------------- query
    def snapshot(self) -> TraceSeries:
        """Return an immutable copy of the current series."""
        with self._lock:
            return tuple(self._samples)

    def latest(self) -> Optional[VitalSample]:
        with self._lock:
            return self._samples[-1] if self._samples else None

    @property
    def last_time(self) -> Optional[float]:
        with self._lock:
            return self._last_time

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def __iter__(self) -> Iterator[VitalSample]:
        return iter(self.snapshot())

    # --------------------------------------------------------------- observers
    def subscribe(self, callback: TraceObserver) -> Callable[[], None]:
        """Register ``callback`` for series updates; returns an unsubscribe hook."""
        with self._lock:
            self._observers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._observers.remove(callback)
                except ValueError:
                    pass

        return _unsubscribe

    # ----------------------------------------------------------------- helpers
    def _accept(self, sample: VitalSample) -> bool:
        try:
            t = float(sample.time)
            value = float(sample.value)
        except (AttributeError, TypeError, ValueError):
            logger.debug("Dropping malformed sample for %s: %r", self.name or "trace", sample)
            return False
        if not math.isfinite(t):
            logger.debug("Dropping sample with non-finite time for %s: %r", self.name or "trace", sample)
            return False
        if self._last_time is not None and t <= self._last_time:
            logger.debug(
                "Dropping out-of-order sample for %s: t=%.6f <= last=%.6f",
                self.name or "trace",
                t,
                self._last_time,
            )
            return False
        self._samples.append(VitalSample(time=t, value=value))
        self._last_time = t
        return True

    def _notify(self, series: TraceSeries) -> None:
        with self._lock:
            observers = list(self._observers)
        for callback in observers:
            try:
                callback(series)
            except Exception:
                logger.exception("Trace observer failed for %s", self.name or "trace")
