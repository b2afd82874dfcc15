"""Fixed-rate tick sources that drive trace rendering.

A ticker calls ``callback(now)`` at a steady rate, independent of how often
samples arrive. ``now`` is in seconds from a monotonic clock. Rendering code
only ever sees ``now``, so tests drive it with :class:`ManualTicker`.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

TickCallback = Callable[[float], None]
Clock = Callable[[], float]

DEFAULT_REFRESH_HZ = 20.0


def interval_from_hz(hz: float, fallback_s: float = 1.0 / DEFAULT_REFRESH_HZ) -> float:
    """Convert a refresh rate into a positive interval in seconds."""
    try:
        rate = float(hz)
    except (TypeError, ValueError):
        rate = 0.0
    if rate <= 0.0 or not math.isfinite(rate):
        return max(1e-3, float(fallback_s))
    return max(1e-3, 1.0 / rate)


class Ticker(Protocol):
    """Interface for fixed-rate tick sources."""

    interval_s: float

    @property
    def is_running(self) -> bool:  # pragma: no cover - protocol
        ...

    def start(self, callback: TickCallback) -> None:  # pragma: no cover - protocol
        ...

    def stop(self) -> None:  # pragma: no cover - protocol
        ...


class ManualTicker:
    """Ticker driven explicitly by the caller (tests, offline replay)."""

    def __init__(self, refresh_hz: float = DEFAULT_REFRESH_HZ, *, start_time: float = 0.0) -> None:
        self.interval_s = interval_from_hz(refresh_hz)
        self.now = float(start_time)
        self._callback: Optional[TickCallback] = None

    @property
    def is_running(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        self._callback = callback

    def stop(self) -> None:
        self._callback = None

    def tick(self, now: float | None = None) -> bool:
        """Fire one tick at ``now`` (or the current time); False when stopped."""
        if now is not None:
            self.now = float(now)
        callback = self._callback
        if callback is None:
            return False
        callback(self.now)
        return True

    def advance(self, seconds: float | None = None) -> bool:
        """Move the clock forward by ``seconds`` (one interval by default) and tick."""
        step = self.interval_s if seconds is None else float(seconds)
        return self.tick(self.now + step)


class ThreadTicker:
    """
    Fixed-rate ticker running on a daemon thread.

    Callbacks run on the ticker thread, which then acts as the owning
    context for whatever state the callback touches.
    """

    def __init__(
        self,
        refresh_hz: float = DEFAULT_REFRESH_HZ,
        *,
        clock: Clock = time.monotonic,
        thread_name: str = "VitalTraceTicker",
    ) -> None:
        self.interval_s = interval_from_hz(refresh_hz)
        self._clock = clock
        self._thread_name = thread_name
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def start(self, callback: TickCallback) -> None:
        if self.is_running:
            return
        stop_event = threading.Event()
        self._stop_event = stop_event

        def _run() -> None:
            next_deadline = self._clock()
            while not stop_event.is_set():
                try:
                    callback(self._clock())
                except Exception:
                    logger.exception("Tick callback failed")
                next_deadline += self.interval_s
                delay = next_deadline - self._clock()
                if delay < 0.0:
                    # Running late: skip missed ticks instead of bursting.
                    next_deadline = self._clock()
                    delay = 0.0
                stop_event.wait(delay)

        thread = threading.Thread(target=_run, name=self._thread_name, daemon=True)
        self._thread = thread
        thread.start()

    def stop(self, *, join: bool = True, timeout: float | None = 1.0) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if join and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
