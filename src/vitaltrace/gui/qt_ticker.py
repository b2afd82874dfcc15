"""Ticker backed by a Qt timer so ticks run on the GUI thread."""

from __future__ import annotations

import time
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Qt

from ..core.ticker import DEFAULT_REFRESH_HZ, TickCallback, interval_from_hz


class QtTicker(QObject):
    """Fixed-rate :class:`~vitaltrace.core.ticker.Ticker` using ``QTimer``."""

    def __init__(
        self,
        refresh_hz: float = DEFAULT_REFRESH_HZ,
        parent: Optional[QObject] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(parent)
        self.interval_s = interval_from_hz(refresh_hz)
        self._clock = clock
        self._callback: Optional[TickCallback] = None
        self._timer = QTimer(self)
        self._timer.setTimerType(Qt.PreciseTimer)
        self._timer.setInterval(max(1, int(round(self.interval_s * 1000.0))))
        self._timer.timeout.connect(self._on_timeout)

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    def start(self, callback: TickCallback) -> None:
        self._callback = callback
        if not self._timer.isActive():
            self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
        self._callback = None

    def _on_timeout(self) -> None:
        callback = self._callback
        if callback is not None:
            callback(self._clock())
