"""Main window for the live vitals preview."""

from __future__ import annotations

import logging
import time
from typing import Optional

from PySide6.QtCore import QTimer
from PySide6.QtGui import QCloseEvent, QShowEvent
from PySide6.QtWidgets import QLabel, QMainWindow, QPushButton, QVBoxLayout, QWidget

from ..core.live_session import BREATHING, PULSE, LiveVitalsSession
from ..tools.debug import debug_enabled
from .trace_plot_widget import TracePlotWidget

logger = logging.getLogger(__name__)

PERF_LOG_INTERVAL_MS = 1000


class LiveVitalsWindow(QMainWindow):
    """Status banner, two rolling traces and a start/stop button."""

    def __init__(self, session: LiveVitalsSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.session = session
        cfg = session.config
        self.setWindowTitle("Live Vitals Preview")

        central = QWidget(self)
        layout = QVBoxLayout(central)
        layout.setSpacing(12)

        self.status_label = QLabel("")
        self.status_label.setWordWrap(True)
        self.status_label.setStyleSheet("font-size: 15px; font-weight: 600; padding: 12px;")
        self.status_label.setVisible(False)
        layout.addWidget(self.status_label)

        self.pulse_plot = TracePlotWidget(cfg.pulse_label, cfg.pulse_color, height_px=cfg.plot_height_px)
        self.breathing_plot = TracePlotWidget(
            cfg.breathing_label,
            cfg.breathing_color,
            height_px=cfg.plot_height_px,
        )
        layout.addWidget(self.pulse_plot)
        layout.addWidget(self.breathing_plot)
        layout.addStretch(1)

        self.record_button = QPushButton("Start")
        self.record_button.clicked.connect(self.session.toggle_recording)
        layout.addWidget(self.record_button)

        self.setCentralWidget(central)
        self.resize(560, 360)

        session.bind_surface(PULSE, self.pulse_plot)
        session.bind_surface(BREATHING, self.breathing_plot)
        self._remove_listener = session.add_listener(self._on_session_changed)

        self._perf_timer: Optional[QTimer] = None
        if debug_enabled():
            self._perf_timer = QTimer(self)
            self._perf_timer.setInterval(PERF_LOG_INTERVAL_MS)
            self._perf_timer.timeout.connect(self._log_perf)
            self._perf_timer.start()

        self._sync_from_session()

    # ----------------------------------------------------------------- events
    def showEvent(self, event: QShowEvent) -> None:
        super().showEvent(event)
        self.session.prepare()

    def closeEvent(self, event: QCloseEvent) -> None:
        self._remove_listener()
        self.session.bind_surface(PULSE, None)
        self.session.bind_surface(BREATHING, None)
        self.session.teardown()
        super().closeEvent(event)

    # ---------------------------------------------------------------- helpers
    def _on_session_changed(self, session: LiveVitalsSession) -> None:
        self._sync_from_session()

    def _sync_from_session(self) -> None:
        session = self.session
        status = session.status_text
        self.status_label.setText(status or "")
        self.status_label.setVisible(bool(status))

        recording = session.is_recording
        self.pulse_plot.setVisible(recording)
        self.breathing_plot.setVisible(recording)
        if not recording:
            self.pulse_plot.clear()
            self.breathing_plot.clear()
        self.pulse_plot.set_rate(session.pulse_rate)
        self.breathing_plot.set_rate(session.breathing_rate)

        self.record_button.setText("Stop" if recording else "Start")
        self.record_button.setEnabled(session.can_toggle_recording)

    def _log_perf(self) -> None:
        for name, plot in (("pulse", self.pulse_plot), ("breathing", self.breathing_plot)):
            snap = plot.perf.as_dict()
            logger.debug(
                "[perf] %s t=%.1f fps=%.1f drawn=%d skipped=%d",
                name,
                time.monotonic(),
                snap["fps"],
                int(snap["drawn_frames"]),
                int(snap["skipped_frames"]),
            )
