"""Pulse capture window: record briefly, then accept one averaged BPM value."""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import Signal
from PySide6.QtGui import QCloseEvent, QShowEvent
from PySide6.QtWidgets import QLabel, QMainWindow, QPushButton, QVBoxLayout, QWidget

from ..core.pulse_capture import PulseCaptureSession
from ..core.ticker import Ticker

logger = logging.getLogger(__name__)


def format_live_pulse(bpm: Optional[int]) -> str:
    return f"{bpm} BPM" if bpm is not None and bpm > 0 else "-- BPM"


class PulseCaptureWindow(QMainWindow):
    """
    Status message, live pulse, the committed reading and two buttons.

    The ticker drains the session's pending deliveries on the Qt thread;
    the labels are refreshed whenever something was applied.
    """

    measurement_committed = Signal(object)

    def __init__(self, session: PulseCaptureSession, ticker: Ticker, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.ticker = ticker
        self.setWindowTitle("Pulse Capture")

        central = QWidget(self)
        layout = QVBoxLayout(central)
        layout.setSpacing(10)

        self.status_label = QLabel("")
        self.status_label.setWordWrap(True)
        self.status_label.setStyleSheet("font-size: 15px; font-weight: 600; padding: 8px;")
        layout.addWidget(self.status_label)

        self.live_label = QLabel(format_live_pulse(None))
        self.live_label.setStyleSheet("font-size: 28px; font-weight: 700;")
        layout.addWidget(self.live_label)

        self.result_label = QLabel("")
        layout.addWidget(self.result_label)

        self.error_label = QLabel("")
        self.error_label.setWordWrap(True)
        self.error_label.setStyleSheet("color: #c0392b;")
        self.error_label.setVisible(False)
        layout.addWidget(self.error_label)
        layout.addStretch(1)

        self.record_button = QPushButton("Start capture")
        self.record_button.clicked.connect(self._on_toggle_clicked)
        layout.addWidget(self.record_button)

        self.use_button = QPushButton("Use reading")
        self.use_button.clicked.connect(self._on_commit_clicked)
        layout.addWidget(self.use_button)

        self.setCentralWidget(central)
        self.resize(420, 300)
        self._sync_from_session()

    # ----------------------------------------------------------------- events
    def showEvent(self, event: QShowEvent) -> None:
        super().showEvent(event)
        self.session.prepare_session()
        if not self.ticker.is_running:
            self.ticker.start(self._on_tick)
        self._sync_from_session()

    def closeEvent(self, event: QCloseEvent) -> None:
        self.ticker.stop()
        self.session.teardown()
        super().closeEvent(event)

    # ---------------------------------------------------------------- helpers
    def _on_tick(self, now: float) -> None:
        if self.session.process_pending():
            self._sync_from_session()

    def _on_toggle_clicked(self) -> None:
        self.session.toggle_recording()
        self._sync_from_session()

    def _on_commit_clicked(self) -> None:
        reading = self.session.commit_measurement()
        if reading is None:
            return
        logger.info("Pulse reading accepted: %s at %s", reading.formatted_bpm, reading.formatted_timestamp)
        self.measurement_committed.emit(reading)
        self.close()

    def _sync_from_session(self) -> None:
        session = self.session
        self.status_label.setText(session.status_message)
        self.live_label.setText(format_live_pulse(session.live_pulse))

        reading = session.measurement
        if reading is not None:
            self.result_label.setText(f"{reading.formatted_bpm}  ({reading.formatted_timestamp})")
        else:
            self.result_label.setText("")

        error = session.error_message
        self.error_label.setText(error or "")
        self.error_label.setVisible(bool(error))

        self.record_button.setText("Stop capture" if session.is_recording else "Start capture")
        self.record_button.setEnabled(session.can_toggle_recording)
        self.use_button.setEnabled(session.can_finalize)
