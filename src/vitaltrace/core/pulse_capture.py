"""Pulse capture flow: turn a short recording into one confident BPM value.

The capture screen shows a live pulse while recording, keeps the most
confident readings in a :class:`ConfidentReadingSet`, and when recording
stops commits their average as a :class:`PulseCaptureReading`, or reports
that nothing confident was captured.
"""

from __future__ import annotations

import logging
from datetime import datetime
from queue import Empty, Queue
from typing import Callable, Optional, Tuple

from ..analysis.confidence import DEFAULT_MAX_CONFIDENT_READINGS, ConfidentReadingSet
from ..config import VitalTraceConfig
from .live_session import VitalsProcessor, offer_queue
from .models import (
    EdgeMetrics,
    MetricsBuffer,
    PulseCaptureReading,
    StatusCode,
    latest_finite_reading,
    round_rate,
)

logger = logging.getLogger(__name__)

READY_MESSAGE = "Ready to capture."
POSITION_MESSAGE = "Position the camera in front of the participant."
STARTING_MESSAGE = "Initialising capture…"
HOLD_STEADY_MESSAGE = "Hold steady while we capture the pulse."
COMPLETE_MESSAGE = "Capture complete."
NO_PULSE_MESSAGE = "No confident pulse detected. Try again."
NO_PULSE_ERROR = "No confident pulse captured during the session."


class PulseCaptureSession:
    """State behind the pulse capture sheet.

    Like :class:`~vitaltrace.core.live_session.LiveVitalsSession`, deliveries
    are queued by ``post_*`` and applied by :meth:`process_pending` on the
    owning thread.
    """

    def __init__(
        self,
        processor: VitalsProcessor,
        *,
        initial_reading: Optional[PulseCaptureReading] = None,
        max_confident_readings: int = DEFAULT_MAX_CONFIDENT_READINGS,
        clock: Callable[[], datetime] = datetime.now,
        queue_size: int = 256,
    ) -> None:
        self.processor = processor
        self.status_message = READY_MESSAGE
        self.error_message: Optional[str] = None
        self.live_pulse: Optional[int] = None
        self.is_recording = False
        self.status_code = StatusCode.PROCESSING_NOT_STARTED
        self.confident_readings = ConfidentReadingSet(max_confident_readings)
        self._measurement = initial_reading
        self._has_active_session = False
        self._processing = False
        self._clock = clock
        self._pending: Queue[Tuple[str, object]] = Queue(maxsize=max(1, int(queue_size)))
        processor.attach(self)

    @classmethod
    def from_config(
        cls,
        processor: VitalsProcessor,
        config: VitalTraceConfig,
        **kwargs,
    ) -> "PulseCaptureSession":
        """Build a session sized by ``max_confident_readings`` and ``pending_queue_size``."""
        cfg = config.sanitized()
        return cls(
            processor,
            max_confident_readings=cfg.max_confident_readings,
            queue_size=cfg.pending_queue_size,
            **kwargs,
        )

    # ------------------------------------------------------------------ state
    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def measurement(self) -> Optional[PulseCaptureReading]:
        return self._measurement

    @property
    def average_confident_pulse(self) -> Optional[int]:
        return self.confident_readings.average_bpm()

    @property
    def can_finalize(self) -> bool:
        return self._measurement is not None and not self.is_recording

    @property
    def can_toggle_recording(self) -> bool:
        return self.is_recording or self.status_code is StatusCode.OK

    # -------------------------------------------------------------- lifecycle
    def prepare_session(self) -> None:
        if self._processing:
            return
        self.processor.reset_metrics()
        self.processor.start_processing()
        self._processing = True
        self.status_message = POSITION_MESSAGE

    def toggle_recording(self) -> None:
        if self.is_recording:
            self.stop_recording()
        elif self.can_toggle_recording:
            self.start_recording()

    def commit_measurement(self) -> Optional[PulseCaptureReading]:
        return self._measurement

    def teardown(self) -> None:
        self.stop_recording()
        if not self._processing:
            return
        self.processor.stop_processing()
        self.processor.reset_metrics()
        self._processing = False

    def start_recording(self) -> None:
        self.error_message = None
        self.status_message = STARTING_MESSAGE
        self.processor.reset_metrics()

        self.live_pulse = None
        self._measurement = None
        self.confident_readings.clear()
        self._has_active_session = True
        self.processor.start_recording()
        self.status_message = HOLD_STEADY_MESSAGE

    def stop_recording(self) -> None:
        if not self.processor.is_recording:
            return
        self.processor.stop_recording()

    # ------------------------------------------------------- upstream (any thread)
    def post_metrics_buffer(self, buffer: MetricsBuffer) -> None:
        offer_queue(self._pending, ("metrics", buffer))

    def post_edge_metrics(self, metrics: EdgeMetrics) -> None:
        # Traces are not shown on the capture sheet.
        return

    def post_status(self, code: StatusCode | str | None, hint: str = "") -> None:
        offer_queue(self._pending, ("status", (code, hint)))

    def post_recording_state(self, active: bool) -> None:
        offer_queue(self._pending, ("recording", bool(active)))

    # ---------------------------------------------------------- owning context
    def process_pending(self) -> int:
        applied = 0
        while True:
            try:
                kind, payload = self._pending.get_nowait()
            except Empty:
                break
            applied += 1
            if kind == "metrics":
                self._ingest_metrics(payload)  # type: ignore[arg-type]
            elif kind == "status":
                code, hint = payload  # type: ignore[misc]
                self._apply_status(code, hint)
            elif kind == "recording":
                self._set_recording(bool(payload))
        return applied

    # ----------------------------------------------------------------- helpers
    def _ingest_metrics(self, buffer: MetricsBuffer) -> None:
        latest = latest_finite_reading(buffer.pulse_rates)
        if latest is None:
            return
        # Live value while a confident window builds up.
        self.live_pulse = round_rate(latest.value)
        if latest.confidence > 0:
            self.confident_readings.offer(latest)

    def _apply_status(self, code: StatusCode | str | None, hint: str) -> None:
        if code is not None:
            self.status_code = StatusCode.parse(code)
        trimmed = (hint or "").strip()
        if trimmed:
            self.status_message = trimmed

    def _set_recording(self, active: bool) -> None:
        self.is_recording = active
        if not active:
            self._handle_recording_stopped()

    def _handle_recording_stopped(self) -> None:
        if not self._has_active_session:
            return
        self._has_active_session = False

        bpm = self.average_confident_pulse
        if bpm is None or bpm <= 0:
            self._measurement = None
            self.status_message = NO_PULSE_MESSAGE
            self.error_message = NO_PULSE_ERROR
            logger.info("Pulse capture finished without a confident reading")
            return

        self._measurement = PulseCaptureReading(bpm=bpm, captured_at=self._clock())
        self.status_message = COMPLETE_MESSAGE
        self.error_message = None
        logger.info("Pulse capture complete: %d BPM from %d readings", bpm, len(self.confident_readings))
