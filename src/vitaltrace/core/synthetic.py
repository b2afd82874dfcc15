"""Synthetic capture source for demos and benchmarking without a camera.

Pulse and breathing waveforms are generated on a background thread and
delivered in irregular bursts (0.2-1.2 s apart), occasionally repeating the
tail of the previous burst, which is what the trace buffers have to cope with
from the real SDK.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .models import EdgeMetrics, MetricsBuffer, RateReading, StatusCode, VitalSample
from .stream_reader import VitalsSink

logger = logging.getLogger(__name__)


@dataclass
class SyntheticOptions:
    pulse_bpm: float = 72.0
    breathing_bpm: float = 14.0
    trace_rate_hz: float = 30.0
    min_burst_s: float = 0.2
    max_burst_s: float = 1.2
    repeat_probability: float = 0.25
    noise: float = 0.03
    seed: Optional[int] = None


def pulse_wave(t: np.ndarray, bpm: float) -> np.ndarray:
    """Crude PPG-like waveform: fundamental plus a dicrotic harmonic."""
    phase = 2.0 * np.pi * (bpm / 60.0) * t
    return np.sin(phase) + 0.35 * np.sin(2.0 * phase + 0.8)


def breathing_wave(t: np.ndarray, bpm: float) -> np.ndarray:
    return np.sin(2.0 * np.pi * (bpm / 60.0) * t)


class SyntheticVitalsSource:
    """:class:`~vitaltrace.core.live_session.VitalsProcessor` backed by generated data."""

    def __init__(
        self,
        options: SyntheticOptions | None = None,
        *,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self.options = options or SyntheticOptions()
        self._wall_clock = wall_clock
        self._rng = np.random.default_rng(self.options.seed)
        self._sink: Optional[VitalsSink] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._recording = False
        self._recording_start: Optional[float] = None
        self._last_emit: Optional[float] = None

    def attach(self, sink: VitalsSink) -> None:
        self._sink = sink

    @property
    def is_recording(self) -> bool:
        return self._recording

    # ------------------------------------------------------------ processing
    def start_processing(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event = threading.Event()
        self._post_status(StatusCode.OK, "Ready. Press Start to begin recording.")
        thread = threading.Thread(target=self._run, name="VitalTraceSynthetic", daemon=True)
        self._thread = thread
        thread.start()

    def stop_processing(self) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(1.0)

    def start_recording(self) -> None:
        self._recording = True
        self._recording_start = self._wall_clock()
        self._last_emit = self._recording_start
        if self._sink is not None:
            self._sink.post_recording_state(True)

    def stop_recording(self) -> None:
        self._recording = False
        if self._sink is not None:
            self._sink.post_recording_state(False)

    def reset_metrics(self) -> None:
        self._last_emit = None

    # ------------------------------------------------------------- generation
    def emit_burst(self, now: float) -> None:
        """Generate and post everything since the previous burst (used by the thread)."""
        sink = self._sink
        if sink is None or not self._recording or self._recording_start is None:
            return
        opts = self.options
        last = self._last_emit if self._last_emit is not None else now
        step = 1.0 / max(1.0, opts.trace_rate_hz)
        start = last
        if self._rng.random() < opts.repeat_probability:
            # Re-deliver a little overlap, as the SDK sometimes does.
            start = max(self._recording_start, last - 2.0 * step)
        offsets = np.arange(start - self._recording_start, now - self._recording_start, step)
        self._last_emit = now
        if offsets.size == 0:
            return

        abs_times = self._recording_start + offsets
        pulse = pulse_wave(abs_times, opts.pulse_bpm) + self._rng.normal(0.0, opts.noise, offsets.size)
        breathing = breathing_wave(abs_times, opts.breathing_bpm) + self._rng.normal(0.0, opts.noise, offsets.size)

        sent_at = self._recording_start
        pulse_rate = opts.pulse_bpm + float(self._rng.normal(0.0, 1.5))
        breathing_rate = opts.breathing_bpm + float(self._rng.normal(0.0, 0.5))
        confidence = float(np.clip(self._rng.normal(0.7, 0.2), 0.0, 1.0))

        sink.post_metrics_buffer(
            MetricsBuffer(
                sent_at_s=sent_at,
                pulse_trace=tuple(VitalSample(float(t), float(v)) for t, v in zip(offsets, pulse)),
                pulse_rates=(RateReading(pulse_rate, confidence),),
                breathing_rates=(RateReading(breathing_rate, confidence),),
            )
        )
        sink.post_edge_metrics(
            EdgeMetrics(
                breathing_upper_trace=tuple(VitalSample(float(t), float(v)) for t, v in zip(offsets, breathing)),
            )
        )

    def _run(self) -> None:
        opts = self.options
        while not self._stop_event.is_set():
            delay = float(self._rng.uniform(opts.min_burst_s, opts.max_burst_s))
            if self._stop_event.wait(delay):
                break
            try:
                self.emit_burst(self._wall_clock())
            except Exception:
                logger.exception("Synthetic burst failed")

    def _post_status(self, code: StatusCode, hint: str) -> None:
        if self._sink is not None:
            self._sink.post_status(code, hint)
