"""Coordinator for the live vitals preview.

:class:`LiveVitalsSession` owns one :class:`VitalTrace` per vital sign and is
the only writer of their buffers. Upstream deliveries (``post_*``) may come
from any thread; they are queued and applied on the session's owning context
at the start of each tick, right before the traces are rendered.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from queue import Empty, Full, Queue
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from ..config import VitalTraceConfig
from ..tools.debug import debug_enabled, time_block
from .models import EdgeMetrics, MetricsBuffer, StatusCode, VitalSample, latest_finite_reading, round_rate
from .stream_reader import VitalsSink
from .ticker import ThreadTicker, Ticker
from .trace_buffer import TraceBuffer
from .trace_renderer import DrawSize, ScrollingTraceRenderer, TraceFrame

logger = logging.getLogger(__name__)

PULSE = "pulse"
BREATHING = "breathing"

StateListener = Callable[["LiveVitalsSession"], None]
Clock = Callable[[], float]


class VitalsProcessor(Protocol):
    """Control surface of the capture SDK (camera, signal extraction)."""

    @property
    def is_recording(self) -> bool:  # pragma: no cover - protocol
        ...

    def attach(self, sink: VitalsSink) -> None:  # pragma: no cover - protocol
        ...

    def start_processing(self) -> None:  # pragma: no cover - protocol
        ...

    def stop_processing(self) -> None:  # pragma: no cover - protocol
        ...

    def start_recording(self) -> None:  # pragma: no cover - protocol
        ...

    def stop_recording(self) -> None:  # pragma: no cover - protocol
        ...

    def reset_metrics(self) -> None:  # pragma: no cover - protocol
        ...


class TraceSurface(Protocol):
    """Drawing target for one trace."""

    def draw_size(self) -> DrawSize:  # pragma: no cover - protocol
        ...

    def present(self, frame: TraceFrame) -> None:  # pragma: no cover - protocol
        ...


@dataclass
class VitalTrace:
    """Buffer, renderer and drawing surface for one vital sign."""

    key: str
    buffer: TraceBuffer
    renderer: ScrollingTraceRenderer
    surface: Optional[TraceSurface] = None
    default_size: DrawSize = (320.0, 72.0)
    last_frame: Optional[TraceFrame] = field(default=None, repr=False)

    def reset(self) -> None:
        self.buffer.reset()
        self.renderer.reset()
        self.last_frame = None

    def render(self, now: float) -> TraceFrame:
        size = self.surface.draw_size() if self.surface is not None else self.default_size
        frame = self.renderer.render(now, self.buffer.snapshot(), size)
        self.last_frame = frame
        return frame


def offer_queue(queue: Queue, item: object) -> None:
    """Best-effort put that drops the oldest payload when the queue is full."""
    try:
        queue.put_nowait(item)
    except Full:
        try:
            queue.get_nowait()
        except Empty:
            pass
        logger.warning("Pending vitals queue full; dropped oldest delivery")
        queue.put_nowait(item)


class LiveVitalsSession:
    """Live capture loop feeding rolling pulse and breathing traces."""

    def __init__(
        self,
        processor: VitalsProcessor,
        *,
        config: VitalTraceConfig | None = None,
        ticker: Ticker | None = None,
        wall_clock: Clock = time.time,
    ) -> None:
        self.config = (config or VitalTraceConfig()).sanitized()
        self.processor = processor
        self.ticker: Ticker = ticker or ThreadTicker(self.config.refresh_hz)
        self._wall_clock = wall_clock

        size = (float(self.config.plot_width_px), float(self.config.plot_height_px))
        self.traces: Dict[str, VitalTrace] = {
            PULSE: VitalTrace(
                key=PULSE,
                buffer=TraceBuffer(PULSE),
                renderer=ScrollingTraceRenderer(
                    self.config.window_seconds,
                    label=self.config.pulse_label,
                    color=self.config.pulse_color,
                ),
                default_size=size,
            ),
            BREATHING: VitalTrace(
                key=BREATHING,
                buffer=TraceBuffer(BREATHING),
                renderer=ScrollingTraceRenderer(
                    self.config.window_seconds,
                    label=self.config.breathing_label,
                    color=self.config.breathing_color,
                ),
                default_size=size,
            ),
        }

        self.pulse_rate: int = 0
        self.breathing_rate: int = 0
        self.status_code: StatusCode = StatusCode.PROCESSING_NOT_STARTED
        self.status_hint: Optional[str] = None

        self._is_recording = False
        self._processor_active = False
        self._recording_start: Optional[float] = None
        self._pending: Queue[Tuple[str, object]] = Queue(maxsize=self.config.pending_queue_size)
        self._listeners: List[StateListener] = []

        processor.attach(self)

    # ------------------------------------------------------------------ state
    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def is_processor_active(self) -> bool:
        return self._processor_active

    @property
    def recording_start(self) -> Optional[float]:
        return self._recording_start

    @property
    def status_text(self) -> Optional[str]:
        """Hint to show while the capture is not in a good state."""
        if self.status_code is StatusCode.OK or not self.status_hint:
            return None
        return self.status_hint

    @property
    def can_toggle_recording(self) -> bool:
        if self._is_recording:
            return True
        if not self._processor_active:
            return False
        return self.status_code is StatusCode.OK

    @property
    def pulse_trace(self) -> TraceBuffer:
        return self.traces[PULSE].buffer

    @property
    def breathing_trace(self) -> TraceBuffer:
        return self.traces[BREATHING].buffer

    def bind_surface(self, key: str, surface: TraceSurface | None) -> None:
        self.traces[key].surface = surface

    def add_listener(self, callback: StateListener) -> Callable[[], None]:
        """Register a state-change listener; returns a removal hook."""
        self._listeners.append(callback)

        def _remove() -> None:
            try:
                self._listeners.remove(callback)
            except ValueError:
                pass

        return _remove

    # -------------------------------------------------------------- lifecycle
    def prepare(self) -> None:
        """Start the processor and the render ticker."""
        if self._processor_active:
            return
        self.processor.reset_metrics()
        self.processor.start_processing()
        self._processor_active = True
        self.ticker.start(self.on_tick)
        logger.info("Vitals session prepared (window=%.1fs, refresh=%.1fHz)",
                    self.config.window_seconds, self.config.refresh_hz)
        self._notify()

    def teardown(self) -> None:
        """Stop recording, the processor and the ticker."""
        self.stop_recording()
        self._recording_start = None
        if not self._processor_active:
            return
        self.ticker.stop()
        self.processor.stop_processing()
        self.processor.reset_metrics()
        self._processor_active = False
        self._discard_pending()
        self._set_recording(False)
        logger.info("Vitals session torn down")
        self._notify()

    def toggle_recording(self) -> None:
        if not self._processor_active:
            return
        if self._is_recording:
            self.stop_recording()
        else:
            self.start_recording()

    def start_recording(self) -> None:
        self.processor.reset_metrics()
        self.pulse_rate = 0
        self.breathing_rate = 0
        self._reset_traces()
        self._recording_start = self._wall_clock()
        self.processor.start_recording()
        self._notify()

    def stop_recording(self) -> None:
        if not self.processor.is_recording:
            return
        self.processor.stop_recording()
        self._notify()

    # ------------------------------------------------------- upstream (any thread)
    def post_metrics_buffer(self, buffer: MetricsBuffer) -> None:
        offer_queue(self._pending, ("metrics", buffer))

    def post_edge_metrics(self, metrics: EdgeMetrics) -> None:
        offer_queue(self._pending, ("edge", metrics))

    def post_status(self, code: StatusCode | str | None, hint: str = "") -> None:
        offer_queue(self._pending, ("status", (code, hint)))

    def post_recording_state(self, active: bool) -> None:
        offer_queue(self._pending, ("recording", bool(active)))

    # ---------------------------------------------------------- owning context
    def process_pending(self) -> int:
        """Apply queued deliveries in arrival order; returns how many were applied."""
        applied = 0
        changed = False
        while True:
            try:
                kind, payload = self._pending.get_nowait()
            except Empty:
                break
            applied += 1
            if kind == "metrics":
                changed |= self._ingest_metrics(payload)  # type: ignore[arg-type]
            elif kind == "edge":
                self._ingest_edge_metrics(payload)  # type: ignore[arg-type]
            elif kind == "status":
                code, hint = payload  # type: ignore[misc]
                changed |= self._apply_status(code, hint)
            elif kind == "recording":
                changed |= self._set_recording(bool(payload))
        if changed:
            self._notify()
        return applied

    def on_tick(self, now: float) -> None:
        """Ticker callback: apply pending deliveries, then render every trace."""
        self.process_pending()
        if not self._is_recording:
            return
        with time_block("render vitals traces", budget_ms=self.ticker.interval_s * 1000.0):
            for trace in self.traces.values():
                frame = trace.render(now)
                if debug_enabled():
                    logger.debug("%s tick %.3f: %s (%d points)", trace.key, now, frame.status.value, frame.x.size)
                if trace.surface is None:
                    continue
                try:
                    trace.surface.present(frame)
                except Exception:
                    logger.exception("Presenting %s frame failed", trace.key)

    # ----------------------------------------------------------------- helpers
    def _ingest_metrics(self, buffer: MetricsBuffer) -> bool:
        if not self._is_recording:
            return False

        changed = False
        pulse = latest_finite_reading(buffer.pulse_rates)
        if pulse is not None:
            rate = max(0, round_rate(pulse.value))
            changed |= rate != self.pulse_rate
            self.pulse_rate = rate
        breathing = latest_finite_reading(buffer.breathing_rates)
        if breathing is not None:
            rate = max(0, round_rate(breathing.value))
            changed |= rate != self.breathing_rate
            self.breathing_rate = rate
        if pulse is None and buffer.pulse_rates:
            logger.debug("Ignoring non-finite pulse rates: %r", buffer.pulse_rates)

        if buffer.pulse_trace:
            base = buffer.sent_at_s if buffer.sent_at_s is not None else self._wall_clock()
            self._append_relative(PULSE, base, buffer.pulse_trace)
        return changed

    def _ingest_edge_metrics(self, metrics: EdgeMetrics) -> None:
        if not self._is_recording:
            return
        if metrics.breathing_upper_trace:
            base = self._recording_start if self._recording_start is not None else self._wall_clock()
            self._append_relative(BREATHING, base, metrics.breathing_upper_trace)

    def _append_relative(self, key: str, base: float, samples: Tuple[VitalSample, ...]) -> None:
        buffer = self.traces[key].buffer
        accepted = buffer.extend(VitalSample(base + s.time, s.value) for s in samples)
        if accepted < len(samples):
            logger.debug("%s: kept %d of %d delivered samples", key, accepted, len(samples))

    def _apply_status(self, code: StatusCode | str | None, hint: str) -> bool:
        changed = False
        if code is not None:
            parsed = StatusCode.parse(code)
            changed |= parsed is not self.status_code
            self.status_code = parsed
        trimmed = (hint or "").strip()
        if trimmed and trimmed != self.status_hint:
            self.status_hint = trimmed
            changed = True
        return changed

    def _set_recording(self, active: bool) -> bool:
        if active == self._is_recording:
            return False
        self._is_recording = active
        if active and self._recording_start is None:
            # Recording started upstream rather than through start_recording().
            self._recording_start = self._wall_clock()
        elif not active:
            self._recording_start = None
        self._reset_traces()
        logger.info("Vitals recording %s", "started" if active else "stopped")
        return True

    def _discard_pending(self) -> None:
        while True:
            try:
                self._pending.get_nowait()
            except Empty:
                return

    def _reset_traces(self) -> None:
        for trace in self.traces.values():
            trace.reset()

    def _notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self)
            except Exception:
                logger.exception("Session state listener failed")
