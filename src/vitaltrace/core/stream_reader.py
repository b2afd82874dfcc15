"""
Utilities for replaying JSONL vitals captures into a session.

Each line is one JSON object with a ``type`` field:

  - ``metrics``   : ``sent_at_s`` (optional), ``pulse.trace`` as ``[[t, v], ...]``,
                    ``pulse.rate`` / ``breathing.rate`` as ``[[value, confidence], ...]``
  - ``edge``      : ``breathing.upper_trace`` as ``[[t, v], ...]``
  - ``status``    : ``code`` and ``hint``
  - ``recording`` : ``active`` (bool)

Optionally each record carries ``at_s``, the offset in seconds from the
start of the capture, which ``reader_loop`` uses for real-time pacing.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple, Union

from .models import EdgeMetrics, MetricsBuffer, RateReading, StatusCode, VitalSample

logger = logging.getLogger(__name__)

Record = Union[MetricsBuffer, EdgeMetrics, Tuple[StatusCode, str], bool]


class VitalsSink(Protocol):
    """Receiver for upstream deliveries; methods may be called from any thread."""

    def post_metrics_buffer(self, buffer: MetricsBuffer) -> None:  # pragma: no cover - protocol
        ...

    def post_edge_metrics(self, metrics: EdgeMetrics) -> None:  # pragma: no cover - protocol
        ...

    def post_status(self, code: StatusCode | str | None, hint: str = "") -> None:  # pragma: no cover - protocol
        ...

    def post_recording_state(self, active: bool) -> None:  # pragma: no cover - protocol
        ...


@dataclass(slots=True)
class ParsedRecord:
    kind: str
    payload: Record
    at_s: Optional[float] = None


def _coerce_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _pairs(raw: Any) -> List[Tuple[float, float]]:
    """Parse ``[[a, b], ...]`` (or ``[{"time":..,"value":..}]``) skipping bad rows."""
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return []
    pairs: List[Tuple[float, float]] = []
    for item in raw:
        if isinstance(item, Mapping):
            first = item.get("time", item.get("value"))
            second = item.get("value") if "time" in item else item.get("confidence")
        elif isinstance(item, Sequence) and not isinstance(item, (str, bytes)) and len(item) >= 2:
            first, second = item[0], item[1]
        else:
            logger.debug("Skipping malformed pair: %r", item)
            continue
        a = _coerce_number(first)
        b = _coerce_number(second)
        if a is None or b is None:
            logger.debug("Skipping non-numeric pair: %r", item)
            continue
        pairs.append((a, b))
    return pairs


def _block(record: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    block = record.get(name)
    return block if isinstance(block, Mapping) else {}


def parse_record(record: Mapping[str, Any]) -> Optional[ParsedRecord]:
    """
    Convert one decoded JSON object into a typed payload.

    Returns ``None`` for unknown or unusable records.
    """
    kind = str(record.get("type", "")).strip().lower()
    at_s = _coerce_number(record.get("at_s"))

    if kind == "metrics":
        pulse = _block(record, "pulse")
        breathing = _block(record, "breathing")
        payload = MetricsBuffer(
            sent_at_s=_coerce_number(record.get("sent_at_s")),
            pulse_trace=tuple(VitalSample(t, v) for t, v in _pairs(pulse.get("trace"))),
            pulse_rates=tuple(RateReading(v, c) for v, c in _pairs(pulse.get("rate"))),
            breathing_rates=tuple(RateReading(v, c) for v, c in _pairs(breathing.get("rate"))),
        )
        return ParsedRecord(kind, payload, at_s)

    if kind == "edge":
        breathing = _block(record, "breathing")
        payload = EdgeMetrics(
            breathing_upper_trace=tuple(VitalSample(t, v) for t, v in _pairs(breathing.get("upper_trace"))),
        )
        return ParsedRecord(kind, payload, at_s)

    if kind == "status":
        code = StatusCode.parse(record.get("code"))
        hint = str(record.get("hint") or "")
        return ParsedRecord(kind, (code, hint), at_s)

    if kind == "recording":
        active = record.get("active")
        if not isinstance(active, bool):
            logger.debug("Recording record without boolean 'active': %r", record)
            return None
        return ParsedRecord(kind, active, at_s)

    logger.debug("Skipping record with unknown type %r", kind)
    return None


def dispatch_record(parsed: ParsedRecord, sink: VitalsSink) -> None:
    """Forward a parsed record to the matching ``sink.post_*`` method."""
    if parsed.kind == "metrics":
        sink.post_metrics_buffer(parsed.payload)  # type: ignore[arg-type]
    elif parsed.kind == "edge":
        sink.post_edge_metrics(parsed.payload)  # type: ignore[arg-type]
    elif parsed.kind == "status":
        code, hint = parsed.payload  # type: ignore[misc]
        sink.post_status(code, hint)
    elif parsed.kind == "recording":
        sink.post_recording_state(bool(parsed.payload))


def iter_records(lines: Iterable[str]) -> Iterable[ParsedRecord]:
    """Decode JSON lines, logging and skipping malformed ones."""
    for raw_line in lines:
        line = raw_line.strip()
        if not line:
            continue

        try:
            obj = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("Dropping malformed JSON line: %s (%s)", line, exc)
            continue

        if not isinstance(obj, Mapping):
            logger.debug("Skipping non-object JSON payload: %r", obj)
            continue

        parsed = parse_record(obj)
        if parsed is not None:
            yield parsed


def reader_loop(
    stream: Iterable[str],
    sink: VitalsSink,
    *,
    stop_event: Optional[threading.Event] = None,
    speed: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """Read JSONL records from a line-oriented stream and post them to ``sink``.

    When ``speed`` is positive, records carrying ``at_s`` are delayed so they
    arrive at ``at_s / speed`` seconds after the loop started. Returns the
    number of records dispatched.
    """
    start = clock()
    count = 0
    for parsed in iter_records(stream):
        if stop_event is not None and stop_event.is_set():
            break

        if speed and speed > 0 and parsed.at_s is not None:
            delay = start + parsed.at_s / speed - clock()
            if delay > 0:
                if stop_event is not None:
                    if stop_event.wait(delay):
                        break
                else:
                    sleep(delay)

        try:
            dispatch_record(parsed, sink)
        except Exception:
            logger.exception("Failed to dispatch %s record", parsed.kind)
            continue
        count += 1
    return count


@dataclass
class StreamReaderHandle:
    thread: threading.Thread
    stop_event: threading.Event

    def stop(self, *, join: bool = False, timeout: Optional[float] = None) -> None:
        self.stop_event.set()
        if join:
            self.thread.join(timeout)

    def is_alive(self) -> bool:
        return self.thread.is_alive()


def start_reader(
    stream: Iterable[str],
    sink: VitalsSink,
    *,
    speed: float | None = None,
    thread_name: Optional[str] = None,
) -> StreamReaderHandle:
    """
    Start a background thread that replays JSON lines from *stream* into *sink*.
    """
    stop_event = threading.Event()

    def _target() -> None:
        try:
            reader_loop(stream, sink, stop_event=stop_event, speed=speed)
        finally:
            close = getattr(stream, "close", None)
            if callable(close):
                close()

    thread = threading.Thread(
        target=_target,
        name=thread_name or "VitalTraceStreamReader",
        daemon=True,
    )
    thread.start()
    return StreamReaderHandle(thread=thread, stop_event=stop_event)


class ReplayVitalsSource:
    """
    Capture-SDK stand-in that replays a JSONL file.

    Processing starts the reader thread; recording requests are reflected to
    the sink directly, while ``recording`` records in the file also toggle it.
    """

    def __init__(self, path: str, *, speed: float = 1.0) -> None:
        self.path = str(path)
        self.speed = float(speed)
        self._sink: Optional[VitalsSink] = None
        self._handle: Optional[StreamReaderHandle] = None
        self._recording = False

    def attach(self, sink: VitalsSink) -> None:
        self._sink = _RecordingTracker(self, sink)

    @property
    def is_recording(self) -> bool:
        return self._recording

    def start_processing(self) -> None:
        if self._sink is None or (self._handle is not None and self._handle.is_alive()):
            return
        fh = open(self.path, "r", encoding="utf-8")
        logger.info("Replaying vitals capture %s at %.2fx", self.path, self.speed)
        self._handle = start_reader(fh, self._sink, speed=self.speed, thread_name="VitalTraceReplay")

    def stop_processing(self) -> None:
        if self._handle is not None:
            self._handle.stop(join=True, timeout=1.0)
            self._handle = None

    def start_recording(self) -> None:
        if self._sink is not None:
            self._sink.post_recording_state(True)

    def stop_recording(self) -> None:
        if self._sink is not None:
            self._sink.post_recording_state(False)

    def reset_metrics(self) -> None:
        return


class _RecordingTracker:
    """Sink wrapper that mirrors recording state back onto the replay source."""

    def __init__(self, source: ReplayVitalsSource, sink: VitalsSink) -> None:
        self._source = source
        self._sink = sink

    def post_metrics_buffer(self, buffer: MetricsBuffer) -> None:
        self._sink.post_metrics_buffer(buffer)

    def post_edge_metrics(self, metrics: EdgeMetrics) -> None:
        self._sink.post_edge_metrics(metrics)

    def post_status(self, code: StatusCode | str | None, hint: str = "") -> None:
        self._sink.post_status(code, hint)

    def post_recording_state(self, active: bool) -> None:
        self._source._recording = bool(active)
        self._sink.post_recording_state(active)
