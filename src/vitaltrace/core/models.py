"""Shared dataclasses for vitals samples and SDK payloads."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class VitalSample:
    """One scalar sample of a vital-sign trace (``time`` in seconds)."""

    time: float
    value: float


TraceSeries = Tuple[VitalSample, ...]


@dataclass(frozen=True, slots=True)
class RateReading:
    """Rate estimate (pulse or breathing, per minute) with its confidence."""

    value: float
    confidence: float


class StatusCode(str, Enum):
    OK = "ok"
    NO_FACE = "no_face"
    TOO_DARK = "too_dark"
    TOO_BRIGHT = "too_bright"
    MOVING = "moving"
    PROCESSING_NOT_STARTED = "processing_not_started"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "StatusCode":
        """Map a raw status value onto a known code (``UNKNOWN`` otherwise)."""
        if isinstance(value, StatusCode):
            return value
        text = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


@dataclass(slots=True)
class MetricsBuffer:
    """
    Periodic metrics payload from the capture SDK.

    Trace sample times are relative to ``sent_at_s``; when the payload carries
    no metadata the receiver substitutes its own wall-clock time.
    """

    sent_at_s: Optional[float] = None
    pulse_trace: Tuple[VitalSample, ...] = ()
    pulse_rates: Tuple[RateReading, ...] = ()
    breathing_rates: Tuple[RateReading, ...] = ()


@dataclass(slots=True)
class EdgeMetrics:
    """Per-frame payload; trace times are relative to the recording start."""

    breathing_upper_trace: Tuple[VitalSample, ...] = ()


@dataclass(frozen=True, slots=True)
class PulseCaptureReading:
    """Accepted pulse measurement handed back to a form."""

    bpm: int
    captured_at: datetime = field(default_factory=datetime.now)

    @property
    def bpm_string(self) -> str:
        return str(self.bpm)

    @property
    def formatted_bpm(self) -> str:
        return f"{self.bpm} BPM"

    @property
    def formatted_timestamp(self) -> str:
        return self.captured_at.strftime("%d %b %Y, %H:%M")


def latest_finite_reading(readings: Sequence[RateReading]) -> Optional[RateReading]:
    """Newest reading whose value and confidence are both finite."""
    for reading in reversed(readings):
        if math.isfinite(reading.value) and math.isfinite(reading.confidence):
            return reading
    return None


def round_rate(value: float) -> int:
    """Round half away from zero, the way rate displays round readings.

    Non-finite values have no displayable rate and map to 0.
    """
    if not math.isfinite(value):
        return 0
    return int(math.copysign(math.floor(abs(value) + 0.5), value))
