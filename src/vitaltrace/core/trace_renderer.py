"""Scrolling trace renderer.

Turns a sparse, irregular :class:`~vitaltrace.core.models.VitalSample` series
into a polyline for a fixed-size drawing area, once per tick of a fixed-rate
timer. Between real arrivals the last value is held forward in time (a flat
synthetic tail sample), so the trace keeps scrolling even when the upstream
source delivers data at sub-Hz rates.

Coordinates follow screen conventions: ``x`` grows to the right across
``[0, width - 1]`` and ``y`` grows downwards across ``[0, height]``, so larger
values are drawn higher up.

The renderer never raises from :meth:`ScrollingTraceRenderer.render`;
degenerate input degrades to a frame without a line.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .models import TraceSeries, VitalSample

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 12.0
# Smallest positive double; keeps normalization defined for flat windows.
MIN_VALUE_RANGE = math.ulp(0.0)

DrawSize = Tuple[float, float]


class FrameStatus(str, Enum):
    DRAWN = "drawn"
    AWAITING_SIGNAL = "awaiting_signal"
    INSUFFICIENT_DATA = "insufficient_data"
    NO_SURFACE = "no_surface"


def _empty_coords() -> np.ndarray:
    return np.empty(0, dtype=np.float64)


@dataclass(frozen=True, slots=True)
class RenderWindow:
    """Slice of the (extended) trace visible during one tick."""

    window_start: float
    samples: TraceSeries
    min_value: float
    max_value: float
    value_range: float


@dataclass(frozen=True, slots=True)
class TraceFrame:
    """Result of one render tick, handed to a drawing surface."""

    status: FrameStatus
    label: str = ""
    color: str = ""
    x: np.ndarray = field(default_factory=_empty_coords)
    y: np.ndarray = field(default_factory=_empty_coords)
    window: Optional[RenderWindow] = None
    tail: Optional[VitalSample] = None

    @property
    def has_line(self) -> bool:
        return self.status is FrameStatus.DRAWN

    @property
    def show_placeholder(self) -> bool:
        return self.status is FrameStatus.AWAITING_SIGNAL

    @property
    def points(self) -> List[Tuple[float, float]]:
        """Polyline vertices as ``(x, y)`` tuples in drawing order."""
        return list(zip(self.x.tolist(), self.y.tolist()))


class ScrollingTraceRenderer:
    """
    Compute scrolling polylines for one trace.

    The only state carried between ticks is the tail anchor: the tick time at
    which the current newest sample was first observed. Synthetic
    extrapolation time is measured from it.

    Parameters
    ----------
    window_seconds:
        Length of the visible time window.
    label, color:
        Passed through unchanged into every :class:`TraceFrame`.
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        label: str = "",
        color: str = "",
    ) -> None:
        window = float(window_seconds)
        if not math.isfinite(window) or window <= 0.0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds!r}")
        self.window_seconds = window
        self.label = label
        self.color = color
        self._anchor_now: Optional[float] = None
        self._anchor_sample_time: Optional[float] = None

    @property
    def tail_anchor(self) -> Optional[float]:
        """Tick time at which the newest real sample was first observed."""
        return self._anchor_now

    def reset(self) -> None:
        """Forget the tail anchor (new recording session)."""
        self._anchor_now = None
        self._anchor_sample_time = None

    def render(
        self,
        now: float,
        samples: Sequence[VitalSample],
        draw_size: DrawSize,
    ) -> TraceFrame:
        """Build the frame for the tick at ``now``."""
        try:
            return self._render(float(now), samples, draw_size)
        except Exception:
            logger.exception("Rendering %s failed; skipping frame", self.label or "trace")
            return self._frame(FrameStatus.INSUFFICIENT_DATA)

    # ----------------------------------------------------------------- helpers
    def _render(self, now: float, samples: Sequence[VitalSample], draw_size: DrawSize) -> TraceFrame:
        if not samples:
            self.reset()
            return self._frame(FrameStatus.AWAITING_SIGNAL)

        last = samples[-1]
        tail = self._tail_sample(now, last)

        width, height = (float(v) for v in draw_size)
        if not (math.isfinite(width) and math.isfinite(height)) or width <= 0.0 or height <= 0.0:
            return self._frame(FrameStatus.NO_SURFACE, tail=tail)

        points: List[VitalSample] = list(samples)
        if tail is not None:
            points.append(tail)

        count = len(points)
        times = np.fromiter((p.time for p in points), dtype=np.float64, count=count)
        values = np.fromiter((p.value for p in points), dtype=np.float64, count=count)

        window_start = float(times[-1]) - self.window_seconds
        mask = times >= window_start
        w_times = times[mask]
        w_values = values[mask]
        if w_times.size < 2:
            return self._frame(FrameStatus.INSUFFICIENT_DATA, tail=tail)

        finite = np.isfinite(w_values)
        if not finite.any():
            return self._frame(FrameStatus.INSUFFICIENT_DATA, tail=tail)
        min_value = float(w_values[finite].min())
        max_value = float(w_values[finite].max())

        value_range = max_value - min_value
        with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
            if value_range > 0.0:
                y_norm = (w_values - min_value) / value_range
            else:
                # Flat window: hold the line at mid-height.
                value_range = MIN_VALUE_RANGE
                y_norm = np.where(finite, 0.5, np.nan)

            x_norm = np.clip((w_times - window_start) / self.window_seconds, 0.0, 1.0)
            x = x_norm * max(width - 1.0, 0.0)
            y = height - y_norm * height

        valid = np.isfinite(x) & np.isfinite(y)
        window = RenderWindow(
            window_start=window_start,
            samples=tuple(p for p, keep in zip(points, mask.tolist()) if keep),
            min_value=min_value,
            max_value=max_value,
            value_range=value_range,
        )
        if int(valid.sum()) < 2:
            return self._frame(FrameStatus.INSUFFICIENT_DATA, window=window, tail=tail)

        return self._frame(
            FrameStatus.DRAWN,
            x=x[valid],
            y=y[valid],
            window=window,
            tail=tail,
        )

    def _tail_sample(self, now: float, last: VitalSample) -> Optional[VitalSample]:
        if self._anchor_now is None or last.time != self._anchor_sample_time:
            self._anchor_now = now
            self._anchor_sample_time = last.time
        elapsed = max(0.0, now - self._anchor_now)
        if elapsed > 0.0:
            return VitalSample(time=last.time + elapsed, value=last.value)
        return None

    def _frame(self, status: FrameStatus, **kwargs) -> TraceFrame:
        return TraceFrame(status=status, label=self.label, color=self.color, **kwargs)
