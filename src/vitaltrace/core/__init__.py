"""Core trace pipeline: buffers, rendering, ticking and capture sessions.

This package sits between the capture source and the GUI: upstream samples
land in per-vital :class:`TraceBuffer` objects, and on every tick of a
fixed-rate :class:`Ticker` the :class:`ScrollingTraceRenderer` turns a buffer
snapshot into a polyline for a drawing surface. Sessions
(:mod:`live_session`, :mod:`pulse_capture`) are imported from their modules.
"""

# Data structures and rendering shared by sessions and tools
from .models import (
    EdgeMetrics,
    MetricsBuffer,
    PulseCaptureReading,
    RateReading,
    StatusCode,
    TraceSeries,
    VitalSample,
)
from .trace_buffer import TraceBuffer
from .trace_renderer import FrameStatus, RenderWindow, ScrollingTraceRenderer, TraceFrame
from .ticker import ManualTicker, ThreadTicker, Ticker

__all__ = [
    "EdgeMetrics",
    "MetricsBuffer",
    "PulseCaptureReading",
    "RateReading",
    "StatusCode",
    "TraceSeries",
    "VitalSample",
    "TraceBuffer",
    "FrameStatus",
    "RenderWindow",
    "ScrollingTraceRenderer",
    "TraceFrame",
    "ManualTicker",
    "ThreadTicker",
    "Ticker",
]
