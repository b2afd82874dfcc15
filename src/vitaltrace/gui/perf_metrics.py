"""Lightweight render-rate metrics for the live trace plots."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque

MAX_SAMPLES_PERF = 300


@dataclass
class RenderPerfStats:
    """Recent tick timestamps plus counts of drawn vs skipped frames."""

    tick_times: Deque[float] = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES_PERF))
    drawn_frames: int = 0
    skipped_frames: int = 0

    def record_frame(self, now: float, *, drawn: bool) -> None:
        self.tick_times.append(now)
        if drawn:
            self.drawn_frames += 1
        else:
            self.skipped_frames += 1

    def compute_fps(self) -> float:
        if len(self.tick_times) < 2:
            return 0.0
        dt = self.tick_times[-1] - self.tick_times[0]
        if dt <= 0:
            return 0.0
        return (len(self.tick_times) - 1) / dt

    def as_dict(self) -> dict[str, float]:
        """Snapshot for structured logging."""
        return {
            "fps": self.compute_fps(),
            "drawn_frames": float(self.drawn_frames),
            "skipped_frames": float(self.skipped_frames),
        }

    def reset(self) -> None:
        self.tick_times.clear()
        self.drawn_frames = 0
        self.skipped_frames = 0
