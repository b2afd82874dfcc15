#!/usr/bin/env python3
"""
Offline replay plotter for JSONL vitals captures.

The capture is fed through :class:`~vitaltrace.core.live_session.LiveVitalsSession`
on a :class:`~vitaltrace.core.ticker.ManualTicker`, so the frames are exactly
what the live preview would draw at the configured refresh rate. Matplotlib
either animates the replay in its standard window, or (``--snapshot``) writes
the frame at a given time to an image file.

Records are scheduled by their ``at_s`` field; records without it are applied
at the start of the replay.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation

from ..config import VitalTraceConfig, load_config
from ..core.live_session import BREATHING, PULSE, LiveVitalsSession
from ..core.models import StatusCode
from ..core.stream_reader import ParsedRecord, VitalsSink, dispatch_record, iter_records
from ..core.ticker import ManualTicker
from ..core.trace_renderer import TraceFrame

logger = logging.getLogger(__name__)

FrameSet = Dict[str, Optional[TraceFrame]]


class CaptureProcessor:
    """Processor stand-in for offline replay; all data comes from the capture."""

    def __init__(self) -> None:
        self._sink: Optional[VitalsSink] = None
        self._recording = False

    def attach(self, sink: VitalsSink) -> None:
        self._sink = sink

    @property
    def is_recording(self) -> bool:
        return self._recording

    def start_processing(self) -> None:
        return

    def stop_processing(self) -> None:
        return

    def start_recording(self) -> None:
        self._recording = True
        if self._sink is not None:
            self._sink.post_recording_state(True)

    def stop_recording(self) -> None:
        self._recording = False
        if self._sink is not None:
            self._sink.post_recording_state(False)

    def reset_metrics(self) -> None:
        return


def load_capture(path: str | Path) -> List[ParsedRecord]:
    """Parse a JSONL capture, skipping malformed lines."""
    with Path(path).open("r", encoding="utf-8") as fh:
        return list(iter_records(fh))


def replay_frames(
    records: Sequence[ParsedRecord],
    cfg: VitalTraceConfig | None = None,
    *,
    until_s: Optional[float] = None,
) -> Iterator[Tuple[float, FrameSet, LiveVitalsSession]]:
    """
    Yield ``(t, frames, session)`` for every tick of the replay.

    ``t`` is seconds since the start of the capture. The replay runs until
    ``until_s`` or, by default, one tick past the last record.
    """
    cfg = (cfg or VitalTraceConfig()).sanitized()
    clock = [0.0]
    ticker = ManualTicker(cfg.refresh_hz, start_time=0.0)
    processor = CaptureProcessor()
    session = LiveVitalsSession(processor, config=cfg, ticker=ticker, wall_clock=lambda: clock[0])
    session.post_status(StatusCode.OK, "")
    session.prepare()

    ordered = sorted(records, key=lambda rec: rec.at_s if rec.at_s is not None else 0.0)
    last_at = max((rec.at_s or 0.0 for rec in ordered), default=0.0)
    end = last_at + ticker.interval_s if until_s is None else float(until_s)

    idx = 0
    step = 0
    while True:
        t = step * ticker.interval_s
        if t > end + 1e-9:
            break
        clock[0] = t
        while idx < len(ordered) and (ordered[idx].at_s or 0.0) <= t:
            dispatch_record(ordered[idx], session)
            idx += 1
        ticker.tick(t)
        yield t, {key: trace.last_frame for key, trace in session.traces.items()}, session
        step += 1

    session.teardown()


def _setup_axes(cfg: VitalTraceConfig):
    fig, axes = plt.subplots(2, 1, figsize=(6.0, 3.0), sharex=False)
    width = float(cfg.plot_width_px)
    height = float(cfg.plot_height_px)
    lines = {}
    for ax, key, color in ((axes[0], PULSE, cfg.pulse_color), (axes[1], BREATHING, cfg.breathing_color)):
        ax.set_xlim(0.0, width - 1.0)
        ax.set_ylim(height, 0.0)
        ax.set_xticks([])
        ax.set_yticks([])
        (line,) = ax.plot([], [], color=color, linewidth=2)
        lines[key] = (ax, line)
    return fig, lines


def _draw(lines, frames: FrameSet, session: LiveVitalsSession, t: float) -> None:
    rates = {PULSE: session.pulse_rate, BREATHING: session.breathing_rate}
    for key, (ax, line) in lines.items():
        frame = frames.get(key)
        if frame is not None and frame.has_line:
            line.set_data(frame.x, frame.y)
        else:
            line.set_data([], [])
        label = session.traces[key].renderer.label
        rate = rates[key]
        ax.set_title(f"{label}: {rate if rate > 0 else '--'} bpm  (t={t:.1f}s)", fontsize=9, loc="left")


def save_snapshot(records: Sequence[ParsedRecord], cfg: VitalTraceConfig, out_path: Path, at_s: Optional[float]) -> Path:
    """Replay up to ``at_s`` (or the end) and save the last frame."""
    last: Optional[Tuple[float, FrameSet, LiveVitalsSession]] = None
    for item in replay_frames(records, cfg, until_s=at_s):
        last = item
    fig, lines = _setup_axes(cfg)
    if last is not None:
        t, frames, session = last
        _draw(lines, frames, session, t)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=120)
    plt.close(fig)
    logger.info("Snapshot written to %s", out_path)
    return out_path


def animate(records: Sequence[ParsedRecord], cfg: VitalTraceConfig) -> None:
    fig, lines = _setup_axes(cfg)

    def _update(item):
        t, frames, session = item
        _draw(lines, frames, session, t)
        return [line for _, line in lines.values()]

    anim = FuncAnimation(
        fig,
        _update,
        frames=replay_frames(records, cfg),
        interval=cfg.refresh_interval_ms(),
        blit=False,
        cache_frame_data=False,
        repeat=False,
    )
    fig._vitaltrace_anim = anim  # keep a reference while the window is open
    plt.show()


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay a JSONL vitals capture with Matplotlib")
    parser.add_argument("capture", type=str, help="JSONL capture file")
    parser.add_argument("--config", type=str, default=None, help="YAML configuration file")
    parser.add_argument(
        "--snapshot",
        type=str,
        default=None,
        help="Write the frame to this image file instead of animating",
    )
    parser.add_argument(
        "--at",
        type=float,
        default=None,
        help="Capture time (s) of the snapshot frame (default: end of capture)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    cfg = load_config(args.config)
    records = load_capture(args.capture)
    logger.info("Loaded %d records from %s", len(records), args.capture)
    if args.snapshot:
        save_snapshot(records, cfg, Path(args.snapshot).expanduser(), args.at)
    else:
        animate(records, cfg)


if __name__ == "__main__":
    main()
