"""Qt application entry point for the live vitals preview.

This module wires up argument parsing and logging, picks a capture source
(synthetic by default, or a JSONL capture via ``--replay``), builds the
:class:`~vitaltrace.gui.live_vitals_window.LiveVitalsWindow` (or, with
``--capture``, the
:class:`~vitaltrace.gui.pulse_capture_window.PulseCaptureWindow`) and starts
the Qt event loop. ``python main.py``, ``python -m vitaltrace.gui.application``
and the ``vitaltrace`` console script all go through ``main()`` here.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Tuple

from PySide6.QtCore import QLoggingCategory
from PySide6.QtWidgets import QApplication, QMainWindow

from ..config import VitalTraceConfig, load_config
from ..core.live_session import LiveVitalsSession, VitalsProcessor
from ..core.pulse_capture import PulseCaptureSession
from ..core.stream_reader import ReplayVitalsSource
from ..core.synthetic import SyntheticOptions, SyntheticVitalsSource
from .live_vitals_window import LiveVitalsWindow
from .pulse_capture_window import PulseCaptureWindow
from .qt_ticker import QtTicker

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Live vitals trace preview")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file (default: $VITALTRACE_CONFIG if set)",
    )
    parser.add_argument(
        "--capture",
        action="store_true",
        help="Open the pulse capture window instead of the live traces",
    )
    parser.add_argument(
        "--replay",
        type=str,
        default=None,
        help="Replay a JSONL vitals capture instead of the synthetic source",
    )
    parser.add_argument(
        "--replay-speed",
        type=float,
        default=1.0,
        help="Playback speed multiplier for --replay (default: 1.0)",
    )
    parser.add_argument(
        "--window-seconds",
        type=float,
        default=None,
        help="Override the visible trace window in seconds (default: 12)",
    )
    parser.add_argument(
        "--refresh-hz",
        type=float,
        default=None,
        help="Override the plot refresh rate in Hz (default: 20)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the synthetic source",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity (default: INFO)",
    )
    return parser


def _parse_cli_args(
    argv: list[str],
) -> tuple[argparse.Namespace, list[str]]:
    parser = _build_arg_parser()
    args, qt_args = parser.parse_known_args(argv[1:])
    qt_argv = [argv[0], *qt_args]
    return args, qt_argv


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def resolve_config(args: argparse.Namespace) -> VitalTraceConfig:
    """Load the YAML config and apply command-line overrides."""
    cfg = load_config(args.config)
    if args.window_seconds is not None:
        cfg.window_seconds = float(args.window_seconds)
    if args.refresh_hz is not None:
        cfg.refresh_hz = float(args.refresh_hz)
    return cfg.sanitized()


def build_processor(args: argparse.Namespace, cfg: VitalTraceConfig) -> VitalsProcessor:
    if args.replay:
        return ReplayVitalsSource(args.replay, speed=max(0.01, float(args.replay_speed)))
    return SyntheticVitalsSource(
        SyntheticOptions(
            pulse_bpm=cfg.synthetic_pulse_bpm,
            breathing_bpm=cfg.synthetic_breathing_bpm,
            seed=args.seed,
        )
    )


def create_app(
    argv: list[str] | None = None,
    *,
    config: VitalTraceConfig | None = None,
    processor: VitalsProcessor | None = None,
    capture: bool = False,
) -> Tuple[QApplication, QMainWindow]:
    """
    Create the QApplication and the live vitals (or pulse capture) window.

    Parameters
    ----------
    argv:
        Optional argument list to pass to :class:`QApplication`.
    config:
        Runtime configuration; defaults to :class:`VitalTraceConfig`.
    processor:
        Capture source; defaults to the synthetic source.
    capture:
        Build the pulse capture window instead of the live traces window.

    Returns
    -------
    app:
        The QApplication instance (owned by caller).
    window:
        The main window, already bound to its session.
    """
    qt_args = argv if argv is not None else sys.argv
    app = QApplication.instance() or QApplication(qt_args)

    # Suppress noisy QObject::connect warnings from QStyleHints and similar internals
    QLoggingCategory.setFilterRules("qt.core.qobject.connect=false")

    cfg = (config or VitalTraceConfig()).sanitized()
    source = processor or SyntheticVitalsSource(
        SyntheticOptions(pulse_bpm=cfg.synthetic_pulse_bpm, breathing_bpm=cfg.synthetic_breathing_bpm)
    )
    ticker = QtTicker(cfg.refresh_hz, parent=app)
    if capture:
        capture_window = PulseCaptureWindow(PulseCaptureSession.from_config(source, cfg), ticker)
        capture_window.measurement_committed.connect(_report_measurement)
        return app, capture_window
    session = LiveVitalsSession(source, config=cfg, ticker=ticker)
    window = LiveVitalsWindow(session)
    return app, window


def _report_measurement(reading) -> None:
    print(f"Pulse: {reading.formatted_bpm} ({reading.formatted_timestamp})")


def main(argv: list[str] | None = None) -> None:
    raw_argv = argv if argv is not None else sys.argv
    args, qt_argv = _parse_cli_args(raw_argv)
    configure_logging(args.log_level)

    cfg = resolve_config(args)
    processor = build_processor(args, cfg)
    logger.info(
        "Starting %s (%s source, window=%.1fs, refresh=%.1fHz)",
        "pulse capture" if args.capture else "live vitals preview",
        "replay" if args.replay else "synthetic",
        cfg.window_seconds,
        cfg.refresh_hz,
    )
    app, win = create_app(qt_argv, config=cfg, processor=processor, capture=args.capture)
    win.show()
    raise SystemExit(app.exec())


if __name__ == "__main__":
    main()
