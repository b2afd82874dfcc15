"""Runtime configuration for trace buffering, rendering and capture."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

CONFIG_ENV_VAR = "VITALTRACE_CONFIG"


def _hz_to_interval_ms(value_hz: float, fallback_ms: int) -> int:
    """Convert a frequency in Hz into a positive integer interval in ms."""
    try:
        hz = float(value_hz)
    except (TypeError, ValueError):
        hz = 0.0
    if hz <= 0.0 or math.isnan(hz) or math.isinf(hz):
        return max(1, int(fallback_ms))
    interval = int(round(1000.0 / hz))
    return max(1, interval)


def _finite(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


@dataclass(slots=True)
class VitalTraceConfig:
    """
    Tuning knobs for the live vitals preview.

    The defaults match the capture demo: a 12 s trace window redrawn at
    20 Hz, and up to 50 confident pulse readings averaged per capture.
    """

    window_seconds: float = 12.0
    refresh_hz: float = 20.0

    plot_width_px: int = 320
    plot_height_px: int = 72
    pulse_label: str = "Pulse"
    pulse_color: str = "red"
    breathing_label: str = "Breathing"
    breathing_color: str = "blue"

    max_confident_readings: int = 50

    # Thread bridge sizing
    pending_queue_size: int = 256

    # Synthetic source
    synthetic_pulse_bpm: float = 72.0
    synthetic_breathing_bpm: float = 14.0

    def sanitized(self) -> VitalTraceConfig:
        """Return a copy with derived limits applied."""
        return VitalTraceConfig(
            window_seconds=min(600.0, max(0.5, _finite(self.window_seconds, 12.0))),
            refresh_hz=min(120.0, max(1.0, _finite(self.refresh_hz, 20.0))),
            plot_width_px=max(2, int(self.plot_width_px)),
            plot_height_px=max(1, int(self.plot_height_px)),
            pulse_label=str(self.pulse_label),
            pulse_color=str(self.pulse_color),
            breathing_label=str(self.breathing_label),
            breathing_color=str(self.breathing_color),
            max_confident_readings=max(1, int(self.max_confident_readings)),
            pending_queue_size=max(1, int(self.pending_queue_size)),
            synthetic_pulse_bpm=min(240.0, max(20.0, _finite(self.synthetic_pulse_bpm, 72.0))),
            synthetic_breathing_bpm=min(60.0, max(2.0, _finite(self.synthetic_breathing_bpm, 14.0))),
        )

    def refresh_interval_ms(self) -> int:
        """Return the timer interval that corresponds to ``refresh_hz``."""
        return _hz_to_interval_ms(self.refresh_hz, fallback_ms=50)


def _recognized_fields() -> set[str]:
    """Return the dataclass field names accepted by :class:`VitalTraceConfig`."""
    return {f.name for f in fields(VitalTraceConfig)}


def _normalize_mapping(data: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Flatten known nesting patterns (e.g. top-level ``vitals`` key)."""
    if "vitals" in data and isinstance(data["vitals"], Mapping):
        merged: MutableMapping[str, Any] = {}
        for key, value in data.items():
            if key == "vitals":
                merged.update(value)
            else:
                merged[key] = value
        return merged
    return dict(data)


def config_from_mapping(data: Mapping[str, Any] | None) -> VitalTraceConfig:
    """Build :class:`VitalTraceConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return VitalTraceConfig()
    normalized = _normalize_mapping(data)
    known = _recognized_fields()
    payload = {key: normalized[key] for key in normalized.keys() & known}
    return VitalTraceConfig(**payload).sanitized()


def default_config_path() -> Path | None:
    """Path named by ``VITALTRACE_CONFIG``, if set."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return None


def load_config(path: str | Path | None = None) -> VitalTraceConfig:
    """
    Load configuration from ``path`` (or ``$VITALTRACE_CONFIG``).

    Missing files fall back to default :class:`VitalTraceConfig`.
    """
    cfg_path = Path(path).expanduser() if path is not None else default_config_path()
    if cfg_path is None or not cfg_path.exists():
        return VitalTraceConfig()
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


__all__ = ["VitalTraceConfig", "config_from_mapping", "load_config", "default_config_path"]
