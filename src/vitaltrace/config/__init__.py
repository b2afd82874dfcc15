"""Configuration objects and helpers for vitaltrace.

Settings are plain dataclasses loaded from an optional YAML file (path given
on the command line or via ``VITALTRACE_CONFIG``) and are imported by the
session, the GUI and the replay tool so they share one set of defaults.
"""

from .runtime import VitalTraceConfig, config_from_mapping, default_config_path, load_config

__all__ = ["VitalTraceConfig", "config_from_mapping", "default_config_path", "load_config"]
