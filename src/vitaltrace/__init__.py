"""vitaltrace: rolling vitals traces rendered as smoothly scrolling plots."""

__version__ = "0.1.0"
