"""Opt-in render instrumentation, switched on with ``VITALTRACE_DEBUG=1``."""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from typing import Iterator, Optional

DEBUG_ENV_VAR = "VITALTRACE_DEBUG"
_TRUTHY = frozenset({"1", "true", "yes", "on"})

logger = logging.getLogger(__name__)


def debug_enabled() -> bool:
    """True when ``VITALTRACE_DEBUG`` is set to a truthy value."""
    return os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in _TRUTHY


@contextmanager
def time_block(label: str, *, budget_ms: Optional[float] = None) -> Iterator[None]:
    """
    Log how long the block took, when debugging is enabled.

    A block that runs longer than ``budget_ms`` (typically one tick interval)
    is reported at WARNING, everything else at DEBUG.
    """
    if not debug_enabled():
        yield
        return

    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        if budget_ms is not None and elapsed_ms > budget_ms:
            logger.warning("%s took %.3f ms (tick budget %.1f ms)", label, elapsed_ms, budget_ms)
        else:
            logger.debug("%s took %.3f ms", label, elapsed_ms)
