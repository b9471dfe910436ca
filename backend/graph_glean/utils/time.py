"""Time helpers."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Return current timestamp in milliseconds."""
    return int(time.time() * 1000)


def monotonic_s() -> float:
    """Return a monotonic clock reading in seconds."""
    return time.perf_counter()
