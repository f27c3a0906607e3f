"""Wall-clock helpers used for timestamps."""

from __future__ import annotations

import time


def system_time(clock: int = 0) -> int:
    """Return the current wall-clock time in microseconds; clock is ignored."""
    return time.time_ns() // 1000


def elapsed_millis_since_boot() -> int:
    """Return the current wall-clock time in milliseconds."""
    return system_time(0) // 1000