"""
Profiling utilities for statebook operations.

The dispatcher wraps every operation in `profile_block` so the operation log
line carries its wall-clock duration and a CPU/RSS snapshot.

Usage examples:
    from statebook.utils.profiler import profile_block

    with profile_block("readPicture") as stats:
        run_operation()

    print(stats.duration_seconds, stats.rss_bytes)
"""

from __future__ import annotations

import contextlib
import time
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    rss_bytes: Optional[int] = field(default=None)
    cpu_percent: Optional[float] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)

    def as_log_fields(self) -> dict[str, Any]:
        """Flatten the measurements for a log record's `extra=`."""
        fields: dict[str, Any] = {"duration_ms": round(self.duration_seconds * 1000, 3)}
        if self.rss_bytes is not None:
            fields["rss_bytes"] = self.rss_bytes
        if self.cpu_percent is not None:
            fields["cpu_percent"] = round(self.cpu_percent, 1)
        fields.update(self.extra)
        return fields


@contextlib.contextmanager
def profile_block(label: str) -> Generator[ProfileStats, None, None]:
    """
    Context manager to profile a block of code.

    Measures wall-clock duration (perf_counter), and takes a best-effort CPU
    percent and RSS snapshot of the current process when the block exits.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process()
    # CPU percent needs a priming call
    process.cpu_percent(interval=None)

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts
        stats.cpu_percent = process.cpu_percent(interval=None)
        stats.rss_bytes = process.memory_info().rss


__all__ = ["ProfileStats", "profile_block"]
