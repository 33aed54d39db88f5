"""Resource usage of search calls.

:class:`PerformanceMonitor` is a context manager measuring wall time, CPU
time and resident memory of the enclosed block.  The session wraps every
``genmove`` search with it and writes the figures to the session log.
"""

from __future__ import annotations

import os
import time
from typing import Any, Dict, Optional

import psutil


class PerformanceMonitor:
    """Context manager for monitoring CPU and memory usage."""

    def __init__(self) -> None:
        self.stats: Dict[str, Any] = {}
        self._process = psutil.Process(os.getpid())
        self._start_cpu = None
        self._start_mem: Optional[int] = None
        self._start_time: Optional[float] = None

    def __enter__(self) -> "PerformanceMonitor":
        self._start_time = time.time()
        self._start_cpu = self._process.cpu_times()
        self._start_mem = self._process.memory_info().rss
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        end_time = time.time()
        end_cpu = self._process.cpu_times()
        end_mem = self._process.memory_info().rss

        cpu_start = (self._start_cpu.user + self._start_cpu.system) if self._start_cpu else 0
        cpu_end = end_cpu.user + end_cpu.system

        self.stats = {
            "duration": end_time - (self._start_time or end_time),
            "cpu_time": cpu_end - cpu_start,
            "memory_end": end_mem,
            "memory_diff": end_mem - (self._start_mem or end_mem),
        }
        # Propagate any exception
        return False

    def summary(self) -> str:
        """One-line rendering of the collected metrics."""
        if not self.stats:
            return "no data"
        return (
            f"{self.stats['duration']:.2f}s wall, {self.stats['cpu_time']:.2f}s cpu, "
            f"rss {self.stats['memory_end'] / 2**20:.1f}MiB "
            f"({self.stats['memory_diff'] / 2**20:+.1f}MiB)"
        )


__all__ = ["PerformanceMonitor"]
