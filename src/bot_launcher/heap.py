"""Host memory profile used for launch diagnostics.

The profile is informational: it is logged at startup and by the
diagnostics command, but nothing here constrains the artifact's memory.
"""

from __future__ import annotations

import math
import resource
from dataclasses import dataclass
from typing import Any

import psutil

from bot_launcher.constants import HEAP_OPTIMIZATION_THRESHOLD_MB, HEAP_RAM_FRACTION

_BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class HeapProfile:
    """Memory sizing snapshot for the current host."""

    total_ram_gb: float
    current_heap_limit_mb: int
    optimal_heap_size_mb: int
    needs_optimization: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_ram_gb": self.total_ram_gb,
            "current_heap_limit_mb": self.current_heap_limit_mb,
            "optimal_heap_size_mb": self.optimal_heap_size_mb,
            "needs_optimization": self.needs_optimization,
        }


def calculate_heap_profile(total_ram_mb: float, current_heap_limit_mb: int) -> HeapProfile:
    """Derive the optimal heap size from host RAM and the current ceiling.

    The optimal size is 85% of host RAM, rounded down. Optimization is
    flagged when it exceeds the current ceiling by more than 1000 MB.
    """
    optimal = math.floor(total_ram_mb * HEAP_RAM_FRACTION)
    return HeapProfile(
        total_ram_gb=round(total_ram_mb / 1024, 2),
        current_heap_limit_mb=current_heap_limit_mb,
        optimal_heap_size_mb=optimal,
        needs_optimization=(optimal - current_heap_limit_mb) > HEAP_OPTIMIZATION_THRESHOLD_MB,
    )


def current_heap_limit_mb(total_ram_mb: float) -> int:
    """Return the interpreter's address-space ceiling in MB.

    An unlimited ceiling is reported as the whole host RAM.
    """
    soft, _hard = resource.getrlimit(resource.RLIMIT_AS)
    if soft == resource.RLIM_INFINITY:
        return int(total_ram_mb)
    return int(soft // _BYTES_PER_MB)


def read_heap_profile() -> HeapProfile:
    """Build a HeapProfile from the live host state."""
    total_ram_mb = psutil.virtual_memory().total / _BYTES_PER_MB
    return calculate_heap_profile(total_ram_mb, current_heap_limit_mb(total_ram_mb))
