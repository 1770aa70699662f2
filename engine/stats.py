"""
Throughput arithmetic, sampling clock and byte counter.

Pure functions and lightweight classes -- no network I/O.  Everything here
is deterministic enough to unit-test directly.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Formula
# ---------------------------------------------------------------------------

def calculate_mbps(byte_count: int, elapsed_ms: float) -> float:
    """Cumulative rate in megabits per second.

    Progress samples use the same formula as the final result, so the
    reported "instantaneous" rate converges toward the average as the test
    runs.
    """
    if elapsed_ms <= 0:
        return 0.0
    return (byte_count * 8) / (elapsed_ms / 1000) / 1_000_000


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressSample:
    """One sampler tick."""

    elapsed_ms: float
    bytes_transferred: int
    instantaneous_mbps: float

    @classmethod
    def take(cls, byte_count: int, elapsed_ms: float) -> ProgressSample:
        return cls(
            elapsed_ms=elapsed_ms,
            bytes_transferred=byte_count,
            instantaneous_mbps=calculate_mbps(byte_count, elapsed_ms),
        )


@dataclass(frozen=True)
class TestResult:
    """Terminal value of a finished session."""

    __test__ = False  # keep pytest from collecting this as a test class

    elapsed_ms: float
    total_bytes: int
    avg_mbps: float

    @classmethod
    def at(cls, byte_count: int, elapsed_ms: float) -> TestResult:
        return cls(
            elapsed_ms=elapsed_ms,
            total_bytes=byte_count,
            avg_mbps=calculate_mbps(byte_count, elapsed_ms),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elapsed_ms": round(self.elapsed_ms, 2),
            "total_bytes": self.total_bytes,
            "avg_mbps": round(self.avg_mbps, 2),
        }


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class Clock:
    """Monotonic clock anchored at test start.

    The sampler and the deadline check both read this one instance so they
    agree on where the window ends.
    """

    def __init__(self, duration_ms: float, start: Optional[float] = None) -> None:
        self.duration_ms = duration_ms
        self.start = time.perf_counter() if start is None else start

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.start) * 1000

    def remaining(self) -> float:
        """Seconds left until the deadline, never negative."""
        return max(0.0, self.duration_ms / 1000 - (time.perf_counter() - self.start))

    def expired(self) -> bool:
        return self.elapsed_ms() >= self.duration_ms

    def until(self, offset_seconds: float) -> float:
        """Seconds from now until ``start + offset_seconds`` (may be negative)."""
        return self.start + offset_seconds - time.perf_counter()


# ---------------------------------------------------------------------------
# Byte counter
# ---------------------------------------------------------------------------

class ByteCounter:
    """Running total written by the transfer loop and read by the sampler."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total = 0

    def add(self, n: int) -> int:
        with self._lock:
            self._total += n
            return self._total

    @property
    def value(self) -> int:
        with self._lock:
            return self._total

    def reset(self) -> None:
        with self._lock:
            self._total = 0


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_bytes(n: int) -> str:
    """Human-readable byte count (binary units)."""
    value = float(n)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.2f} GiB"
