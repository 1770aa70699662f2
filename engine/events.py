"""
Lifecycle events streamed from a runner to its consumer.

The wire form produced by ``to_dict`` is ``{"event": name, "data": {...}}``
with camelCase keys, which is what GUI front-ends expect.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .stats import ProgressSample, TestResult


@dataclass(frozen=True)
class Started:
    """The runner accepted the session and is about to connect."""

    url: str
    duration_cap_ms: int
    chunk_size_bytes: Optional[int] = None

    name = "started"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "durationMs": self.duration_cap_ms}
        if self.chunk_size_bytes is not None:
            data["chunkSize"] = self.chunk_size_bytes
        return {"event": self.name, "data": data}


@dataclass(frozen=True)
class Progress:
    elapsed_ms: float
    bytes_transferred: int
    instantaneous_mbps: float

    name = "progress"

    @classmethod
    def from_sample(cls, sample: ProgressSample) -> Progress:
        return cls(
            elapsed_ms=sample.elapsed_ms,
            bytes_transferred=sample.bytes_transferred,
            instantaneous_mbps=sample.instantaneous_mbps,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.name,
            "data": {
                "elapsedMs": round(self.elapsed_ms, 2),
                "bytes": self.bytes_transferred,
                "mbps": round(self.instantaneous_mbps, 3),
            },
        }


@dataclass(frozen=True)
class Finished:
    """Terminal event of a successful (or cancelled) session."""

    elapsed_ms: float
    total_bytes: int
    avg_mbps: float
    cancelled: bool = False

    name = "finished"

    @classmethod
    def from_result(cls, result: TestResult, cancelled: bool = False) -> Finished:
        return cls(
            elapsed_ms=result.elapsed_ms,
            total_bytes=result.total_bytes,
            avg_mbps=result.avg_mbps,
            cancelled=cancelled,
        )

    @property
    def result(self) -> TestResult:
        return TestResult(self.elapsed_ms, self.total_bytes, self.avg_mbps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.name,
            "data": {
                "elapsedMs": round(self.elapsed_ms, 2),
                "bytes": self.total_bytes,
                "avgMbps": round(self.avg_mbps, 3),
                "cancelled": self.cancelled,
            },
        }


@dataclass(frozen=True)
class Error:
    """Terminal event of a failed session."""

    message: str

    name = "error"

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.name, "data": {"message": self.message}}


Event = Union[Started, Progress, Finished, Error]

TERMINAL_EVENTS = (Finished, Error)


def is_terminal(event: Event) -> bool:
    return isinstance(event, TERMINAL_EVENTS)
