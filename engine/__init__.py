"""Speed measurement engine -- runners, sampling, and the event protocol."""

from .api import SpeedEngine
from .channel import ChannelClosedError, EventChannel
from .config import TestConfig, load_config, save_config
from .download import DownloadTester
from .errors import CancellationError, ConfigError, SpeedTestError, TransportError
from .events import Error, Event, Finished, Progress, Started, is_terminal
from .runner import Phase, TestKind, TestRunner, TestSession
from .stats import (
    ByteCounter,
    Clock,
    ProgressSample,
    TestResult,
    calculate_mbps,
    format_bytes,
    format_speed,
)
from .upload import UploadTester

__all__ = [
    "ByteCounter",
    "CancellationError",
    "ChannelClosedError",
    "Clock",
    "ConfigError",
    "DownloadTester",
    "Error",
    "Event",
    "EventChannel",
    "Finished",
    "Phase",
    "Progress",
    "ProgressSample",
    "SpeedEngine",
    "SpeedTestError",
    "Started",
    "TestConfig",
    "TestKind",
    "TestResult",
    "TestRunner",
    "TestSession",
    "TransportError",
    "UploadTester",
    "calculate_mbps",
    "format_bytes",
    "format_speed",
    "is_terminal",
    "load_config",
    "save_config",
]
