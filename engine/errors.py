"""
Exception taxonomy for the measurement engine.

``ConfigError`` is raised to the caller before a session exists.
``TransportError`` never escapes a runner task: it is turned into an
``Error`` event.  ``CancellationError`` is only raised to consumers that ask
a cancelled session for its result.
"""
from __future__ import annotations


class SpeedTestError(Exception):
    """Base class for every engine error."""


class ConfigError(SpeedTestError, ValueError):
    """The test configuration was rejected before starting."""


class TransportError(SpeedTestError):
    """The network operation failed while a session was running."""


class CancellationError(SpeedTestError):
    """The consumer aborted the session."""
