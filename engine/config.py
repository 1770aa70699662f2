"""
Test configuration and user configuration file support.

``TestConfig`` is the immutable per-test input handed to a runner.  User
defaults live in ``~/.speedhive/config.json``.

Supported keys::

    download_url = "https://..."   # GET target for download tests
    upload_url = "https://..."     # POST target for upload tests
    duration_ms = 10000            # time cap per test
    chunk_size = 262144            # upload chunk size in bytes
    byte_cap = 209715200           # upload volume cap in bytes
    log_level = "WARNING"
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from .constants import (
    CHUNK_SIZE,
    DEFAULT_DOWNLOAD_URL,
    DEFAULT_DURATION_MS,
    DEFAULT_UPLOAD_URL,
    MAX_DURATION_MS,
    MIN_DURATION_MS,
    UPLOAD_BYTE_CAP,
)
from .errors import ConfigError

_CONFIG_DIR = os.path.join(Path.home(), ".speedhive")
_CONFIG_FILE = "config.json"


def _config_path() -> str:
    return os.path.join(_CONFIG_DIR, _CONFIG_FILE)


# ---------------------------------------------------------------------------
# Per-test configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestConfig:
    """Inputs of a single test.  Upload-only fields are ignored by downloads."""

    __test__ = False

    url: str
    duration_cap_ms: int = DEFAULT_DURATION_MS
    chunk_size_bytes: int = CHUNK_SIZE
    byte_cap: int = UPLOAD_BYTE_CAP

    def validate(self) -> TestConfig:
        """Raise ``ConfigError`` if any field is unusable.  Returns self."""
        if not isinstance(self.url, str):
            raise ConfigError(f"URL must be a string: {self.url!r}")
        parts = urlsplit(self.url)
        if parts.scheme not in ("http", "https"):
            raise ConfigError(f"URL must use http or https: {self.url!r}")
        if not parts.hostname:
            raise ConfigError(f"URL has no host: {self.url!r}")
        if not MIN_DURATION_MS <= self.duration_cap_ms <= MAX_DURATION_MS:
            raise ConfigError(
                f"Duration must be between {MIN_DURATION_MS} and {MAX_DURATION_MS} ms"
            )
        if self.chunk_size_bytes <= 0:
            raise ConfigError("Chunk size must be positive")
        if self.byte_cap <= 0:
            raise ConfigError("Byte cap must be positive")
        return self


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULTS: Dict[str, Any] = {
    "download_url": DEFAULT_DOWNLOAD_URL,
    "upload_url": DEFAULT_UPLOAD_URL,
    "duration_ms": DEFAULT_DURATION_MS,
    "chunk_size": CHUNK_SIZE,
    "byte_cap": UPLOAD_BYTE_CAP,
    "log_level": "WARNING",
}


# ---------------------------------------------------------------------------
# Read / Write
# ---------------------------------------------------------------------------

def load_config() -> Dict[str, Any]:
    """Load config from disk, returning defaults for missing keys."""
    path = _config_path()
    config = dict(DEFAULTS)

    if not os.path.isfile(path):
        return config

    try:
        with open(path, encoding="utf-8") as fh:
            user = json.load(fh)
        if isinstance(user, dict):
            config.update(user)
    except (json.JSONDecodeError, IOError):
        pass  # corrupt file; use defaults

    return config


def save_config(config: Dict[str, Any]) -> str:
    """Write *config* to disk.  Returns the file path."""
    path = _config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)

    with open(path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)

    return path


def get_config_value(key: str) -> Any:
    """Get a single config value."""
    return load_config().get(key, DEFAULTS.get(key))


def set_config_value(key: str, value: Any) -> str:
    """Set a single config value and persist.  Returns file path."""
    config = load_config()
    config[key] = value
    return save_config(config)


def config_path() -> str:
    """Return the config file path (for display purposes)."""
    return _config_path()


# ---------------------------------------------------------------------------
# Building test configs
# ---------------------------------------------------------------------------

def _pick(override: Any, default: Any) -> Any:
    return default if override is None else override


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def download_config(config: Dict[str, Any], url: Optional[str] = None,
                    duration_ms: Optional[int] = None) -> TestConfig:
    """Build a validated download ``TestConfig`` from *config* plus overrides."""
    return TestConfig(
        url=url or config["download_url"],
        duration_cap_ms=_as_int("duration_ms", _pick(duration_ms, config["duration_ms"])),
    ).validate()


def upload_config(config: Dict[str, Any], url: Optional[str] = None,
                  duration_ms: Optional[int] = None,
                  chunk_size: Optional[int] = None,
                  byte_cap: Optional[int] = None) -> TestConfig:
    """Build a validated upload ``TestConfig`` from *config* plus overrides."""
    return TestConfig(
        url=url or config["upload_url"],
        duration_cap_ms=_as_int("duration_ms", _pick(duration_ms, config["duration_ms"])),
        chunk_size_bytes=_as_int("chunk_size", _pick(chunk_size, config["chunk_size"])),
        byte_cap=_as_int("byte_cap", _pick(byte_cap, config["byte_cap"])),
    ).validate()
