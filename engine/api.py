"""
Engine facade consumed by front-ends.

Owns one runner per test kind.  Use it as an async context manager so that
tests still in flight are cancelled when the consumer goes away::

    async with SpeedEngine() as engine:
        channel = engine.start_download_test(url, 10_000)
        async for event in channel:
            ...
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from .channel import EventChannel
from .config import TestConfig
from .constants import CHUNK_SIZE, DEFAULT_DURATION_MS, SAMPLE_INTERVAL, UPLOAD_BYTE_CAP
from .download import DownloadTester
from .runner import PhaseListener, TestKind, TestRunner
from .upload import UploadTester

log = logging.getLogger(__name__)


class SpeedEngine:
    """Starts, tracks and cancels download / upload tests."""

    def __init__(self, sample_interval: float = SAMPLE_INTERVAL) -> None:
        self.runners: Dict[TestKind, TestRunner] = {
            TestKind.DOWNLOAD: DownloadTester(sample_interval=sample_interval),
            TestKind.UPLOAD: UploadTester(sample_interval=sample_interval),
        }

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> SpeedEngine:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        """Cancel every running test and wait for its task to wind down."""
        for runner in self.runners.values():
            if runner.cancel():
                log.info("cancelling %s test on shutdown", runner.kind.value)
            await runner.wait()

    # -- Accessors ----------------------------------------------------------

    @property
    def download(self) -> DownloadTester:
        return self.runners[TestKind.DOWNLOAD]

    @property
    def upload(self) -> UploadTester:
        return self.runners[TestKind.UPLOAD]

    def subscribe(self, listener: PhaseListener) -> None:
        """Register *listener* for phase changes of every runner."""
        for runner in self.runners.values():
            runner.add_listener(listener)

    # -- Public methods -----------------------------------------------------

    def start_download_test(
        self,
        url: str,
        duration_cap_ms: int = DEFAULT_DURATION_MS,
    ) -> Optional[EventChannel]:
        """Start a download test; ``None`` if one is already running."""
        return self.start(TestKind.DOWNLOAD, TestConfig(url=url, duration_cap_ms=duration_cap_ms))

    def start_upload_test(
        self,
        url: str,
        duration_cap_ms: int = DEFAULT_DURATION_MS,
        chunk_size_bytes: int = CHUNK_SIZE,
        byte_cap: int = UPLOAD_BYTE_CAP,
    ) -> Optional[EventChannel]:
        """Start an upload test; ``None`` if one is already running."""
        config = TestConfig(
            url=url,
            duration_cap_ms=duration_cap_ms,
            chunk_size_bytes=chunk_size_bytes,
            byte_cap=byte_cap,
        )
        return self.start(TestKind.UPLOAD, config)

    def start(self, kind: TestKind, config: TestConfig) -> Optional[EventChannel]:
        return self.runners[kind].start(config)

    def cancel(self, kind: TestKind) -> bool:
        return self.runners[kind].cancel()

    def reset(self, kind: TestKind) -> None:
        self.runners[kind].reset()
