"""
Download speed test module.

Streams a single HTTP(S) GET response body and counts every byte read.  The
runner's deadline abandons the in-flight read, so the test runs *up to*
``duration_cap_ms`` and stops early only when the body ends.
"""
from __future__ import annotations

import logging

from .config import TestConfig
from .constants import CHUNK_SIZE, COMMON_HEADERS
from .runner import TestKind, TestRunner
from .stats import Clock

log = logging.getLogger(__name__)


class DownloadTester(TestRunner):
    """Single-connection download tester."""

    kind = TestKind.DOWNLOAD

    def __init__(self, *args, read_size: int = CHUNK_SIZE, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.read_size = read_size

    async def _transfer(self, config: TestConfig, clock: Clock) -> None:
        async with self._open_session(COMMON_HEADERS) as http:
            async with http.get(config.url) as resp:
                resp.raise_for_status()
                log.debug(
                    "download response %d, content-length %s",
                    resp.status, resp.content_length,
                )
                while True:
                    chunk = await resp.content.read(self.read_size)
                    if not chunk:
                        break
                    self.counter.add(len(chunk))

        log.debug("download stream ended after %.0f ms", clock.elapsed_ms())
