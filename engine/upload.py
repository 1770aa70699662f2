"""
Upload speed test module.

Streams one chunked HTTP(S) POST whose body is produced by an async
generator.  aiohttp pulls the next chunk only after the previous one has
been written, so bytes are counted once the transport accepted them.  The
test stops when the server has answered, so bytes still queued in socket
buffers are part of the measured window.
"""
from __future__ import annotations

import logging
import os
from typing import AsyncIterator

from .config import TestConfig
from .constants import UPLOAD_HEADERS
from .events import Started
from .runner import TestKind, TestRunner
from .stats import Clock

log = logging.getLogger(__name__)


class UploadTester(TestRunner):
    """
    Single-connection upload tester.

    Stops at the earlier of the time deadline or ``config.byte_cap``; the
    final chunk is truncated so the total never exceeds the cap.
    """

    kind = TestKind.UPLOAD

    def _started_event(self, config: TestConfig) -> Started:
        return Started(
            url=config.url,
            duration_cap_ms=config.duration_cap_ms,
            chunk_size_bytes=config.chunk_size_bytes,
        )

    def _body(self, config: TestConfig, clock: Clock) -> AsyncIterator[bytes]:
        buffer = os.urandom(config.chunk_size_bytes)

        async def _stream() -> AsyncIterator[bytes]:
            while not clock.expired():
                n = min(len(buffer), config.byte_cap - self.counter.value)
                if n <= 0:
                    break
                yield buffer if n == len(buffer) else buffer[:n]
                self.counter.add(n)
            log.debug("upload body ended after %.0f ms", clock.elapsed_ms())

        return _stream()

    async def _transfer(self, config: TestConfig, clock: Clock) -> None:
        async with self._open_session(UPLOAD_HEADERS) as http:
            async with http.post(config.url, data=self._body(config, clock)) as resp:
                resp.raise_for_status()
                await resp.read()
                log.debug("upload response %d after %.0f ms", resp.status, clock.elapsed_ms())
