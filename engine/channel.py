"""
Ordered single-producer / single-consumer event stream.

A runner ``send``s events into the channel and ``close``s it exactly once,
right after the terminal event.  Consumers iterate with ``async for``; the
iteration ends when the channel is closed and drained.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional

from .errors import CancellationError, TransportError
from .events import Error, Event, Finished, is_terminal
from .stats import TestResult

_CLOSED = object()


class ChannelClosedError(RuntimeError):
    """Raised when sending into a closed channel."""


class EventChannel:
    """FIFO of lifecycle events backed by an unbounded ``asyncio.Queue``."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._drained = False
        self.terminal: Optional[Event] = None

    # -- Producer side ------------------------------------------------------

    def send(self, event: Event) -> None:
        if self._closed:
            raise ChannelClosedError(f"channel closed, dropping {event.name} event")
        if is_terminal(event):
            self.terminal = event
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    # -- Consumer side ------------------------------------------------------

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Event]:
        while not self._drained:
            item = await self._queue.get()
            if item is _CLOSED:
                self._drained = True
                return
            yield item

    async def collect(self) -> List[Event]:
        """Consume every remaining event until the channel closes."""
        return [event async for event in self]

    async def result(self) -> TestResult:
        """Drain the channel and return the session's ``TestResult``.

        Raises ``TransportError`` for an ``Error`` terminal event and
        ``CancellationError`` when the session was cancelled.
        """
        async for _ in self:
            pass
        terminal = self.terminal
        if isinstance(terminal, Error):
            raise TransportError(terminal.message)
        if isinstance(terminal, Finished):
            if terminal.cancelled:
                raise CancellationError("test was cancelled")
            return terminal.result
        raise CancellationError("channel closed without a terminal event")
