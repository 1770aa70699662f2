"""
Test runner state machine shared by the download and upload testers.

A runner owns at most one session at a time.  ``start`` spawns a background
task that wires the clock, the byte counter, the sampler and the
kind-specific transfer loop together, and streams lifecycle events through
an ``EventChannel``::

    IDLE --start--> RUNNING --deadline / cap / stream end / cancel--> FINISHED
                            --transport failure-------------------> ERROR
    FINISHED | ERROR --reset--> IDLE

The runner stops its sampler *before* it writes the terminal event, and every
progress emission is checked against the session tag and phase, so no
``Progress`` can ever follow ``Finished`` or ``Error``.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import aiohttp

from .channel import EventChannel
from .config import TestConfig
from .constants import CONNECT_TIMEOUT, SAMPLE_INTERVAL, SOCK_READ_TIMEOUT
from .errors import TransportError
from .events import Error, Finished, Progress, Started
from .stats import ByteCounter, Clock, ProgressSample, TestResult

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

class TestKind(str, enum.Enum):
    __test__ = False

    DOWNLOAD = "download"
    UPLOAD = "upload"


class Phase(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"
    ERROR = "error"


@dataclass
class TestSession:
    """Mutable state of one in-flight test."""

    __test__ = False

    id: int
    kind: TestKind
    config: TestConfig
    phase: Phase = Phase.RUNNING
    start_instant: float = 0.0
    bytes_transferred: int = 0
    last_sample_instant: Optional[float] = None


PhaseListener = Callable[[TestKind, Phase], None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def describe_transport_error(exc: BaseException) -> str:
    """Short, user-facing message for a failed network operation."""
    if isinstance(exc, aiohttp.ClientResponseError):
        return f"HTTP {exc.status}: {exc.message}"
    if isinstance(exc, asyncio.TimeoutError):
        return "Connection timeout"
    if isinstance(exc, aiohttp.ClientPayloadError):
        return f"Connection lost mid-stream: {exc}"
    if isinstance(exc, aiohttp.ClientConnectorError):
        return f"Connection failed: {exc}"
    return str(exc) or exc.__class__.__name__


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class TestRunner:
    """
    Base class for a single-kind speed test.

    Subclasses set ``kind`` and implement ``_transfer``, which moves bytes
    and feeds ``self.counter`` until the stream ends or a cap is reached.
    Hitting the time deadline, cancelling and error reporting are handled
    here.
    """

    __test__ = False

    kind: TestKind

    def __init__(self, sample_interval: float = SAMPLE_INTERVAL) -> None:
        self.sample_interval = sample_interval
        self.counter = ByteCounter()
        self.session: Optional[TestSession] = None
        self.result: Optional[TestResult] = None
        self.error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._cancel: Optional[asyncio.Event] = None
        self._listeners: List[PhaseListener] = []
        self._session_ids = 0

    # -- State --------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self.session.phase if self.session else Phase.IDLE

    @property
    def running(self) -> bool:
        return self.phase is Phase.RUNNING

    def add_listener(self, listener: PhaseListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PhaseListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_phase(self, session: TestSession, phase: Phase) -> None:
        session.phase = phase
        log.debug("%s session %d -> %s", self.kind.value, session.id, phase.value)
        for listener in list(self._listeners):
            try:
                listener(self.kind, phase)
            except Exception:
                log.exception("phase listener %r failed", listener)

    # -- Public API ---------------------------------------------------------

    def start(self, config: TestConfig) -> Optional[EventChannel]:
        """
        Begin a test and return the channel its events arrive on.

        Returns ``None`` without touching the current session if a test is
        already running.  Raises ``ConfigError`` for an unusable *config*.
        Must be called from inside a running event loop.
        """
        if self.running:
            log.debug("%s test already running; start ignored", self.kind.value)
            return None

        config.validate()
        loop = asyncio.get_running_loop()

        self.counter.reset()
        self.result = None
        self.error = None
        self._session_ids += 1
        session = TestSession(id=self._session_ids, kind=self.kind, config=config)
        self.session = session
        self._cancel = asyncio.Event()
        self._set_phase(session, Phase.RUNNING)

        channel = EventChannel()
        self._task = loop.create_task(
            self._run(session, channel, self._cancel),
            name=f"speedhive-{self.kind.value}-{session.id}",
        )
        return channel

    def cancel(self) -> bool:
        """Abort the running test.  It finishes early with ``cancelled=True``."""
        if not self.running or self._cancel is None:
            return False
        log.debug("%s session %d cancel requested", self.kind.value, self.session.id)
        self._cancel.set()
        return True

    async def wait(self) -> None:
        """Wait for the background task of the current session to end."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def reset(self) -> None:
        """Return to ``IDLE``, dropping counters and cached results.

        Ignored while a test is running; cancel it first.
        """
        if self.running:
            log.debug("%s test running; reset ignored", self.kind.value)
            return
        self.counter.reset()
        self.result = None
        self.error = None
        self.session = None
        self._task = None
        self._cancel = None
        for listener in list(self._listeners):
            try:
                listener(self.kind, Phase.IDLE)
            except Exception:
                log.exception("phase listener %r failed", listener)

    # -- Subclass hooks -----------------------------------------------------

    def _started_event(self, config: TestConfig) -> Started:
        return Started(url=config.url, duration_cap_ms=config.duration_cap_ms)

    async def _transfer(self, config: TestConfig, clock: Clock) -> None:
        """Move bytes until the stream ends or a cap is hit."""
        raise NotImplementedError

    async def _guarded_transfer(self, config: TestConfig, clock: Clock) -> None:
        try:
            await self._transfer(config, clock)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise TransportError(describe_transport_error(exc)) from exc

    def _open_session(self, headers: dict) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(limit=1, limit_per_host=1, force_close=True)
        timeout = aiohttp.ClientTimeout(
            total=None, connect=CONNECT_TIMEOUT, sock_read=SOCK_READ_TIMEOUT
        )
        return aiohttp.ClientSession(headers=headers, connector=connector, timeout=timeout)

    # -- Background task ----------------------------------------------------

    async def _run(self, session: TestSession, channel: EventChannel,
                   cancel: asyncio.Event) -> None:
        config = session.config
        clock = Clock(config.duration_cap_ms)
        session.start_instant = clock.start
        channel.send(self._started_event(config))
        log.info("%s test started: %s (cap %d ms)", self.kind.value, config.url,
                 config.duration_cap_ms)

        sampler = asyncio.create_task(self._sample(session, channel, clock))
        transfer = asyncio.create_task(self._guarded_transfer(config, clock))
        cancel_wait = asyncio.create_task(cancel.wait())

        snapshot: Optional[TestResult] = None
        failure: Optional[str] = None
        cancelled = False
        interrupted = False

        try:
            while True:
                done, _ = await asyncio.wait(
                    {transfer, cancel_wait},
                    timeout=clock.remaining(),
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if done or clock.expired():
                    break

            elapsed = clock.elapsed_ms()
            if transfer.done():
                transfer.result()
            elif cancel_wait.done():
                cancelled = True
            snapshot = TestResult.at(self.counter.value, elapsed)

        except TransportError as exc:
            failure = str(exc)
        except asyncio.CancelledError:
            # The runner task itself was cancelled (loop shutdown, facade close).
            interrupted = True
            cancelled = True
            snapshot = TestResult.at(self.counter.value, clock.elapsed_ms())
        except Exception as exc:
            log.exception("%s test crashed", self.kind.value)
            failure = f"Unexpected error: {exc}"
        finally:
            for task in (sampler, transfer, cancel_wait):
                task.cancel()
            await asyncio.gather(sampler, transfer, cancel_wait, return_exceptions=True)

        if failure is not None:
            log.warning("%s test failed: %s", self.kind.value, failure)
            self.counter.reset()
            session.bytes_transferred = 0
            self.error = failure
            self._set_phase(session, Phase.ERROR)
            channel.send(Error(message=failure))
        else:
            assert snapshot is not None
            log.info(
                "%s test finished%s: %d bytes in %.0f ms (%.2f Mbps)",
                self.kind.value, " (cancelled)" if cancelled else "",
                snapshot.total_bytes, snapshot.elapsed_ms, snapshot.avg_mbps,
            )
            session.bytes_transferred = snapshot.total_bytes
            self.result = snapshot
            self._set_phase(session, Phase.FINISHED)
            channel.send(Finished.from_result(snapshot, cancelled=cancelled))
        channel.close()

        if interrupted:
            raise asyncio.CancelledError()

    # -- Sampler ------------------------------------------------------------

    async def _sample(self, session: TestSession, channel: EventChannel,
                      clock: Clock) -> None:
        tick = 1
        last_elapsed = 0.0

        while True:
            delay = clock.until(tick * self.sample_interval)
            if delay > 0:
                await asyncio.sleep(delay)

            elapsed = clock.elapsed_ms()
            if elapsed >= clock.duration_ms:
                return
            # Skip ticks missed while the loop was busy.
            tick = max(tick + 1, int(elapsed / 1000 / self.sample_interval) + 1)
            if elapsed <= last_elapsed:
                continue
            last_elapsed = elapsed

            sample = ProgressSample.take(self.counter.value, elapsed)
            if not self._emit_progress(session, channel, sample):
                return

    def _emit_progress(self, session: TestSession, channel: EventChannel,
                       sample: ProgressSample) -> bool:
        """Send a ``Progress`` event unless the session is no longer live."""
        if self.session is not session or session.phase is not Phase.RUNNING:
            return False
        if channel.closed:
            return False
        session.bytes_transferred = sample.bytes_transferred
        session.last_sample_instant = session.start_instant + sample.elapsed_ms / 1000
        channel.send(Progress.from_sample(sample))
        return True
