"""Tests for engine.channel -- ordering, closing, and result extraction."""

import unittest

from engine.channel import ChannelClosedError, EventChannel
from engine.errors import CancellationError, TransportError
from engine.events import Error, Finished, Progress, Started


def _progress(ms, n):
    return Progress(elapsed_ms=ms, bytes_transferred=n, instantaneous_mbps=0.0)


class TestEventChannel(unittest.IsolatedAsyncioTestCase):
    async def test_fifo_order(self):
        ch = EventChannel()
        events = [
            Started(url="http://h", duration_cap_ms=1000),
            _progress(250, 10),
            _progress(500, 20),
            Finished(elapsed_ms=600, total_bytes=20, avg_mbps=0.0),
        ]
        for e in events:
            ch.send(e)
        ch.close()
        self.assertEqual(await ch.collect(), events)

    async def test_send_after_close_raises(self):
        ch = EventChannel()
        ch.close()
        with self.assertRaises(ChannelClosedError):
            ch.send(_progress(1, 1))

    async def test_close_is_idempotent(self):
        ch = EventChannel()
        ch.send(_progress(1, 1))
        ch.close()
        ch.close()
        self.assertTrue(ch.closed)
        self.assertEqual(len(await ch.collect()), 1)

    async def test_iteration_ends_after_drain(self):
        ch = EventChannel()
        ch.close()
        self.assertEqual(await ch.collect(), [])
        # A second pass over a drained channel ends immediately.
        self.assertEqual(await ch.collect(), [])

    async def test_terminal_is_recorded(self):
        ch = EventChannel()
        err = Error(message="nope")
        ch.send(err)
        self.assertIs(ch.terminal, err)

    async def test_result_finished(self):
        ch = EventChannel()
        ch.send(Finished(elapsed_ms=1000, total_bytes=125_000, avg_mbps=1.0))
        ch.close()
        result = await ch.result()
        self.assertEqual(result.total_bytes, 125_000)

    async def test_result_error_raises_transport_error(self):
        ch = EventChannel()
        ch.send(Error(message="Connection failed"))
        ch.close()
        with self.assertRaises(TransportError) as cm:
            await ch.result()
        self.assertIn("Connection failed", str(cm.exception))

    async def test_result_cancelled_raises(self):
        ch = EventChannel()
        ch.send(Finished(elapsed_ms=10, total_bytes=0, avg_mbps=0.0, cancelled=True))
        ch.close()
        with self.assertRaises(CancellationError):
            await ch.result()

    async def test_result_without_terminal_raises(self):
        ch = EventChannel()
        ch.close()
        with self.assertRaises(CancellationError):
            await ch.result()


if __name__ == "__main__":
    unittest.main()
