"""Unit tests for ui.output -- JSON lines, summaries, and text formatting."""

import json
import os
import tempfile
import unittest

from engine.events import Error, Finished, Progress, Started
from ui.output import (
    create_result_json,
    event_to_json,
    format_text_result,
    save_json,
    summarize_test,
)

FINISHED = Finished(elapsed_ms=10_000, total_bytes=62_500_000, avg_mbps=50.0)


class TestEventToJson(unittest.TestCase):
    def test_progress_line(self):
        line = event_to_json("download", Progress(elapsed_ms=250, bytes_transferred=10, instantaneous_mbps=0.00032))
        data = json.loads(line)
        self.assertEqual(data["kind"], "download")
        self.assertEqual(data["event"], "progress")
        self.assertEqual(data["data"]["bytes"], 10)

    def test_single_line(self):
        line = event_to_json("upload", Started(url="http://h/u", duration_cap_ms=1000, chunk_size_bytes=1))
        self.assertNotIn("\n", line)


class TestSummarizeTest(unittest.TestCase):
    def test_finished(self):
        s = summarize_test("http://h/f", FINISHED, [10.123, 20.0])
        self.assertEqual(s["url"], "http://h/f")
        self.assertEqual(s["total_bytes"], 62_500_000)
        self.assertAlmostEqual(s["avg_mbps"], 50.0)
        self.assertFalse(s["cancelled"])
        self.assertEqual(s["samples"], [10.12, 20.0])

    def test_error(self):
        s = summarize_test("http://h/f", Error(message="Connection failed"))
        self.assertEqual(s["error"], "Connection failed")
        self.assertNotIn("avg_mbps", s)

    def test_missing_terminal(self):
        self.assertIn("error", summarize_test("http://h/f", None))


class TestCreateResultJson(unittest.TestCase):
    def test_basic_structure(self):
        r = create_result_json(download={"avg_mbps": 1.0}, upload={"avg_mbps": 2.0})
        self.assertIn("timestamp", r)
        self.assertEqual(r["download"]["avg_mbps"], 1.0)
        self.assertEqual(r["upload"]["avg_mbps"], 2.0)

    def test_omits_missing_kinds(self):
        r = create_result_json(download={"avg_mbps": 1.0})
        self.assertNotIn("upload", r)


class TestSaveJson(unittest.TestCase):
    def test_roundtrip(self):
        data = {"key": "value", "number": 42}
        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False) as f:
            path = f.name
        try:
            save_json(data, path)
            with open(path) as fh:
                loaded = json.load(fh)
            self.assertEqual(loaded, data)
        finally:
            os.unlink(path)

    def test_atomic_no_partial(self):
        # If the directory doesn't exist, it should raise, not leave a temp file
        with self.assertRaises(IOError):
            save_json({"a": 1}, "/nonexistent/dir/file.json")


class TestFormatTextResult(unittest.TestCase):
    def test_finished(self):
        text = format_text_result("Download", FINISHED)
        self.assertIn("Download: 50.00 Mbps", text)
        self.assertIn("10.00 s", text)

    def test_cancelled(self):
        f = Finished(elapsed_ms=1000, total_bytes=0, avg_mbps=0.0, cancelled=True)
        self.assertIn("cancelled", format_text_result("Upload", f))

    def test_error(self):
        self.assertEqual(
            format_text_result("Upload", Error(message="HTTP 503: Service Unavailable")),
            "Upload: error: HTTP 503: Service Unavailable",
        )


if __name__ == "__main__":
    unittest.main()
