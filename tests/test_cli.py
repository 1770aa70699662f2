"""Tests for the speedhive command line front-end."""

import contextlib
import io
import json
import logging
import os
import tempfile
import unittest
from unittest import mock

from aiohttp import test_utils, web

from engine.config import DEFAULTS
from engine.constants import DEFAULT_DURATION_MS
from engine.errors import ConfigError
from engine.runner import TestKind


def _args(*argv):
    from speedhive import _parser
    return _parser().parse_args(list(argv))


def _plan(*argv, config=None):
    from speedhive import _build_configs
    return _build_configs(_args(*argv), dict(config or DEFAULTS))


class TestBuildConfigs(unittest.TestCase):
    def test_default_runs_both(self):
        plan = _plan()
        self.assertEqual([k for k, _ in plan], [TestKind.DOWNLOAD, TestKind.UPLOAD])
        self.assertEqual(plan[0][1].duration_cap_ms, DEFAULT_DURATION_MS)

    def test_download_only(self):
        plan = _plan("--download", "--url", "http://h/f.bin")
        self.assertEqual(len(plan), 1)
        kind, cfg = plan[0]
        self.assertEqual(kind, TestKind.DOWNLOAD)
        self.assertEqual(cfg.url, "http://h/f.bin")

    def test_upload_only_with_overrides(self):
        plan = _plan("--upload", "--upload-url", "http://h/up",
                     "--chunk-size", "1024", "--byte-cap", "4096", "--duration", "2.5")
        kind, cfg = plan[0]
        self.assertEqual(kind, TestKind.UPLOAD)
        self.assertEqual(cfg.chunk_size_bytes, 1024)
        self.assertEqual(cfg.byte_cap, 4096)
        self.assertEqual(cfg.duration_cap_ms, 2500)

    def test_download_and_upload_exclusive(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                _args("--download", "--upload")

    def test_bad_url(self):
        with self.assertRaises(ConfigError):
            _plan("--download", "--url", "ftp://h/f")

    def test_negative_duration(self):
        with self.assertRaises(ConfigError):
            _plan("--duration", "-1")

    def test_config_file_values_used(self):
        config = dict(DEFAULTS, download_url="http://mirror/x", duration_ms=3000)
        plan = _plan("--download", config=config)
        self.assertEqual(plan[0][1].url, "http://mirror/x")
        self.assertEqual(plan[0][1].duration_cap_ms, 3000)


def make_app() -> web.Application:
    async def _small(request):
        return web.Response(body=b"x" * 50_000)

    async def _sink(request):
        await request.read()
        return web.Response(text="ok")

    app = web.Application()
    app.router.add_get("/small", _small)
    app.router.add_post("/sink", _sink)
    return app


class TestRunSpeedtest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.server = test_utils.TestServer(make_app())
        await self.server.start_server()

    async def asyncTearDown(self):
        await self.server.close()

    def _plan(self, *extra):
        return _plan(
            "--url", str(self.server.make_url("/small")),
            "--upload-url", str(self.server.make_url("/sink")),
            "--duration", "2", "--byte-cap", "131072", "--chunk-size", "65536",
            *extra,
        )

    async def test_json_lines(self):
        from speedhive import run_speedtest

        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            summary, ok = await run_speedtest(self._plan(), json_output=True)

        self.assertTrue(ok)
        lines = [json.loads(l) for l in out.getvalue().splitlines() if l.strip()]
        kinds = [(l["kind"], l["event"]) for l in lines]
        self.assertEqual(kinds[0], ("download", "started"))
        self.assertIn(("download", "finished"), kinds)
        self.assertEqual(kinds[-1], ("upload", "finished"))
        self.assertEqual(summary["download"]["total_bytes"], 50_000)
        self.assertEqual(summary["upload"]["total_bytes"], 131072)

    async def test_simple_output_and_file(self):
        from speedhive import run_speedtest

        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "result.json")
            out = io.StringIO()
            with contextlib.redirect_stdout(out):
                _, ok = await run_speedtest(self._plan("--download"), simple=True, output_file=path)
            with open(path) as fh:
                saved = json.load(fh)

        self.assertTrue(ok)
        self.assertIn("Download:", out.getvalue())
        self.assertEqual(saved["download"]["total_bytes"], 50_000)
        self.assertNotIn("upload", saved)

    async def test_error_reported(self):
        from speedhive import run_speedtest

        plan = _plan("--download", "--url", str(self.server.make_url("/missing")))
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            summary, ok = await run_speedtest(plan, simple=True)

        self.assertFalse(ok)
        self.assertIn("404", summary["download"]["error"])
        self.assertIn("error", out.getvalue())


class TestMain(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self._handlers = root.handlers[:]
        self._level = root.level
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.config_file = os.path.join(tmpdir.name, "config.json")
        patcher = mock.patch("engine.config._config_path", return_value=self.config_file)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        root = logging.getLogger()
        root.handlers = self._handlers
        root.setLevel(self._level)

    def test_invalid_config_exits(self):
        from speedhive import main

        with self.assertRaises(SystemExit) as cm:
            main(["--download", "--url", "gopher://nowhere"])
        self.assertEqual(cm.exception.code, 1)

    def test_wrongly_typed_config_file_exits(self):
        from speedhive import main

        with open(self.config_file, "w") as fh:
            json.dump({"duration_ms": "ten seconds"}, fh)
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            with self.assertRaises(SystemExit) as cm:
                main(["--download", "--simple"])
        self.assertEqual(cm.exception.code, 1)
        self.assertIn("duration_ms", out.getvalue())

    def test_bad_log_level_exits(self):
        from speedhive import main

        with self.assertRaises(SystemExit) as cm:
            main(["--log-level", "CHATTY", "--show-config"])
        self.assertEqual(cm.exception.code, 1)

    def test_show_config(self):
        from speedhive import main

        with mock.patch("speedhive.print_config") as printer:
            main(["--show-config"])
        printer.assert_called_once()
        self.assertIn("download_url", printer.call_args[0][0])

    def test_set_config_persists_value(self):
        from speedhive import main

        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            main(["--set-config", "duration_ms=5000"])
            main(["--set-config", "upload_url=http://mirror/up"])
        with open(self.config_file) as fh:
            saved = json.load(fh)
        self.assertEqual(saved["duration_ms"], 5000)
        self.assertEqual(saved["upload_url"], "http://mirror/up")
        self.assertIn("duration_ms = 5000", out.getvalue())

    def test_set_config_unknown_key_exits(self):
        from speedhive import main

        with contextlib.redirect_stdout(io.StringIO()):
            with self.assertRaises(SystemExit) as cm:
                main(["--set-config", "colour=blue"])
        self.assertEqual(cm.exception.code, 1)
        self.assertFalse(os.path.exists(self.config_file))

    def test_verbose_sets_debug(self):
        from speedhive import main

        with mock.patch("speedhive.print_config"):
            main(["-v", "--show-config"])
        self.assertEqual(logging.getLogger().level, logging.DEBUG)


class TestConfigureLogging(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self._handlers = root.handlers[:]
        self._level = root.level

    def tearDown(self):
        root = logging.getLogger()
        root.handlers = self._handlers
        root.setLevel(self._level)

    def test_installs_rich_handler(self):
        from rich.logging import RichHandler
        from ui.log import configure_logging

        configure_logging("info")
        root = logging.getLogger()
        self.assertEqual(root.level, logging.INFO)
        self.assertTrue(any(isinstance(h, RichHandler) for h in root.handlers))

    def test_unknown_level(self):
        from ui.log import configure_logging

        with self.assertRaises(ValueError):
            configure_logging("LOUD")


if __name__ == "__main__":
    unittest.main()
