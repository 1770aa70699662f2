#!/usr/bin/env python3
"""
SpeedHive CLI -- download / upload throughput measurement from the terminal.

Usage::

    python speedhive.py                         # rich dashboard, both tests
    python speedhive.py --download              # download test only
    python speedhive.py --upload --byte-cap 50000000
    python speedhive.py --simple                # plain text
    python speedhive.py --json                  # one JSON event per line
    python speedhive.py -o result.json          # save a summary file
    python speedhive.py --url https://host/file.bin --duration 5
    python speedhive.py --show-config           # print effective config
    python speedhive.py --set-config duration_ms=5000
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

from engine.api import SpeedEngine
from engine.channel import EventChannel
from engine.config import (
    DEFAULTS,
    TestConfig,
    config_path,
    download_config,
    get_config_value,
    load_config,
    set_config_value,
    upload_config,
)
from engine.errors import ConfigError
from engine.events import Error, Event, Finished, Progress, Started
from engine.runner import TestKind
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_config,
    print_error,
    print_final_results,
    print_header,
    print_speed_result,
)
from ui.log import configure_logging
from ui.output import (
    create_result_json,
    event_to_json,
    format_text_result,
    save_json,
    summarize_test,
)

log = logging.getLogger("speedhive")

_LABELS = {
    TestKind.DOWNLOAD: ("Download", "green"),
    TestKind.UPLOAD: ("Upload", "blue"),
}


# ---------------------------------------------------------------------------
# Parameter handling
# ---------------------------------------------------------------------------

def _build_configs(
    args: argparse.Namespace,
    config: Dict[str, Any],
) -> List[Tuple[TestKind, TestConfig]]:
    """Turn CLI arguments plus file config into validated test configs.

    Raises ``ConfigError`` if any resulting config is unusable.
    """
    duration_ms = None
    if args.duration is not None:
        duration_ms = int(round(args.duration * 1000))

    run_download = args.download or not args.upload
    run_upload = args.upload or not args.download

    plan: List[Tuple[TestKind, TestConfig]] = []
    if run_download:
        plan.append((
            TestKind.DOWNLOAD,
            download_config(config, url=args.url, duration_ms=duration_ms),
        ))
    if run_upload:
        plan.append((
            TestKind.UPLOAD,
            upload_config(
                config,
                url=args.upload_url,
                duration_ms=duration_ms,
                chunk_size=args.chunk_size,
                byte_cap=args.byte_cap,
            ),
        ))
    return plan


# ---------------------------------------------------------------------------
# Event consumption
# ---------------------------------------------------------------------------

async def _consume(
    channel: EventChannel,
    kind: TestKind,
    *,
    json_output: bool,
    show_ui: bool,
) -> Tuple[Optional[Event], List[float]]:
    """Render every event of one test; return its terminal event and samples."""
    label, color = _LABELS[kind]
    display = ProgressDisplay() if show_ui else None
    samples: List[float] = []

    try:
        async for event in channel:
            if json_output:
                print(event_to_json(kind.value, event), flush=True)

            if isinstance(event, Started) and display:
                display.start(f"{label}ing", event.duration_cap_ms)
            elif isinstance(event, Progress):
                samples.append(event.instantaneous_mbps)
                if display:
                    display.update(event)
            elif isinstance(event, Finished) and display:
                display.finish()
    finally:
        if display:
            display.stop()

    terminal = channel.terminal
    if show_ui:
        if isinstance(terminal, Finished):
            print_speed_result(terminal, f"{label} Results", color, samples)
        elif isinstance(terminal, Error):
            print_error(f"{label} Failed", terminal.message)

    return terminal, samples


# ---------------------------------------------------------------------------
# Core test sequence
# ---------------------------------------------------------------------------

async def run_speedtest(
    plan: List[Tuple[TestKind, TestConfig]],
    *,
    json_output: bool = False,
    simple: bool = False,
    output_file: Optional[str] = None,
) -> Tuple[Dict[str, Any], bool]:
    """Run each planned test in turn.

    Returns the JSON summary and whether every test finished without error.
    """
    show_ui = not json_output and not simple
    summaries: Dict[str, Dict[str, Any]] = {}
    ok = True

    if show_ui:
        print_header()

    async with SpeedEngine() as engine:
        for kind, config in plan:
            label, _ = _LABELS[kind]
            if show_ui:
                console.print(f"\n[bold]Testing {label.lower()} speed...[/bold] [dim]{config.url}[/dim]")

            channel = engine.start(kind, config)
            if channel is None:
                # Each test runs to completion before the next starts.
                log.warning("%s test already running; skipped", kind.value)
                continue

            terminal, samples = await _consume(
                channel, kind, json_output=json_output, show_ui=show_ui,
            )
            if isinstance(terminal, Error):
                ok = False
            summaries[kind.value] = summarize_test(config.url, terminal, samples)

            if simple:
                print(format_text_result(label, terminal))

    if show_ui:
        dl = engine.download.result if TestKind.DOWNLOAD.value in summaries else None
        ul = engine.upload.result if TestKind.UPLOAD.value in summaries else None
        print_final_results(dl, ul)

    result_json = create_result_json(
        download=summaries.get(TestKind.DOWNLOAD.value),
        upload=summaries.get(TestKind.UPLOAD.value),
    )

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result_json, ok


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _parse_assignment(text: str) -> Tuple[str, Any]:
    """Split ``KEY=VALUE``; VALUE is read as JSON when it parses, else kept as text."""
    key, sep, raw = text.partition("=")
    key = key.strip()
    if not sep or key not in DEFAULTS:
        raise ConfigError(f"Expected KEY=VALUE with KEY one of: {', '.join(sorted(DEFAULTS))}")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key, value


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SpeedHive -- download / upload throughput measurement",
    )
    # Test selection
    kind = parser.add_mutually_exclusive_group()
    kind.add_argument("--download", "-d", action="store_true", help="Run only the download test")
    kind.add_argument("--upload", "-u", action="store_true", help="Run only the upload test")

    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Print every event as a JSON line")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save a summary JSON file")

    # Test parameters
    parser.add_argument("--url", type=str, metavar="URL", help="Download URL (default: from config)")
    parser.add_argument("--upload-url", type=str, metavar="URL", help="Upload URL (default: from config)")
    parser.add_argument("--duration", type=float, metavar="SECS", help="Time cap per test in seconds (default: 10)")
    parser.add_argument("--chunk-size", type=int, metavar="BYTES", help="Upload chunk size (default: 262144)")
    parser.add_argument("--byte-cap", type=int, metavar="BYTES", help="Upload volume cap (default: 200 MiB)")

    # Diagnostics
    parser.add_argument("--log-level", type=str, metavar="LEVEL", help="Logging level (default: from config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Shortcut for --log-level DEBUG")
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration and exit")
    parser.add_argument("--set-config", type=str, metavar="KEY=VALUE", help="Persist one config value and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = _parser().parse_args(argv)
    config = load_config()

    level = "DEBUG" if args.verbose else (args.log_level or config.get("log_level", "WARNING"))
    try:
        configure_logging(level)
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if args.show_config:
        print_config(config, config_path())
        return

    if args.set_config:
        try:
            key, value = _parse_assignment(args.set_config)
        except ConfigError as exc:
            console.print(f"[red]Error: {exc}[/red]")
            sys.exit(1)
        path = set_config_value(key, value)
        console.print(f"{key} = {get_config_value(key)!r} [dim]({path})[/dim]")
        return

    try:
        plan = _build_configs(args, config)
    except ConfigError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    try:
        _, ok = asyncio.run(
            run_speedtest(
                plan,
                json_output=args.json,
                simple=args.simple,
                output_file=args.output,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except IOError as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
