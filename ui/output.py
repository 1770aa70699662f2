"""
Output formatting -- JSON lines, JSON summary export, and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from engine.events import Error, Event, Finished


def event_to_json(kind: str, event: Event) -> str:
    """One event as a single JSON line, tagged with the test kind."""
    return json.dumps({"kind": kind, **event.to_dict()}, ensure_ascii=False)


def summarize_test(
    url: str,
    terminal: Optional[Event],
    samples: Optional[List[float]] = None,
) -> Dict[str, Any]:
    """Flatten one test's terminal event into a JSON-serialisable dict."""
    summary: Dict[str, Any] = {"url": url}

    if isinstance(terminal, Finished):
        summary.update(terminal.result.to_dict())
        summary["cancelled"] = terminal.cancelled
        summary["samples"] = [round(s, 2) for s in samples or []]
    elif isinstance(terminal, Error):
        summary["error"] = terminal.message
    else:
        summary["error"] = "no result"

    return summary


def create_result_json(
    download: Optional[Dict[str, Any]] = None,
    upload: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the summary dict written by ``--output``."""
    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if download is not None:
        result["download"] = download
    if upload is not None:
        result["upload"] = upload
    return result


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text helpers
# ---------------------------------------------------------------------------

def format_text_result(label: str, terminal: Optional[Event]) -> str:
    if isinstance(terminal, Finished):
        line = (
            f"{label}: {terminal.avg_mbps:.2f} Mbps "
            f"({terminal.total_bytes} bytes in {terminal.elapsed_ms / 1000:.2f} s)"
        )
        if terminal.cancelled:
            line += " [cancelled]"
        return line
    if isinstance(terminal, Error):
        return f"{label}: error: {terminal.message}"
    return f"{label}: no result"
