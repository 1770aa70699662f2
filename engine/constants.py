"""
Shared constants used across all engine modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "speedhive/0.1 (+https://github.com/speedhive/speedhive)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    # Compressed bodies would make the byte counter lie about wire throughput.
    "Accept-Encoding": "identity",
}

UPLOAD_HEADERS = {
    **COMMON_HEADERS,
    "Content-Type": "application/octet-stream",
}

# ---------------------------------------------------------------------------
# Default endpoints
# ---------------------------------------------------------------------------

DEFAULT_DOWNLOAD_URL = "https://speed.hetzner.de/100MB.bin"
DEFAULT_UPLOAD_URL = "https://speed.cloudflare.com/__up"

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_DURATION_MS = 10_000     # tests run *up to* 10 s
MIN_DURATION_MS = 1
MAX_DURATION_MS = 300_000

SAMPLE_INTERVAL = 0.25           # 250 ms between progress samples

CONNECT_TIMEOUT = 5.0            # seconds to establish the connection
SOCK_READ_TIMEOUT = 5.0          # max silence on an open socket

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

CHUNK_SIZE = 256 * 1024          # 256 KB – good TCP window utilisation
UPLOAD_BYTE_CAP = 200 * 1024 * 1024  # 200 MiB hard cap on upload volume
