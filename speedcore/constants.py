"""
Shared constants used across all speedcore modules.

Centralises defaults, limits, and tunables so they live in exactly one
place.  ``MeasurementSettings`` takes its defaults from here.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "EZSpeedTest/1.0"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    # Compressed bodies would under-report bytes on the wire.
    "Accept-Encoding": "identity",
}

# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 4
MIN_PING_COUNT = 1
MAX_PING_COUNT = 100

DEFAULT_PING_TIMEOUT = 5.0       # seconds per probe
PROBE_INTERVAL = 0.1             # pause between consecutive probes

WS_PORT = 8080                   # Ookla servers listen here for /ws
WS_CONNECT_TIMEOUT = 5.0
WS_HANDSHAKE_TIMEOUT = 2.0       # max wait for HELLO/YOURIP/CAPABILITIES
WS_MSG_TIMEOUT = 0.5

# ---------------------------------------------------------------------------
# Throughput
# ---------------------------------------------------------------------------

DEFAULT_DOWNLOAD_TIMEOUT = 30.0  # whole transfer
DEFAULT_REQUEST_TIMEOUT = 30.0   # one attempt, request -> headers
MIN_TIMEOUT = 0.1
MAX_TIMEOUT = 600.0

DEFAULT_BUFFER_SIZE = 64 * 1024  # 64 KiB read chunks
MIN_BUFFER_SIZE = 1024
MAX_BUFFER_SIZE = 16 * 1024 * 1024

MIN_DOWNLOAD_BYTES = 1024 * 1024          # 1 MiB
MAX_DOWNLOAD_BYTES = 100 * 1024 * 1024    # 100 MiB

# ---------------------------------------------------------------------------
# Transport retry
# ---------------------------------------------------------------------------

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0        # base; attempt n sleeps delay * 2**n
MAX_RETRIES_LIMIT = 10

TRANSIENT_STATUSES = frozenset({408, 429})   # plus every 5xx
