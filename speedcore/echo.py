"""
Echo capabilities used by the latency probe.

An echo capability sends one request/reply probe to a host and returns the
round-trip time in milliseconds, raising ``EchoFailed`` when no usable
reply arrives.  Two implementations are provided:

``SystemPing``
    One ICMP echo through the operating system's ``ping`` binary (no raw
    socket privileges needed).

``WebSocketEcho``
    The Ookla speedtest protocol over WebSocket::

        1. Connect to  wss://{host}:{port}/ws
        2. Receive  HELLO / YOURIP / CAPABILITIES
        3. Send     PING {timestamp_ms}
        4. Receive  PONG {server_timestamp}
"""
from __future__ import annotations

import asyncio
import logging
import platform
import re
import time
from math import ceil
from typing import Dict, List, Optional, Protocol

import websockets
import websockets.exceptions

from .constants import (
    COMMON_HEADERS,
    WS_CONNECT_TIMEOUT,
    WS_HANDSHAKE_TIMEOUT,
    WS_MSG_TIMEOUT,
    WS_PORT,
)
from .errors import EchoFailed

logger = logging.getLogger(__name__)


class EchoTransport(Protocol):
    """Capability the latency probe depends on."""

    async def echo(self, host: str, timeout: float) -> float:
        """Probe *host* once and return the round-trip time in ms."""
        ...


# ---------------------------------------------------------------------------
# System ping
# ---------------------------------------------------------------------------

_LESS_THAN = re.compile(r"time<(\d+)", re.IGNORECASE)
_LATENCY = re.compile(r"time\s*[=<]\s*(\d+(?:\.\d+)?)\s*ms", re.IGNORECASE)


def parse_ping_latency_ms(output: str) -> Optional[float]:
    """Parse the latency value out of ``ping`` output.

    Handles the common formats:

    - Linux/macOS: ``time=12.3 ms``
    - Windows: ``time=12ms`` or ``time<1ms``

    Windows ``time<N`` is reported as N/2 (midpoint estimate).  Returns
    ``None`` when nothing parseable is found.

        >>> parse_ping_latency_ms("64 bytes from 1.1.1.1: icmp_seq=1 ttl=57 time=12.3 ms")
        12.3
        >>> parse_ping_latency_ms("Reply from 10.0.0.1: bytes=32 time<1ms TTL=64")
        0.5
        >>> parse_ping_latency_ms("Request timed out.") is None
        True
    """
    if not output:
        return None

    match = _LESS_THAN.search(output)
    if match:
        return float(match.group(1)) / 2.0

    match = _LATENCY.search(output)
    if match:
        return float(match.group(1))

    return None


def build_ping_command(host: str, timeout: float, system: str) -> List[str]:
    """Build a single-echo ``ping`` command line for *system*."""
    if system == "Windows":
        return ["ping", "-n", "1", "-w", str(max(1, int(timeout * 1000))), host]
    if system == "Linux":
        return ["ping", "-c", "1", "-W", str(max(1, ceil(timeout))), host]
    # macOS/BSD: -W has different units there; the subprocess wait bounds it.
    return ["ping", "-c", "1", host]


class SystemPing:
    """ICMP echo via the OS ``ping`` command."""

    def __init__(self, system: Optional[str] = None) -> None:
        self.system = system or platform.system()

    async def echo(self, host: str, timeout: float) -> float:
        cmd = build_ping_command(host, timeout, self.system)
        logger.debug("Executing ping: %s", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise EchoFailed(f"cannot run ping: {exc}") from exc

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout + 0.5)
        except asyncio.TimeoutError:
            raise EchoFailed(f"ping to {host} timed out") from None
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        output = stdout.decode(errors="replace")
        if proc.returncode != 0:
            raise EchoFailed(f"ping to {host} exited with {proc.returncode}")

        latency = parse_ping_latency_ms(output)
        if latency is None:
            raise EchoFailed(f"unparseable ping output: {output[:100]!r}")
        return latency


# ---------------------------------------------------------------------------
# WebSocket echo (Ookla protocol)
# ---------------------------------------------------------------------------

class WebSocketEcho:
    """PING/PONG latency over a per-host WebSocket connection.

    Connections are opened lazily and reused for the probes of one run; use
    as an async context manager (or call :meth:`aclose`) to release them.
    A probe that times out or errors drops its connection so a late PONG
    can never be matched to the next PING.
    """

    def __init__(self, port: int = WS_PORT, secure: bool = True) -> None:
        self.port = port
        self.secure = secure
        self._connections: Dict[str, "websockets.ClientConnection"] = {}

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> WebSocketEcho:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        connections, self._connections = self._connections, {}
        for ws in connections.values():
            await ws.close()

    # -- Public -------------------------------------------------------------

    def url_for(self, host: str) -> str:
        scheme = "wss" if self.secure else "ws"
        return f"{scheme}://{host}:{self.port}/ws"

    async def echo(self, host: str, timeout: float) -> float:
        try:
            ws = await self._connection(host)
            send_time = time.perf_counter() * 1000
            await ws.send(f"PING {int(send_time)}")
            msg = await asyncio.wait_for(ws.recv(), timeout=timeout)
            recv_time = time.perf_counter() * 1000
        except asyncio.TimeoutError:
            await self._drop(host)
            raise EchoFailed(f"ping to {host} timed out") from None
        except (websockets.exceptions.WebSocketException, OSError) as exc:
            await self._drop(host)
            raise EchoFailed(str(exc)) from exc

        if isinstance(msg, bytes):
            msg = msg.decode(errors="replace")
        if not msg.startswith("PONG"):
            raise EchoFailed(f"Unexpected response: {msg[:50]}")
        return recv_time - send_time

    # -- Internals ----------------------------------------------------------

    async def _connection(self, host: str) -> "websockets.ClientConnection":
        ws = self._connections.get(host)
        if ws is None:
            ws = await websockets.connect(
                self.url_for(host),
                additional_headers=COMMON_HEADERS,
                ping_interval=None,
                close_timeout=2,
                open_timeout=WS_CONNECT_TIMEOUT,
            )
            await _read_handshake(ws)
            self._connections[host] = ws
        return ws

    async def _drop(self, host: str) -> None:
        ws = self._connections.pop(host, None)
        if ws is not None:
            await ws.close()


async def _read_handshake(ws) -> None:  # noqa: ANN001
    """Consume HELLO / YOURIP / CAPABILITIES messages."""
    start = time.perf_counter()
    received = 0

    while time.perf_counter() - start < WS_HANDSHAKE_TIMEOUT:
        try:
            msg = await asyncio.wait_for(ws.recv(), timeout=WS_MSG_TIMEOUT)
        except asyncio.TimeoutError:
            break

        if isinstance(msg, str) and msg.startswith("HELLO"):
            logger.debug("WebSocket server version: %s", msg[6:].strip())

        received += 1
        if received >= 3:
            break
