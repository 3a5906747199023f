"""
HTTP transport for throughput measurement.

The raw sender is an ``aiohttp.ClientSession`` owned by
:class:`HttpTransport`.  Cross-cutting behaviour is layered on top as an
ordered pipeline of stages, each an ``async (request, next) -> response``
function::

    send = build_pipeline(transport.send, retry_stage(...), timeout_stage(...))

The first stage listed is the outermost, so the call above reads as
"retry wraps timeout wraps raw send".  :meth:`HttpTransport.pipeline` also
adds :func:`dispatch_stage` innermost, so a request's ``on_dispatch`` hook
fires once per attempt.  Every pipeline call returns an
*un-read* ``aiohttp.ClientResponse``; whoever receives it must release it.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional

import aiohttp

from .constants import COMMON_HEADERS, TRANSIENT_STATUSES
from .settings import MeasurementSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Request:
    """One outgoing HTTP request."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    # Called each time an attempt actually goes out on the wire.
    on_dispatch: Optional[Callable[[], None]] = field(default=None, compare=False, repr=False)


Send = Callable[[Request], Awaitable[aiohttp.ClientResponse]]
Stage = Callable[[Request, Send], Awaitable[aiohttp.ClientResponse]]


def is_transient(status: int) -> bool:
    """5xx, 408 and 429 are worth another attempt."""
    return status >= 500 or status in TRANSIENT_STATUSES


# ---------------------------------------------------------------------------
# Pipeline composition
# ---------------------------------------------------------------------------

def build_pipeline(send: Send, *stages: Stage) -> Send:
    """Wrap *send* in *stages*; the first stage ends up outermost."""
    handler = send
    for stage in reversed(stages):
        handler = _bind(stage, handler)
    return handler


def _bind(stage: Stage, nxt: Send) -> Send:
    async def _handler(request: Request) -> aiohttp.ClientResponse:
        return await stage(request, nxt)

    return _handler


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

async def dispatch_stage(request: Request, nxt: Send) -> aiohttp.ClientResponse:
    """Notify ``request.on_dispatch`` right before each attempt is sent."""
    if request.on_dispatch is not None:
        request.on_dispatch()
    return await nxt(request)


def timeout_stage(seconds: float) -> Stage:
    """Bound one attempt (request dispatch to response headers)."""

    async def _stage(request: Request, nxt: Send) -> aiohttp.ClientResponse:
        return await asyncio.wait_for(nxt(request), timeout=seconds)

    return _stage


def retry_stage(
    max_retries: int,
    base_delay: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Stage:
    """Retry transient failures with exponential backoff.

    Retry *n* (1-based) waits ``base_delay * 2 ** n`` seconds.  Connection
    errors and per-attempt timeouts are retried, and so are transient
    statuses.  When retries run out, the last transient response is returned
    as-is, or the last exception is re-raised.
    """

    async def _stage(request: Request, nxt: Send) -> aiohttp.ClientResponse:
        attempt = 0
        while True:
            try:
                response = await nxt(request)
            except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as exc:
                if attempt >= max_retries:
                    raise
                reason = f"{type(exc).__name__}: {exc}"
            else:
                if not is_transient(response.status) or attempt >= max_retries:
                    return response
                reason = f"HTTP {response.status}"
                response.release()

            attempt += 1
            delay = base_delay * 2 ** attempt
            logger.warning(
                "Retry %d/%d for %s %s after %.1fs (%s)",
                attempt, max_retries, request.method, request.url, delay, reason,
            )
            await sleep(delay)

    return _stage


# ---------------------------------------------------------------------------
# Raw transport
# ---------------------------------------------------------------------------

class HttpTransport:
    """Async context-manager owning the shared ``aiohttp.ClientSession``.

    The session carries no timeout of its own; deadlines are applied per
    call so one run's limits never leak into another's.
    """

    def __init__(self, settings: MeasurementSettings) -> None:
        self.settings = settings
        self._session: Optional[aiohttp.ClientSession] = None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> HttpTransport:
        headers = {**COMMON_HEADERS, "User-Agent": self.settings.user_agent}
        self._session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=None),
            auto_decompress=False,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._session:
            await self._session.close()
            self._session = None

    # -- Internal helpers ---------------------------------------------------

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "HttpTransport must be used as an async context manager "
                "(async with HttpTransport(settings) as transport: ...)"
            )
        return self._session

    # -- Public methods -----------------------------------------------------

    async def send(self, request: Request) -> aiohttp.ClientResponse:
        """Dispatch *request* and return once response headers arrive."""
        session = self._ensure_session()
        logger.debug("%s %s", request.method, request.url)
        return await session.request(request.method, request.url, headers=request.headers)

    def pipeline(self) -> Send:
        """The standard retry -> timeout -> dispatch -> send chain."""
        return build_pipeline(
            self.send,
            retry_stage(self.settings.max_retries, self.settings.retry_delay),
            timeout_stage(self.settings.request_timeout),
            dispatch_stage,
        )
