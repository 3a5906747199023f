"""
Download throughput measurement.

A single streamed HTTP GET, read in ``buffer_size`` chunks so memory stays
bounded regardless of payload size.  The whole transfer is bounded by
``download_timeout`` and by the caller's cancel event, whichever fires
first.  A transfer that does not finish cleanly yields an error, never a
partial-rate report.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import aiohttp

from .deadline import check_cancelled, race
from .errors import Cancelled, HttpError, MeasurementTimeout, NoDataTransferred
from .settings import MeasurementSettings
from .stats import bits_per_second, format_bytes
from .transport import Request, Send

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, float], None]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ThroughputReport:
    """One complete, uninterrupted download measurement."""

    source_url: str
    bits_per_second: float
    bytes_transferred: int
    duration_seconds: float
    timestamp: datetime

    @property
    def mbps(self) -> float:
        return self.bits_per_second / 1_000_000

    @property
    def megabytes_per_second(self) -> float:
        return self.mbps / 8

    @property
    def kilobytes_per_second(self) -> float:
        return self.mbps * 1000 / 8

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_url": self.source_url,
            "bits_per_second": round(self.bits_per_second, 2),
            "mbps": round(self.mbps, 2),
            "megabytes_per_second": round(self.megabytes_per_second, 3),
            "bytes_transferred": self.bytes_transferred,
            "duration_seconds": round(self.duration_seconds, 3),
            "timestamp": self.timestamp.isoformat(),
        }


# ---------------------------------------------------------------------------
# Probe
# ---------------------------------------------------------------------------

class ThroughputProbe:
    """
    Streamed download speed tester.

    *send* is the transport capability (normally ``HttpTransport.pipeline()``),
    so transient-failure retries happen below this layer.  Once a response
    has been handed over, nothing is retried.
    """

    def __init__(
        self,
        send: Send,
        settings: Optional[MeasurementSettings] = None,
    ) -> None:
        self.send = send
        self.settings = settings or MeasurementSettings()

    async def measure(
        self,
        url: str,
        cancel: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ThroughputReport:
        logger.info("Starting download measurement from: %s", url)
        check_cancelled(cancel)

        timeout = self.settings.download_timeout
        try:
            total, elapsed = await race(
                self._transfer(url, on_progress),
                timeout=timeout,
                cancel=cancel,
            )
        except Cancelled:
            logger.info("Download measurement was cancelled by user")
            raise
        except MeasurementTimeout:
            logger.warning("Download measurement timed out after %.1fs", timeout)
            raise MeasurementTimeout(
                f"Download measurement timed out after {timeout}s"
            ) from None

        if total == 0:
            raise NoDataTransferred(f"No data was downloaded from {url}")
        if elapsed <= 0:
            # Clock granularity on a tiny body; rate would be meaningless.
            raise NoDataTransferred(f"Transfer from {url} finished in zero time")

        if total < self.settings.min_download_bytes:
            logger.warning(
                "Only %s downloaded from %s; the rate may not be representative",
                format_bytes(total), url,
            )

        report = ThroughputReport(
            source_url=url,
            bits_per_second=bits_per_second(total, elapsed),
            bytes_transferred=total,
            duration_seconds=elapsed,
            timestamp=datetime.now(timezone.utc),
        )
        logger.info(
            "Download measurement completed: %.2f Mbps, %d bytes in %.2fs",
            report.mbps, report.bytes_transferred, report.duration_seconds,
        )
        return report

    # -- Internals ----------------------------------------------------------

    async def _transfer(
        self,
        url: str,
        on_progress: Optional[ProgressCallback],
    ) -> Tuple[int, float]:
        """Stream the body; return (bytes, seconds since the final attempt was sent)."""
        dispatched_at = time.perf_counter()

        def _stamp() -> None:
            nonlocal dispatched_at
            dispatched_at = time.perf_counter()

        try:
            response = await self.send(Request("GET", url, on_dispatch=_stamp))
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise HttpError(f"Request to {url} failed: {exc}", url=url) from exc

        try:
            if not 200 <= response.status < 300:
                raise HttpError(
                    f"HTTP {response.status} from {url}",
                    status=response.status,
                    url=url,
                )
            logger.debug(
                "Download response received, Content-Length: %s",
                response.content_length,
            )

            chunk_size = self.settings.buffer_size
            limit = self.settings.max_download_bytes
            total = 0
            started = dispatched_at

            while total < limit:
                chunk = await response.content.read(min(chunk_size, limit - total))
                if not chunk:
                    break
                total += len(chunk)
                if on_progress:
                    on_progress(total, time.perf_counter() - started)

            return total, time.perf_counter() - started

        except (aiohttp.ClientError, OSError) as exc:
            raise HttpError(
                f"Download from {url} failed mid-stream: {exc}",
                status=response.status,
                url=url,
            ) from exc
        finally:
            response.release()
