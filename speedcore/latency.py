"""
Latency measurement.

Runs a fixed number of sequential echo probes against one host.  Lost or
timed-out probes are counted but excluded from the statistics; only a run
in which *every* probe failed is an error.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .deadline import check_cancelled, pause, race
from .echo import EchoTransport
from .errors import AllProbesFailed, EchoFailed, MeasurementTimeout
from .settings import MeasurementSettings
from .stats import packet_loss_percent, summarize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatencySample:
    """A single probe attempt; ``round_trip_ms`` is None when it failed."""

    sequence: int
    round_trip_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.round_trip_ms is not None


@dataclass(frozen=True)
class LatencyReport:
    """Aggregated latency data for one run against one host."""

    host: str
    average_ms: float
    min_ms: float
    max_ms: float
    median_ms: float
    successful_attempts: int
    total_attempts: int
    timestamp: datetime

    @property
    def packet_loss_percent(self) -> float:
        return packet_loss_percent(self.successful_attempts, self.total_attempts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "average_ms": round(self.average_ms, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "median_ms": round(self.median_ms, 3),
            "successful_attempts": self.successful_attempts,
            "total_attempts": self.total_attempts,
            "packet_loss_percent": round(self.packet_loss_percent, 2),
            "timestamp": self.timestamp.isoformat(),
        }


# ---------------------------------------------------------------------------
# Probe
# ---------------------------------------------------------------------------

class LatencyProbe:
    """Measure round-trip latency to a host with an injected echo capability."""

    def __init__(
        self,
        echo: EchoTransport,
        settings: Optional[MeasurementSettings] = None,
    ) -> None:
        self.echo = echo
        self.settings = settings or MeasurementSettings()

    async def measure(
        self,
        host: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> LatencyReport:
        count = self.settings.ping_count
        logger.info("Starting ping measurement for host: %s", host)

        round_trips: List[float] = []
        for seq in range(count):
            check_cancelled(cancel)

            sample = await self._probe_once(host, seq, cancel)
            if sample.success:
                round_trips.append(sample.round_trip_ms)
                logger.debug("Ping %d/%d to %s: %.2fms", seq + 1, count, host, sample.round_trip_ms)
            else:
                logger.debug("Ping %d/%d to %s failed: %s", seq + 1, count, host, sample.error)

            if seq < count - 1:
                await pause(self.settings.probe_interval, cancel)

        if not round_trips:
            logger.warning("All %d ping attempts to %s failed", count, host)
            raise AllProbesFailed(host, count)

        summary = summarize(round_trips)
        report = LatencyReport(
            host=host,
            average_ms=summary.average,
            min_ms=summary.minimum,
            max_ms=summary.maximum,
            median_ms=summary.median,
            successful_attempts=len(round_trips),
            total_attempts=count,
            timestamp=datetime.now(timezone.utc),
        )

        logger.info(
            "Ping measurement completed for %s: %.2fms average, %.1f%% packet loss",
            host, report.average_ms, report.packet_loss_percent,
        )
        return report

    async def _probe_once(
        self,
        host: str,
        seq: int,
        cancel: Optional[asyncio.Event],
    ) -> LatencySample:
        timeout = self.settings.ping_timeout
        try:
            rtt = await race(self.echo.echo(host, timeout), timeout=timeout, cancel=cancel)
        except MeasurementTimeout:
            return LatencySample(sequence=seq, error="timeout")
        except (EchoFailed, OSError) as exc:
            return LatencySample(sequence=seq, error=str(exc))
        return LatencySample(sequence=seq, round_trip_ms=float(rtt))
