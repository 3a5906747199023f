"""
Full speed test orchestration.

``SpeedTestRunner`` sequences the two probes against one server (latency
first, then throughput).  ``SpeedTestService`` is the async context manager
that owns the HTTP session and wires everything together::

    async with SpeedTestService(settings) as service:
        report = await service.runner.run_full(catalog.best())
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .catalog import TargetServer
from .echo import EchoTransport, SystemPing
from .errors import MeasurementError
from .latency import LatencyProbe, LatencyReport
from .settings import MeasurementSettings
from .throughput import ProgressCallback, ThroughputProbe, ThroughputReport
from .transport import HttpTransport

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CombinedReport:
    """Latency plus download results for one server."""

    latency: LatencyReport
    throughput: ThroughputReport
    server_name: str
    region: str

    @property
    def ping_ms(self) -> float:
        return self.latency.average_ms

    @property
    def download_mbps(self) -> float:
        return self.throughput.mbps

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server": self.server_name,
            "region": self.region,
            "ping_ms": round(self.ping_ms, 3),
            "download_mbps": round(self.download_mbps, 2),
            "upload_mbps": None,
            "latency": self.latency.to_dict(),
            "download": self.throughput.to_dict(),
        }


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class SpeedTestRunner:
    """Entry points for latency-only, download-only and full runs."""

    def __init__(self, latency_probe: LatencyProbe, throughput_probe: ThroughputProbe) -> None:
        self.latency_probe = latency_probe
        self.throughput_probe = throughput_probe

    async def measure_latency(
        self,
        host: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> LatencyReport:
        return await self.latency_probe.measure(host, cancel=cancel)

    async def measure_throughput(
        self,
        url: str,
        cancel: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ThroughputReport:
        return await self.throughput_probe.measure(url, cancel=cancel, on_progress=on_progress)

    async def run_full(
        self,
        server: TargetServer,
        cancel: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> CombinedReport:
        """Ping the server's host, then download from its URL.

        If latency fails, its error is re-raised and no download is
        attempted.
        """
        logger.info("Starting full speed test for server: %s", server.name)
        try:
            latency = await self.measure_latency(server.host, cancel=cancel)
            throughput = await self.measure_throughput(
                server.url, cancel=cancel, on_progress=on_progress
            )
        except MeasurementError as exc:
            logger.error("Full speed test failed for server %s: %s", server.name, exc)
            raise

        report = CombinedReport(
            latency=latency,
            throughput=throughput,
            server_name=server.name,
            region=server.region,
        )
        logger.info(
            "Full speed test completed for %s: %.1fms ping, %.2f Mbps download",
            server.name, report.ping_ms, report.download_mbps,
        )
        return report


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class SpeedTestService:
    """Async context manager that owns the transport and builds the runner."""

    def __init__(
        self,
        settings: Optional[MeasurementSettings] = None,
        echo: Optional[EchoTransport] = None,
    ) -> None:
        self.settings = settings or MeasurementSettings()
        self.echo = echo or SystemPing()
        self._transport = HttpTransport(self.settings)
        self._runner: Optional[SpeedTestRunner] = None

    async def __aenter__(self) -> SpeedTestService:
        await self._transport.__aenter__()
        self._runner = SpeedTestRunner(
            LatencyProbe(self.echo, self.settings),
            ThroughputProbe(self._transport.pipeline(), self.settings),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self._runner = None
        await self._transport.__aexit__(exc_type, exc_val, exc_tb)

    @property
    def runner(self) -> SpeedTestRunner:
        if self._runner is None:
            raise RuntimeError(
                "SpeedTestService must be used as an async context manager "
                "(async with SpeedTestService() as service: ...)"
            )
        return self._runner
