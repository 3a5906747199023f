"""EZSpeedTest core library -- latency probing, streamed downloads, statistics."""

from .catalog import DEFAULT_SERVERS, ServerCatalog, TargetServer
from .echo import EchoTransport, SystemPing, WebSocketEcho, parse_ping_latency_ms
from .errors import (
    AllProbesFailed,
    Cancelled,
    EchoFailed,
    HttpError,
    InvalidInput,
    InvalidServerEntry,
    MeasurementError,
    MeasurementTimeout,
    NoDataTransferred,
    ThroughputError,
)
from .latency import LatencyProbe, LatencyReport, LatencySample
from .runner import CombinedReport, SpeedTestRunner, SpeedTestService
from .settings import MeasurementSettings, load_config, save_config
from .stats import (
    LatencySummary,
    calculate_median,
    format_bytes,
    format_latency,
    format_speed,
    packet_loss_percent,
    summarize,
)
from .throughput import ThroughputProbe, ThroughputReport
from .transport import (
    HttpTransport,
    Request,
    build_pipeline,
    dispatch_stage,
    retry_stage,
    timeout_stage,
)

__all__ = [
    "AllProbesFailed",
    "Cancelled",
    "CombinedReport",
    "DEFAULT_SERVERS",
    "EchoFailed",
    "EchoTransport",
    "HttpError",
    "HttpTransport",
    "InvalidInput",
    "InvalidServerEntry",
    "LatencyProbe",
    "LatencyReport",
    "LatencySample",
    "LatencySummary",
    "MeasurementError",
    "MeasurementSettings",
    "MeasurementTimeout",
    "NoDataTransferred",
    "Request",
    "ServerCatalog",
    "SpeedTestRunner",
    "SpeedTestService",
    "SystemPing",
    "TargetServer",
    "ThroughputError",
    "ThroughputProbe",
    "ThroughputReport",
    "WebSocketEcho",
    "build_pipeline",
    "calculate_median",
    "dispatch_stage",
    "format_bytes",
    "format_latency",
    "format_speed",
    "load_config",
    "packet_loss_percent",
    "parse_ping_latency_ms",
    "retry_stage",
    "save_config",
    "summarize",
    "timeout_stage",
]
