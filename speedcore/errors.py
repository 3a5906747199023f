"""
Measurement error taxonomy.

Probe-level failures (one lost ping) never surface as exceptions; they are
recorded as statistics.  Everything here is an operation-level failure that
the caller must handle.
"""
from __future__ import annotations

from typing import Optional


class MeasurementError(Exception):
    """Base class for every failure raised by speedcore."""


class InvalidInput(MeasurementError, ValueError):
    """A pure function received data it assumed to be valid."""


class InvalidServerEntry(MeasurementError, ValueError):
    """A catalog entry is missing fields or carries a malformed URL."""


class EchoFailed(MeasurementError):
    """A single echo probe produced no usable round-trip time."""


class AllProbesFailed(MeasurementError):
    """Every latency attempt against *host* failed."""

    def __init__(self, host: str, attempts: int) -> None:
        super().__init__(f"All {attempts} ping attempts to {host} failed")
        self.host = host
        self.attempts = attempts


class ThroughputError(MeasurementError):
    """Base for download-measurement failures."""


class NoDataTransferred(ThroughputError):
    """The server answered successfully but sent an empty body."""


class HttpError(ThroughputError):
    """Non-success status, or a transport failure that outlived retries."""

    def __init__(self, message: str, status: Optional[int] = None, url: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class MeasurementTimeout(MeasurementError):
    """The operation's deadline expired before it completed."""


class Cancelled(MeasurementError):
    """The caller's cancel signal aborted the operation."""
