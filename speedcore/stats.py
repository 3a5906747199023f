"""
Network measurement statistics.

Pure functions and lightweight dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Dict, Sequence

from .errors import InvalidInput


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatencySummary:
    """Aggregate of successful round-trip times, all in milliseconds."""

    average: float
    minimum: float
    maximum: float
    median: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "average": round(self.average, 3),
            "min": round(self.minimum, 3),
            "max": round(self.maximum, 3),
            "median": round(self.median, 3),
        }


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def summarize(samples: Sequence[float]) -> LatencySummary:
    """Return mean / min / max / median of *samples*.

    Raises ``InvalidInput`` when *samples* is empty; the probe layer filters
    failed attempts out before calling this.
    """
    if not samples:
        raise InvalidInput("cannot summarize an empty sample set")

    return LatencySummary(
        average=statistics.mean(samples),
        minimum=min(samples),
        maximum=max(samples),
        median=calculate_median(samples),
    )


def calculate_median(samples: Sequence[float]) -> float:
    """Standard median: mean of the two central values for even counts."""
    if not samples:
        raise InvalidInput("cannot take the median of an empty sample set")

    ordered = sorted(samples)
    n = len(ordered)
    mid = n // 2
    if n % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2.0
    return float(ordered[mid])


def packet_loss_percent(successful: int, total: int) -> float:
    """Share of failed attempts, as a percentage."""
    if total <= 0:
        raise InvalidInput("total attempts must be positive")
    return (total - successful) * 100.0 / total


def bits_per_second(bytes_transferred: int, seconds: float) -> float:
    if seconds <= 0:
        raise InvalidInput("duration must be positive")
    return bytes_transferred * 8 / seconds


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"


def format_bytes(count: int) -> str:
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f} MB"
    if count >= 1_000:
        return f"{count / 1_000:.1f} KB"
    return f"{count} B"
