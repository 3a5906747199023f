"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from speedcore.catalog import TargetServer
from speedcore.latency import LatencyReport
from speedcore.runner import CombinedReport
from speedcore.throughput import ThroughputReport


def create_result_json(
    combined: Optional[CombinedReport] = None,
    server: Optional[TargetServer] = None,
    *,
    latency: Optional[LatencyReport] = None,
    throughput: Optional[ThroughputReport] = None,
) -> Dict[str, Any]:
    """Build a JSON-serialisable result dict.

    Pass a *combined* report for a full run, or *latency* / *throughput*
    on their own for single-probe runs.
    """
    if combined is not None:
        latency = combined.latency
        throughput = combined.throughput

    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if server is not None:
        result["server"] = server.to_dict()
    if latency is not None:
        result["ping_ms"] = round(latency.average_ms, 3)
        result["latency"] = latency.to_dict()
    if throughput is not None:
        result["download_mbps"] = round(throughput.mbps, 2)
        result["download"] = throughput.to_dict()
    if combined is not None:
        result["upload_mbps"] = None

    return result


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except OSError as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise OSError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text helpers
# ---------------------------------------------------------------------------

def format_text_result(
    latency: Optional[LatencyReport] = None,
    throughput: Optional[ThroughputReport] = None,
    server_name: str = "",
) -> str:
    lines = []
    if server_name:
        lines.append(f"Server: {server_name}")
    if latency is not None:
        lines.append(
            f"Ping: {latency.average_ms:.1f} ms "
            f"(min {latency.min_ms:.1f} / median {latency.median_ms:.1f} / max {latency.max_ms:.1f})"
        )
        if latency.packet_loss_percent > 0:
            lines.append(f"Packet Loss: {latency.packet_loss_percent:.1f}%")
    if throughput is not None:
        lines.append(f"Download: {throughput.mbps:.2f} Mbps")
    return "\n".join(lines)
