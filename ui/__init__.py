"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    ProgressDisplay,
    console,
    print_final_results,
    print_header,
    print_latency_report,
    print_servers,
    print_throughput_report,
)
from .output import create_result_json, format_text_result, save_json

__all__ = [
    "ProgressDisplay",
    "console",
    "create_result_json",
    "format_text_result",
    "print_final_results",
    "print_header",
    "print_latency_report",
    "print_servers",
    "print_throughput_report",
    "save_json",
]
