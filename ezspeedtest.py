#!/usr/bin/env python3
"""
EZSpeedTest CLI -- latency and download throughput from the terminal.

Usage::

    python ezspeedtest.py                       # full test, best server
    python ezspeedtest.py --server "Google Test File"
    python ezspeedtest.py --ping 1.1.1.1        # latency only
    python ezspeedtest.py --download URL        # throughput only
    python ezspeedtest.py --list-servers
    python ezspeedtest.py --json                # JSON to stdout
    python ezspeedtest.py -o result.json        # save to file
    python ezspeedtest.py --echo ws             # Ookla WebSocket ping
    python ezspeedtest.py --init-config         # write default config file
"""
from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import Any, Dict, Optional

from speedcore.catalog import ServerCatalog
from speedcore.echo import EchoTransport, SystemPing, WebSocketEcho
from speedcore.errors import Cancelled, MeasurementError
from speedcore.logging_config import configure_logging
from speedcore.runner import SpeedTestService
from speedcore.settings import (
    MeasurementSettings,
    config_path,
    default_config,
    load_config,
    save_config,
)
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_final_results,
    print_header,
    print_latency_report,
    print_servers,
    print_throughput_report,
)
from ui.output import create_result_json, format_text_result, save_json


# ---------------------------------------------------------------------------
# Settings assembly
# ---------------------------------------------------------------------------

def build_settings(
    config: Dict[str, Any],
    ping_count: Optional[int] = None,
    ping_timeout: Optional[float] = None,
    download_timeout: Optional[float] = None,
    buffer_kb: Optional[int] = None,
    retries: Optional[int] = None,
) -> MeasurementSettings:
    """Config-file settings with command-line overrides applied.

    Raises ``ValueError`` if the result is out of range.
    """
    overrides: Dict[str, Any] = {}
    if ping_count is not None:
        overrides["ping_count"] = ping_count
    if ping_timeout is not None:
        overrides["ping_timeout"] = ping_timeout
    if download_timeout is not None:
        overrides["download_timeout"] = download_timeout
    if buffer_kb is not None:
        overrides["buffer_size"] = buffer_kb * 1024
    if retries is not None:
        overrides["max_retries"] = retries

    settings = MeasurementSettings.from_dict(config.get("settings", {}))
    return settings.replace(**overrides) if overrides else settings


def make_echo(kind: str) -> EchoTransport:
    if kind == "ws":
        return WebSocketEcho()
    return SystemPing()


def _install_sigint(cancel: asyncio.Event) -> bool:
    """Turn Ctrl-C into a cooperative cancel where the loop supports it."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        return False
    return True


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedtest(
    *,
    settings: MeasurementSettings,
    catalog: ServerCatalog,
    server_name: Optional[str] = None,
    ping_host: Optional[str] = None,
    download_url: Optional[str] = None,
    echo_kind: str = "icmp",
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
) -> Optional[dict]:
    """Execute the requested measurement and return a JSON-serialisable dict."""

    show_ui = not json_output and not simple

    if show_ui:
        print_header()

    cancel = asyncio.Event()
    sigint = _install_sigint(cancel)
    echo = make_echo(echo_kind)

    try:
        async with SpeedTestService(settings, echo=echo) as service:
            runner = service.runner

            # -- Latency only -----------------------------------------------
            if ping_host:
                if show_ui:
                    console.print(f"[bold]Pinging {ping_host}...[/bold]")
                latency = await runner.measure_latency(ping_host, cancel=cancel)
                if show_ui:
                    print_latency_report(latency)
                elif simple:
                    print(format_text_result(latency=latency))
                result_json = create_result_json(latency=latency)

            # -- Download only ----------------------------------------------
            elif download_url:
                progress = ProgressDisplay(settings.max_download_bytes) if show_ui else None
                try:
                    throughput = await runner.measure_throughput(
                        download_url,
                        cancel=cancel,
                        on_progress=progress.update if progress else None,
                    )
                finally:
                    if progress:
                        progress.stop()
                if show_ui:
                    print_throughput_report(throughput)
                elif simple:
                    print(format_text_result(throughput=throughput))
                result_json = create_result_json(throughput=throughput)

            # -- Full test --------------------------------------------------
            else:
                server = catalog.by_name(server_name) if server_name else catalog.best()
                if server is None:
                    what = f"Server {server_name!r} not found" if server_name else "No active servers"
                    console.print(f"[red]Error: {what}[/red]")
                    return None

                if show_ui:
                    print_servers(catalog.list_servers(), selected=server)
                    console.print(f"\n[bold]Testing latency to {server.host}...[/bold]")

                progress = ProgressDisplay(settings.max_download_bytes) if show_ui else None
                try:
                    report = await runner.run_full(
                        server,
                        cancel=cancel,
                        on_progress=progress.update if progress else None,
                    )
                finally:
                    if progress:
                        progress.stop()

                if show_ui:
                    print_latency_report(report.latency)
                    print_throughput_report(report.throughput)
                    print_final_results(report)
                elif simple:
                    print(format_text_result(report.latency, report.throughput, server.name))
                result_json = create_result_json(report, server)
    finally:
        if isinstance(echo, WebSocketEcho):
            await echo.aclose()
        if sigint:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)

    if json_output:
        print(json.dumps(result_json, indent=2))

    if output_file:
        save_json(result_json, output_file)
        if not json_output:
            console.print(f"\n[green]Results saved to:[/green] {output_file}")

    return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="EZSpeedTest -- latency and download throughput measurement",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr")

    # What to measure
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--server", type=str, metavar="NAME", help="Full test against a catalog server by name")
    mode.add_argument("--ping", type=str, metavar="HOST", help="Measure latency to HOST only")
    mode.add_argument("--download", type=str, metavar="URL", help="Measure download throughput from URL only")
    mode.add_argument("--list-servers", action="store_true", help="List configured servers and exit")
    mode.add_argument("--init-config", action="store_true", help="Write a default config file and exit")

    # Test parameters
    parser.add_argument("--config", type=str, metavar="FILE", help=f"Config file (default: {config_path()})")
    parser.add_argument("--echo", choices=("icmp", "ws"), default="icmp", help="Latency probe method (default: icmp)")
    parser.add_argument("--ping-count", type=int, metavar="N", help="Number of ping probes (default: 4)")
    parser.add_argument("--ping-timeout", type=float, metavar="SECS", help="Per-probe timeout (default: 5)")
    parser.add_argument("--download-timeout", type=float, metavar="SECS", help="Whole-download deadline (default: 30)")
    parser.add_argument("--buffer-kb", type=int, metavar="KB", help="Read buffer size in KiB (default: 64)")
    parser.add_argument("--retries", type=int, metavar="N", help="Transport retry attempts (default: 3)")
    return parser


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)

    if args.init_config:
        path = save_config(default_config(), args.config)
        console.print(f"[green]Default config written to:[/green] {path}")
        return

    config = load_config(args.config)

    try:
        settings = build_settings(
            config,
            ping_count=args.ping_count,
            ping_timeout=args.ping_timeout,
            download_timeout=args.download_timeout,
            buffer_kb=args.buffer_kb,
            retries=args.retries,
        )
    except (TypeError, ValueError) as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    catalog = ServerCatalog.from_entries(config.get("servers", []))

    if args.list_servers:
        print_servers(catalog.list_servers(), selected=catalog.best())
        return

    try:
        result = asyncio.run(
            run_speedtest(
                settings=settings,
                catalog=catalog,
                server_name=args.server,
                ping_host=args.ping,
                download_url=args.download,
                echo_kind=args.echo,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
            )
        )
    except (KeyboardInterrupt, Cancelled):
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except MeasurementError as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)
    except OSError as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)

    if result is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
