"""Tests for speedcore.runner -- orchestration of a full test."""

import asyncio
import unittest

from speedcore.catalog import TargetServer
from speedcore.errors import AllProbesFailed, Cancelled, EchoFailed, HttpError
from speedcore.latency import LatencyProbe
from speedcore.runner import CombinedReport, SpeedTestRunner, SpeedTestService
from speedcore.throughput import ThroughputProbe

from fakes import FakeEcho, FakeResponse, FakeSend, fast_settings

SERVER = TargetServer(
    name="Cloudflare Test File",
    region="Global",
    url="https://speed.cloudflare.com/__down?bytes=10000000",
    priority=100,
)


def make_runner(echo, send, **overrides):
    settings = fast_settings(**overrides)
    return SpeedTestRunner(LatencyProbe(echo, settings), ThroughputProbe(send, settings))


class TestRunFull(unittest.IsolatedAsyncioTestCase):
    async def test_success(self):
        echo = FakeEcho([10.0, 20.0, 30.0, 40.0])
        send = FakeSend(FakeResponse(chunks=[b"a" * 4096] * 4))
        runner = make_runner(echo, send, ping_count=4)

        report = await runner.run_full(SERVER)

        self.assertIsInstance(report, CombinedReport)
        self.assertEqual(report.server_name, SERVER.name)
        self.assertEqual(report.region, "Global")
        self.assertEqual(report.latency.host, "speed.cloudflare.com")
        self.assertEqual(report.throughput.source_url, SERVER.url)
        self.assertEqual(report.throughput.bytes_transferred, 16_384)
        self.assertAlmostEqual(report.ping_ms, 25.0)
        self.assertEqual(report.download_mbps, report.throughput.mbps)

    async def test_latency_failure_skips_download(self):
        echo = FakeEcho([EchoFailed("x")] * 4)
        send = FakeSend(FakeResponse(chunks=[b"a"]))
        runner = make_runner(echo, send, ping_count=4)

        with self.assertRaises(AllProbesFailed):
            await runner.run_full(SERVER)
        self.assertEqual(send.requests, [])

    async def test_download_failure_propagates(self):
        echo = FakeEcho([5.0] * 4)
        send = FakeSend(FakeResponse(status=500))
        runner = make_runner(echo, send, ping_count=4)

        with self.assertRaises(HttpError) as ctx:
            await runner.run_full(SERVER)
        self.assertEqual(ctx.exception.status, 500)

    async def test_cancel_stops_both_phases(self):
        cancel = asyncio.Event()
        cancel.set()
        echo = FakeEcho([5.0] * 4)
        send = FakeSend(FakeResponse(chunks=[b"a"]))

        with self.assertRaises(Cancelled):
            await make_runner(echo, send).run_full(SERVER, cancel=cancel)
        self.assertEqual(echo.calls, [])
        self.assertEqual(send.requests, [])

    async def test_to_dict(self):
        echo = FakeEcho([10.0] * 4)
        send = FakeSend(FakeResponse(chunks=[b"a" * 1000]))
        report = await make_runner(echo, send, ping_count=4).run_full(SERVER)

        d = report.to_dict()

        self.assertEqual(d["server"], SERVER.name)
        self.assertEqual(d["ping_ms"], 10.0)
        self.assertIsNone(d["upload_mbps"])
        self.assertEqual(d["latency"]["successful_attempts"], 4)
        self.assertEqual(d["download"]["bytes_transferred"], 1000)


class TestSpeedTestRunnerEntryPoints(unittest.IsolatedAsyncioTestCase):
    async def test_measure_latency_only(self):
        echo = FakeEcho([7.0, 9.0])
        send = FakeSend()
        report = await make_runner(echo, send, ping_count=2).measure_latency("1.1.1.1")
        self.assertEqual(report.host, "1.1.1.1")
        self.assertAlmostEqual(report.average_ms, 8.0)

    async def test_measure_throughput_only(self):
        send = FakeSend(FakeResponse(chunks=[b"a" * 10]))
        report = await make_runner(FakeEcho([]), send).measure_throughput("http://h/x")
        self.assertEqual(report.bytes_transferred, 10)


class TestSpeedTestService(unittest.IsolatedAsyncioTestCase):
    async def test_runner_requires_context(self):
        service = SpeedTestService(fast_settings(), echo=FakeEcho([]))
        with self.assertRaises(RuntimeError):
            service.runner

    async def test_runner_available_inside_context(self):
        echo = FakeEcho([1.0])
        async with SpeedTestService(fast_settings(ping_count=1), echo=echo) as service:
            report = await service.runner.measure_latency("example.com")
        self.assertEqual(report.successful_attempts, 1)
        with self.assertRaises(RuntimeError):
            service.runner


if __name__ == "__main__":
    unittest.main()
