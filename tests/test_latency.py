"""Tests for speedcore.latency -- sequential probing and failure policy."""

import asyncio
import unittest
from datetime import datetime, timezone

from speedcore.errors import AllProbesFailed, Cancelled, EchoFailed
from speedcore.latency import LatencyProbe, LatencyReport, LatencySample

from fakes import FakeEcho, fast_settings


class TestLatencyReport(unittest.TestCase):
    def _report(self, ok, total):
        return LatencyReport(
            host="example.com",
            average_ms=10.0,
            min_ms=9.0,
            max_ms=11.0,
            median_ms=10.0,
            successful_attempts=ok,
            total_attempts=total,
            timestamp=datetime.now(timezone.utc),
        )

    def test_packet_loss_is_derived(self):
        self.assertEqual(self._report(3, 4).packet_loss_percent, 25.0)
        self.assertEqual(self._report(4, 4).packet_loss_percent, 0.0)

    def test_immutable(self):
        report = self._report(4, 4)
        with self.assertRaises(AttributeError):
            report.packet_loss_percent = 50.0
        with self.assertRaises(Exception):
            report.average_ms = 1.0

    def test_to_dict(self):
        d = self._report(3, 4).to_dict()
        self.assertEqual(d["packet_loss_percent"], 25.0)
        self.assertEqual(d["host"], "example.com")
        self.assertIn("timestamp", d)


class TestLatencySample(unittest.TestCase):
    def test_success_flag(self):
        self.assertTrue(LatencySample(sequence=0, round_trip_ms=1.0).success)
        self.assertFalse(LatencySample(sequence=0, error="timeout").success)


class TestLatencyProbe(unittest.IsolatedAsyncioTestCase):
    async def test_all_succeed(self):
        echo = FakeEcho([10.0, 20.0, 30.0, 40.0])
        probe = LatencyProbe(echo, fast_settings(ping_count=4))

        report = await probe.measure("example.com")

        self.assertEqual(report.host, "example.com")
        self.assertEqual(report.total_attempts, 4)
        self.assertEqual(report.successful_attempts, 4)
        self.assertAlmostEqual(report.average_ms, 25.0)
        self.assertAlmostEqual(report.median_ms, 25.0)
        self.assertAlmostEqual(report.min_ms, 10.0)
        self.assertAlmostEqual(report.max_ms, 40.0)
        self.assertEqual(report.packet_loss_percent, 0.0)
        self.assertEqual(len(echo.calls), 4)
        self.assertEqual(echo.calls[0], ("example.com", 0.5))

    async def test_failures_excluded_but_counted(self):
        echo = FakeEcho([10.0, EchoFailed("lost"), 30.0, 20.0])
        probe = LatencyProbe(echo, fast_settings(ping_count=4))

        report = await probe.measure("example.com")

        self.assertEqual(report.successful_attempts, 3)
        self.assertEqual(report.total_attempts, 4)
        self.assertEqual(report.packet_loss_percent, 25.0)
        self.assertAlmostEqual(report.median_ms, 20.0)
        self.assertAlmostEqual(report.average_ms, 20.0)

    async def test_failed_probes_are_not_retried(self):
        echo = FakeEcho([EchoFailed("lost"), 5.0])
        probe = LatencyProbe(echo, fast_settings(ping_count=2))

        await probe.measure("example.com")

        self.assertEqual(len(echo.calls), 2)

    async def test_os_error_counts_as_failure(self):
        echo = FakeEcho([OSError("unreachable"), 12.0])
        report = await LatencyProbe(echo, fast_settings(ping_count=2)).measure("h")
        self.assertEqual(report.successful_attempts, 1)

    async def test_probe_timeout_counts_as_failure(self):
        echo = FakeEcho(["hang", 12.0])
        probe = LatencyProbe(echo, fast_settings(ping_count=2, ping_timeout=0.1))

        report = await probe.measure("example.com")

        self.assertEqual(report.successful_attempts, 1)
        self.assertEqual(report.total_attempts, 2)

    async def test_all_fail(self):
        echo = FakeEcho([EchoFailed("x")] * 4)
        probe = LatencyProbe(echo, fast_settings(ping_count=4))

        with self.assertRaises(AllProbesFailed) as ctx:
            await probe.measure("unreachable.example")
        self.assertEqual(ctx.exception.host, "unreachable.example")
        self.assertEqual(ctx.exception.attempts, 4)
        self.assertEqual(len(echo.calls), 4)

    async def test_probes_run_sequentially(self):
        echo = FakeEcho([1.0] * 6)
        await LatencyProbe(echo, fast_settings(ping_count=6)).measure("h")
        self.assertEqual(echo.max_active, 1)

    async def test_cancelled_before_start(self):
        cancel = asyncio.Event()
        cancel.set()
        echo = FakeEcho([1.0] * 4)

        with self.assertRaises(Cancelled):
            await LatencyProbe(echo, fast_settings()).measure("h", cancel=cancel)
        self.assertEqual(echo.calls, [])

    async def test_cancel_interrupts_in_flight_probe(self):
        cancel = asyncio.Event()
        echo = FakeEcho([1.0, "hang", 1.0, 1.0])
        probe = LatencyProbe(echo, fast_settings(ping_count=4, ping_timeout=5.0))

        asyncio.get_running_loop().call_later(0.05, cancel.set)
        with self.assertRaises(Cancelled):
            await probe.measure("h", cancel=cancel)
        self.assertEqual(len(echo.calls), 2)

    async def test_cancel_during_inter_probe_pause(self):
        cancel = asyncio.Event()
        echo = FakeEcho([1.0] * 4)
        probe = LatencyProbe(echo, fast_settings(ping_count=4, probe_interval=5.0))

        asyncio.get_running_loop().call_later(0.05, cancel.set)
        with self.assertRaises(Cancelled):
            await probe.measure("h", cancel=cancel)
        self.assertEqual(len(echo.calls), 1)


if __name__ == "__main__":
    unittest.main()
