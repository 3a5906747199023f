"""Tests for speedcore.deadline -- timeout / cancel composition."""

import asyncio
import unittest

from speedcore.deadline import check_cancelled, pause, race
from speedcore.errors import Cancelled, MeasurementTimeout


class TestRace(unittest.IsolatedAsyncioTestCase):
    async def test_returns_result(self):
        async def work():
            return 42

        self.assertEqual(await race(work(), timeout=1.0), 42)

    async def test_timeout(self):
        with self.assertRaises(MeasurementTimeout):
            await race(asyncio.sleep(10), timeout=0.05)

    async def test_cancel_event_aborts_work(self):
        cancel = asyncio.Event()
        finished = []

        async def work():
            await asyncio.sleep(10)
            finished.append(True)

        asyncio.get_running_loop().call_later(0.05, cancel.set)
        with self.assertRaises(Cancelled):
            await race(work(), timeout=5.0, cancel=cancel)
        self.assertEqual(finished, [])

    async def test_cancel_and_timeout_are_distinct(self):
        self.assertFalse(issubclass(Cancelled, MeasurementTimeout))
        self.assertFalse(issubclass(MeasurementTimeout, Cancelled))

    async def test_work_exception_propagates(self):
        async def work():
            raise KeyError("boom")

        with self.assertRaises(KeyError):
            await race(work(), timeout=1.0, cancel=asyncio.Event())

    async def test_losing_work_is_cancelled(self):
        started = asyncio.Event()
        cancelled = []

        async def work():
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        with self.assertRaises(MeasurementTimeout):
            await race(work(), timeout=0.05)
        self.assertEqual(cancelled, [True])


    async def test_outer_cancel_waits_for_work_cleanup(self):
        started = asyncio.Event()
        cleaned = []

        async def work():
            started.set()
            try:
                await asyncio.sleep(10)
            finally:
                await asyncio.sleep(0)
                cleaned.append(True)

        outer = asyncio.ensure_future(race(work(), timeout=5.0, cancel=asyncio.Event()))
        await started.wait()
        outer.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await outer
        self.assertEqual(cleaned, [True])


class TestPause(unittest.IsolatedAsyncioTestCase):
    async def test_zero_pause_checks_cancel(self):
        cancel = asyncio.Event()
        cancel.set()
        with self.assertRaises(Cancelled):
            await pause(0, cancel)

    async def test_pause_interrupted(self):
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.02, cancel.set)
        with self.assertRaises(Cancelled):
            await pause(10, cancel)

    async def test_pause_completes(self):
        await pause(0.01)


class TestCheckCancelled(unittest.TestCase):
    def test_none_is_noop(self):
        check_cancelled(None)

    def test_unset_is_noop(self):
        check_cancelled(asyncio.Event())

    def test_set_raises(self):
        event = asyncio.Event()
        event.set()
        with self.assertRaises(Cancelled):
            check_cancelled(event)


if __name__ == "__main__":
    unittest.main()
