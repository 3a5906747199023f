"""Unit tests for speedcore.stats -- pure functions and dataclasses."""

import random
import unittest

from speedcore.errors import InvalidInput
from speedcore.stats import (
    bits_per_second,
    calculate_median,
    format_bytes,
    format_latency,
    format_speed,
    packet_loss_percent,
    summarize,
)


class TestMedian(unittest.TestCase):
    def test_even_count_averages_middle_pair(self):
        self.assertEqual(calculate_median([10, 20, 30, 40]), 25.0)

    def test_odd_count_takes_middle(self):
        self.assertEqual(calculate_median([10, 20, 30]), 20.0)

    def test_unsorted_input(self):
        self.assertEqual(calculate_median([40, 10, 30, 20]), 25.0)

    def test_single(self):
        self.assertEqual(calculate_median([42.0]), 42.0)

    def test_empty(self):
        with self.assertRaises(InvalidInput):
            calculate_median([])


class TestSummarize(unittest.TestCase):
    def test_values(self):
        s = summarize([10.0, 20.0, 15.0, 25.0, 12.0])
        self.assertAlmostEqual(s.minimum, 10.0)
        self.assertAlmostEqual(s.maximum, 25.0)
        self.assertAlmostEqual(s.average, 16.4)
        self.assertAlmostEqual(s.median, 15.0)

    def test_empty_raises(self):
        with self.assertRaises(InvalidInput):
            summarize([])

    def test_invalid_input_is_value_error(self):
        with self.assertRaises(ValueError):
            summarize([])

    def test_ordering_holds_for_random_samples(self):
        rng = random.Random(1234)
        for _ in range(200):
            samples = [rng.uniform(0.1, 500.0) for _ in range(rng.randint(1, 30))]
            s = summarize(samples)
            self.assertLessEqual(s.minimum, s.median)
            self.assertLessEqual(s.median, s.maximum)
            self.assertLessEqual(s.minimum, s.average + 1e-9)
            self.assertLessEqual(s.average, s.maximum + 1e-9)

    def test_to_dict(self):
        d = summarize([5.0, 10.0]).to_dict()
        self.assertEqual(d["median"], 7.5)
        self.assertIn("min", d)
        self.assertIn("max", d)


class TestPacketLoss(unittest.TestCase):
    def test_three_of_four(self):
        self.assertEqual(packet_loss_percent(3, 4), 25.0)

    def test_none_succeeded(self):
        self.assertEqual(packet_loss_percent(0, 4), 100.0)

    def test_all_succeeded(self):
        self.assertEqual(packet_loss_percent(4, 4), 0.0)

    def test_zero_total(self):
        with self.assertRaises(InvalidInput):
            packet_loss_percent(0, 0)


class TestBitsPerSecond(unittest.TestCase):
    def test_ten_megabytes_in_one_second(self):
        bps = bits_per_second(10_000_000, 1.0)
        self.assertEqual(bps, 80_000_000)
        self.assertEqual(bps / 1e6, 80.0)

    def test_zero_duration(self):
        with self.assertRaises(InvalidInput):
            bits_per_second(100, 0.0)


class TestFormatting(unittest.TestCase):
    def test_speed_mbps(self):
        self.assertEqual(format_speed(50.0), "50.00 Mbps")

    def test_speed_gbps(self):
        self.assertEqual(format_speed(1500.0), "1.50 Gbps")

    def test_latency_ms(self):
        self.assertEqual(format_latency(25.3), "25.3 ms")

    def test_latency_seconds(self):
        self.assertEqual(format_latency(1500.0), "1.50 s")

    def test_bytes(self):
        self.assertEqual(format_bytes(512), "512 B")
        self.assertEqual(format_bytes(13_504), "13.5 KB")
        self.assertEqual(format_bytes(10_000_000), "10.0 MB")


if __name__ == "__main__":
    unittest.main()
