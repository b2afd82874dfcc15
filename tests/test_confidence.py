import pathlib
import sys
import unittest

# Ensure src/ is on path for direct test execution
ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vitaltrace.analysis.confidence import ConfidentReadingSet
from vitaltrace.core.models import RateReading


class ConfidentReadingSetTest(unittest.TestCase):
    def test_rejects_non_positive_confidence(self):
        readings = ConfidentReadingSet(capacity=3)
        self.assertFalse(readings.offer(RateReading(70.0, 0.0)))
        self.assertFalse(readings.offer(RateReading(70.0, -0.2)))
        self.assertEqual(len(readings), 0)
        self.assertIsNone(readings.average())
        self.assertIsNone(readings.average_bpm())

    def test_fills_then_replaces_least_confident(self):
        readings = ConfidentReadingSet(capacity=3)
        kept = readings.offer_all(
            [RateReading(60.0, 0.5), RateReading(70.0, 0.2), RateReading(80.0, 0.9)]
        )
        self.assertEqual(kept, 3)

        # Equal confidence does not displace the weakest entry.
        self.assertFalse(readings.offer(RateReading(100.0, 0.2)))
        self.assertTrue(readings.offer(RateReading(90.0, 0.6)))

        values = sorted(r.value for r in readings.readings)
        self.assertEqual(values, [60.0, 80.0, 90.0])
        self.assertEqual(len(readings), 3)

    def test_average_bpm_rounds(self):
        readings = ConfidentReadingSet(capacity=50)
        readings.offer_all([RateReading(72.0, 0.8), RateReading(73.0, 0.7)])
        self.assertAlmostEqual(readings.average(), 72.5)
        self.assertEqual(readings.average_bpm(), 73)

    def test_rejects_non_finite_readings(self):
        readings = ConfidentReadingSet(capacity=2)
        self.assertFalse(readings.offer(RateReading(float("nan"), 0.9)))
        self.assertFalse(readings.offer(RateReading(72.0, float("inf"))))
        self.assertTrue(readings.offer(RateReading(72.0, 0.4)))
        self.assertFalse(readings.offer(RateReading(float("inf"), 0.9)))
        self.assertEqual(readings.average_bpm(), 72)

    def test_clear(self):
        readings = ConfidentReadingSet(capacity=2)
        readings.offer(RateReading(72.0, 0.8))
        readings.clear()
        self.assertEqual(len(readings), 0)

    def test_capacity_must_be_positive(self):
        with self.assertRaises(ValueError):
            ConfidentReadingSet(capacity=0)


if __name__ == "__main__":
    unittest.main()
