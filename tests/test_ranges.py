from __future__ import annotations

import unittest

from biocoach.errors import InvalidRangeError, UnknownMetricError
from biocoach.tolerances.defaults import DEFAULT_MARGINS, DEFAULT_TOLERANCES, METRIC_SPECS
from biocoach.tolerances.ranges import (
    AbsoluteMargin,
    MetricName,
    ToleranceRange,
    as_margin,
    camel_case_key,
    parse_metric_name,
)


class ToleranceRangeTests(unittest.TestCase):
    def test_rejects_min_above_max(self) -> None:
        with self.assertRaises(InvalidRangeError):
            ToleranceRange(min=10, max=5)

    def test_rejects_non_finite_bounds(self) -> None:
        with self.assertRaises(InvalidRangeError):
            ToleranceRange(min=float("nan"), max=5)
        with self.assertRaises(InvalidRangeError):
            ToleranceRange(min=0, max=float("inf"))

    def test_rejects_non_numeric_bounds(self) -> None:
        with self.assertRaises(InvalidRangeError):
            ToleranceRange(min="abc", max=1)  # type: ignore[arg-type]
        with self.assertRaises(InvalidRangeError):
            ToleranceRange(min=0, max=None)  # type: ignore[arg-type]

    def test_zero_width_allowed(self) -> None:
        rng = ToleranceRange(min=3, max=3)
        self.assertEqual(rng.width, 0.0)
        self.assertTrue(rng.contains(3))

    def test_from_dict(self) -> None:
        self.assertEqual(ToleranceRange.from_dict({"min": "60", "max": 180}), ToleranceRange(60.0, 180.0))
        with self.assertRaises(InvalidRangeError):
            ToleranceRange.from_dict({"min": 60})
        with self.assertRaises(InvalidRangeError):
            ToleranceRange.from_dict({"min": "low", "max": 180})
        with self.assertRaises(InvalidRangeError):
            ToleranceRange.from_dict([60, 180])

    def test_invalid_range_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            ToleranceRange(min=2, max=1)


class MetricNameTests(unittest.TestCase):
    def test_parse_variants(self) -> None:
        self.assertIs(parse_metric_name("heart_rate"), MetricName.HEART_RATE)
        self.assertIs(parse_metric_name("heart-rate"), MetricName.HEART_RATE)
        self.assertIs(parse_metric_name("heartRate"), MetricName.HEART_RATE)
        self.assertIs(parse_metric_name("VO2-Max"), MetricName.VO2_MAX)
        self.assertIs(parse_metric_name(MetricName.LACTIC_ACID), MetricName.LACTIC_ACID)

    def test_unknown_metric(self) -> None:
        with self.assertRaises(UnknownMetricError):
            parse_metric_name("glucose")
        with self.assertRaises(UnknownMetricError):
            parse_metric_name(None)

    def test_camel_case_key(self) -> None:
        self.assertEqual(camel_case_key(MetricName.MUSCLE_FATIGUE), "muscleFatigue")


class DefaultsTests(unittest.TestCase):
    def test_default_ranges(self) -> None:
        self.assertEqual(DEFAULT_TOLERANCES[MetricName.HEART_RATE], ToleranceRange(60, 180))
        self.assertEqual(DEFAULT_TOLERANCES[MetricName.HYDRATION], ToleranceRange(80, 100))
        self.assertEqual(DEFAULT_TOLERANCES[MetricName.LACTIC_ACID], ToleranceRange(0, 4))
        self.assertEqual(DEFAULT_TOLERANCES[MetricName.VO2_MAX], ToleranceRange(40, 60))
        self.assertEqual(DEFAULT_TOLERANCES[MetricName.MUSCLE_FATIGUE], ToleranceRange(0, 70))
        self.assertEqual(set(METRIC_SPECS), set(MetricName))

    def test_default_margins(self) -> None:
        self.assertEqual(DEFAULT_MARGINS[MetricName.HEART_RATE], AbsoluteMargin(above=20, below=10))
        self.assertEqual(DEFAULT_MARGINS[MetricName.HYDRATION], AbsoluteMargin(above=None, below=10))
        self.assertEqual(DEFAULT_MARGINS[MetricName.LACTIC_ACID], AbsoluteMargin(above=2, below=None))
        self.assertEqual(DEFAULT_MARGINS[MetricName.VO2_MAX], AbsoluteMargin())

    def test_defaults_are_read_only(self) -> None:
        with self.assertRaises(TypeError):
            DEFAULT_TOLERANCES[MetricName.HEART_RATE] = ToleranceRange(0, 1)  # type: ignore[index]

    def test_as_margin(self) -> None:
        self.assertEqual(as_margin(5), AbsoluteMargin(above=5, below=5))
        self.assertEqual(as_margin(None), AbsoluteMargin())


if __name__ == "__main__":
    unittest.main()
