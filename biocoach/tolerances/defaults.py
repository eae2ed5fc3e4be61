from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from .ranges import AbsoluteMargin, MetricName, MetricSpec, ToleranceRange


# Built-in defaults. The packaged YAML config mirrors these values; these are
# used when the YAML file is not available.
METRIC_SPECS: Mapping[MetricName, MetricSpec] = MappingProxyType(
    {
        MetricName.HEART_RATE: MetricSpec(
            metric=MetricName.HEART_RATE,
            label="Heart Rate",
            unit="bpm",
            default_range=ToleranceRange(min=60.0, max=180.0),
            margin=AbsoluteMargin(above=20.0, below=10.0),
        ),
        MetricName.HYDRATION: MetricSpec(
            metric=MetricName.HYDRATION,
            label="Hydration",
            unit="%",
            default_range=ToleranceRange(min=80.0, max=100.0),
            margin=AbsoluteMargin(above=None, below=10.0),
        ),
        MetricName.LACTIC_ACID: MetricSpec(
            metric=MetricName.LACTIC_ACID,
            label="Lactic Acid",
            unit="mmol/L",
            default_range=ToleranceRange(min=0.0, max=4.0),
            margin=AbsoluteMargin(above=2.0, below=None),
        ),
        MetricName.VO2_MAX: MetricSpec(
            metric=MetricName.VO2_MAX,
            label="VO2 Max",
            unit="ml/kg/min",
            default_range=ToleranceRange(min=40.0, max=60.0),
            margin=AbsoluteMargin(),
        ),
        MetricName.MUSCLE_FATIGUE: MetricSpec(
            metric=MetricName.MUSCLE_FATIGUE,
            label="Muscle Fatigue",
            unit="%",
            default_range=ToleranceRange(min=0.0, max=70.0),
            margin=AbsoluteMargin(),
        ),
    }
)

DEFAULT_TOLERANCES: Mapping[MetricName, ToleranceRange] = MappingProxyType(
    {metric: spec.default_range for metric, spec in METRIC_SPECS.items()}
)

DEFAULT_MARGINS: Mapping[MetricName, AbsoluteMargin] = MappingProxyType(
    {metric: spec.margin for metric, spec in METRIC_SPECS.items()}
)

# Percent-deviation policy: fraction beyond a bound that escalates to critical,
# and the central band of the range that counts as good.
PERCENT_CRITICAL_DEVIATION = 0.10
CENTRAL_BAND_LOW = 0.25
CENTRAL_BAND_HIGH = 0.75
