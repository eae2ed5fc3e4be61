from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
import re
from typing import Any, Optional, Union

from ..errors import InvalidRangeError, UnknownMetricError


class MetricName(str, Enum):
    HEART_RATE = "heart_rate"
    HYDRATION = "hydration"
    LACTIC_ACID = "lactic_acid"
    VO2_MAX = "vo2_max"
    MUSCLE_FATIGUE = "muscle_fatigue"

    def __str__(self) -> str:
        return self.value


# Settings exported by the dashboard use camelCase keys.
_CAMEL_CASE_KEYS = {
    "heartRate": MetricName.HEART_RATE,
    "hydration": MetricName.HYDRATION,
    "lacticAcid": MetricName.LACTIC_ACID,
    "vo2Max": MetricName.VO2_MAX,
    "muscleFatigue": MetricName.MUSCLE_FATIGUE,
}


def parse_metric_name(value: Any) -> MetricName:
    if isinstance(value, MetricName):
        return value
    text = str(value or "").strip()
    if text in _CAMEL_CASE_KEYS:
        return _CAMEL_CASE_KEYS[text]
    key = re.sub(r"[\s\-]+", "_", text.lower())
    try:
        return MetricName(key)
    except ValueError:
        raise UnknownMetricError(f"Unknown metric: {value!r}") from None


def camel_case_key(metric: MetricName) -> str:
    for key, candidate in _CAMEL_CASE_KEYS.items():
        if candidate is metric:
            return key
    return metric.value


@dataclass(frozen=True)
class ToleranceRange:
    """Acceptable [min, max] band for one metric. Bounds are inclusive."""

    min: float
    max: float

    def __post_init__(self) -> None:
        try:
            lo = float(self.min)
            hi = float(self.max)
        except (TypeError, ValueError) as exc:
            raise InvalidRangeError(f"Tolerance bounds must be numbers, got min={self.min!r} max={self.max!r}") from exc
        if not (math.isfinite(lo) and math.isfinite(hi)):
            raise InvalidRangeError(f"Tolerance bounds must be finite, got min={self.min} max={self.max}")
        if lo > hi:
            raise InvalidRangeError(f"Tolerance min must not exceed max, got min={lo} max={hi}")
        object.__setattr__(self, "min", lo)
        object.__setattr__(self, "max", hi)

    @property
    def width(self) -> float:
        return self.max - self.min

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def to_dict(self) -> dict[str, float]:
        return {"min": self.min, "max": self.max}

    @staticmethod
    def from_dict(data: Any) -> "ToleranceRange":
        if isinstance(data, ToleranceRange):
            return data
        if not isinstance(data, dict):
            raise InvalidRangeError(f"Tolerance range must be a mapping, got {type(data).__name__}")
        if "min" not in data or "max" not in data:
            raise InvalidRangeError(f"Tolerance range needs min and max, got keys {sorted(data)}")
        try:
            lo = float(data["min"])
            hi = float(data["max"])
        except (TypeError, ValueError) as exc:
            raise InvalidRangeError(f"Tolerance bounds must be numbers: {data}") from exc
        return ToleranceRange(min=lo, max=hi)


@dataclass(frozen=True)
class AbsoluteMargin:
    """Fixed-unit buffer beyond each bound before a reading turns critical.

    ``None`` on a side means no critical band there: readings beyond that
    bound stay at warning however far out they are.
    """

    above: Optional[float] = None
    below: Optional[float] = None

    def __post_init__(self) -> None:
        for side in ("above", "below"):
            val = getattr(self, side)
            if val is None:
                continue
            val = float(val)
            if not math.isfinite(val) or val < 0:
                raise InvalidRangeError(f"Margin '{side}' must be a finite non-negative number, got {val}")
            object.__setattr__(self, side, val)

    @staticmethod
    def symmetric(margin: float) -> "AbsoluteMargin":
        return AbsoluteMargin(above=margin, below=margin)

    def to_dict(self) -> dict[str, Optional[float]]:
        return {"above": self.above, "below": self.below}


MarginLike = Union[AbsoluteMargin, float, int, None]


def as_margin(margin: MarginLike) -> AbsoluteMargin:
    if isinstance(margin, AbsoluteMargin):
        return margin
    if margin is None:
        return AbsoluteMargin()
    return AbsoluteMargin.symmetric(float(margin))


@dataclass(frozen=True)
class MetricSpec:
    metric: MetricName
    label: str
    unit: str
    default_range: ToleranceRange
    margin: AbsoluteMargin
