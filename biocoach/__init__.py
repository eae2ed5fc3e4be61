from __future__ import annotations

from .errors import (
    BiocoachError,
    InvalidRangeError,
    InvalidReadingError,
    ToleranceConfigError,
    UnknownMetricError,
)
from .readings import BiometricReading, latest_values, latest_values_by_player, validate_reading
from .status import StatusTier
from .tolerances import (
    AbsoluteMargin,
    MetricName,
    TeamStatusSummary,
    ToleranceRange,
    aggregate_player_status,
    aggregate_team_summary,
    classify_by_absolute_margin,
    classify_by_percent_deviation,
)

__all__ = [
    "AbsoluteMargin",
    "BiocoachError",
    "BiometricReading",
    "InvalidRangeError",
    "InvalidReadingError",
    "MetricName",
    "StatusTier",
    "TeamStatusSummary",
    "ToleranceConfigError",
    "ToleranceRange",
    "UnknownMetricError",
    "aggregate_player_status",
    "aggregate_team_summary",
    "classify_by_absolute_margin",
    "classify_by_percent_deviation",
    "latest_values",
    "latest_values_by_player",
    "validate_reading",
]
