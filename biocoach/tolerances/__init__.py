from __future__ import annotations

from .config_loader import ToleranceConfig, load_tolerance_config
from .defaults import DEFAULT_MARGINS, DEFAULT_TOLERANCES, METRIC_SPECS
from .evaluator import (
    TeamStatusSummary,
    aggregate_player_status,
    aggregate_team_summary,
    classify_by_absolute_margin,
    classify_by_percent_deviation,
    classify_metric_readings,
)
from .ranges import AbsoluteMargin, MetricName, MetricSpec, ToleranceRange, parse_metric_name
from .violations import has_threshold_violations, threshold_violations

__all__ = [
    "AbsoluteMargin",
    "DEFAULT_MARGINS",
    "DEFAULT_TOLERANCES",
    "METRIC_SPECS",
    "MetricName",
    "MetricSpec",
    "TeamStatusSummary",
    "ToleranceConfig",
    "ToleranceRange",
    "aggregate_player_status",
    "aggregate_team_summary",
    "classify_by_absolute_margin",
    "classify_by_percent_deviation",
    "classify_metric_readings",
    "has_threshold_violations",
    "load_tolerance_config",
    "parse_metric_name",
    "threshold_violations",
]
