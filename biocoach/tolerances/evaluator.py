"""Status classification of biometric readings against tolerance ranges.

Two severity policies live side by side:

* ``classify_by_percent_deviation`` drives the single-player detail view. It
  distinguishes ``good`` (central half of the range) from ``normal`` and
  measures excursions as a fraction of the violated bound.
* ``classify_by_absolute_margin`` drives the team roster. It uses fixed-unit
  margins per metric and never reports ``normal``.

They disagree on the same reading (205 bpm against 60-180 is critical under
both, 199 bpm is critical by percent but only warning by margin), so callers
pick the policy of the view they serve.
"""
from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Any, Dict, Iterable, Mapping, Optional

from loguru import logger

from ..errors import InvalidReadingError
from ..status import StatusTier, most_severe, parse_status
from .defaults import (
    CENTRAL_BAND_HIGH,
    CENTRAL_BAND_LOW,
    DEFAULT_MARGINS,
    DEFAULT_TOLERANCES,
    PERCENT_CRITICAL_DEVIATION,
)
from .ranges import AbsoluteMargin, MarginLike, MetricName, ToleranceRange, as_margin, parse_metric_name


def _check_value(value: float) -> float:
    try:
        val = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidReadingError(f"Reading must be numeric, got {value!r}") from exc
    if math.isnan(val):
        raise InvalidReadingError("Reading must not be NaN")
    return val


def _as_range(value: Any) -> ToleranceRange:
    if isinstance(value, ToleranceRange):
        return value
    return ToleranceRange.from_dict(value)


def _excursion_tier(distance: float, bound: float) -> StatusTier:
    # A zero bound has no magnitude to measure against.
    if bound == 0.0:
        return StatusTier.CRITICAL
    if distance / abs(bound) > PERCENT_CRITICAL_DEVIATION:
        return StatusTier.CRITICAL
    return StatusTier.WARNING


def classify_by_percent_deviation(value: float, tolerance: ToleranceRange) -> StatusTier:
    """Classify one reading for the individual player view.

    Below ``min`` / above ``max`` the reading is ``critical`` when it lies more
    than 10% of the bound's magnitude outside it, ``warning`` otherwise. Inside
    the range it is ``good`` in the central 50% and ``normal`` near the edges.

    A zero-width range accepts only its single value (``good``); anything else
    is ``critical``.
    """
    val = _check_value(value)
    rng = _as_range(tolerance)

    if rng.width == 0.0:
        return StatusTier.GOOD if val == rng.min else StatusTier.CRITICAL

    if val < rng.min:
        return _excursion_tier(rng.min - val, rng.min)
    if val > rng.max:
        return _excursion_tier(val - rng.max, rng.max)

    position = (val - rng.min) / rng.width
    if CENTRAL_BAND_LOW < position < CENTRAL_BAND_HIGH:
        return StatusTier.GOOD
    return StatusTier.NORMAL


def classify_by_absolute_margin(
    value: float,
    tolerance: ToleranceRange,
    margin: MarginLike = None,
) -> StatusTier:
    """Classify one reading for the team roster view.

    ``margin`` is a number (same buffer on both sides) or an
    :class:`AbsoluteMargin`. Returns ``critical`` beyond the margin,
    ``warning`` outside the range but within the margin, ``good`` otherwise.
    """
    val = _check_value(value)
    rng = _as_range(tolerance)
    m = as_margin(margin)

    if val > rng.max:
        if m.above is not None and val > rng.max + m.above:
            return StatusTier.CRITICAL
        return StatusTier.WARNING
    if val < rng.min:
        if m.below is not None and val < rng.min - m.below:
            return StatusTier.CRITICAL
        return StatusTier.WARNING
    return StatusTier.GOOD


def classify_metric_readings(
    readings: Mapping[Any, float],
    tolerances: Optional[Mapping[Any, Any]] = None,
    margins: Optional[Mapping[Any, MarginLike]] = None,
) -> Dict[MetricName, StatusTier]:
    """Absolute-margin tier for each reading present in ``readings``."""
    ranges = _normalize_tolerances(tolerances)
    margin_map = _normalize_margins(margins)
    statuses: Dict[MetricName, StatusTier] = {}
    for raw_metric, value in readings.items():
        if value is None:
            continue
        metric = parse_metric_name(raw_metric)
        rng = ranges.get(metric)
        if rng is None:
            logger.debug(f"No tolerance configured for {metric}; using default range")
            rng = DEFAULT_TOLERANCES[metric]
        statuses[metric] = classify_by_absolute_margin(value, rng, margin_map.get(metric))
    return statuses


def aggregate_player_status(
    readings: Mapping[Any, float],
    tolerances: Optional[Mapping[Any, Any]] = None,
    margins: Optional[Mapping[Any, MarginLike]] = None,
) -> StatusTier:
    """Most severe absolute-margin tier across a player's present readings.

    An empty mapping is vacuously ``good``.
    """
    statuses = classify_metric_readings(readings, tolerances, margins)
    return most_severe(statuses.values(), default=StatusTier.GOOD)


@dataclass(frozen=True)
class TeamStatusSummary:
    good: int = 0
    warning: int = 0
    critical: int = 0

    @property
    def total(self) -> int:
        return self.good + self.warning + self.critical

    def count(self, tier: StatusTier) -> int:
        if tier in (StatusTier.GOOD, StatusTier.NORMAL):
            return self.good
        if tier is StatusTier.WARNING:
            return self.warning
        return self.critical

    def to_dict(self) -> dict[str, int]:
        return {"good": self.good, "warning": self.warning, "critical": self.critical}


def aggregate_team_summary(statuses: Iterable[Any]) -> TeamStatusSummary:
    counts = {StatusTier.GOOD: 0, StatusTier.WARNING: 0, StatusTier.CRITICAL: 0}
    for raw in statuses:
        tier = parse_status(raw)
        # The roster has no separate "normal" column; in range counts as good.
        if tier is StatusTier.NORMAL:
            tier = StatusTier.GOOD
        counts[tier] += 1
    return TeamStatusSummary(
        good=counts[StatusTier.GOOD],
        warning=counts[StatusTier.WARNING],
        critical=counts[StatusTier.CRITICAL],
    )


def _normalize_tolerances(tolerances: Optional[Mapping[Any, Any]]) -> Dict[MetricName, ToleranceRange]:
    if tolerances is None:
        return dict(DEFAULT_TOLERANCES)
    return {parse_metric_name(k): _as_range(v) for k, v in tolerances.items()}


def _normalize_margins(margins: Optional[Mapping[Any, MarginLike]]) -> Dict[MetricName, AbsoluteMargin]:
    if margins is None:
        return dict(DEFAULT_MARGINS)
    return {parse_metric_name(k): as_margin(v) for k, v in margins.items()}
