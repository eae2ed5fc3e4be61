from __future__ import annotations

from typing import Iterable, List, Literal, Optional

ThresholdDirection = Literal["above", "below"]


def threshold_violations(
    values: Iterable[float],
    threshold: Optional[float],
    direction: ThresholdDirection = "above",
) -> List[int]:
    """Indices of chart points strictly beyond ``threshold``."""
    if threshold is None:
        return []
    if direction not in ("above", "below"):
        raise ValueError(f"direction must be 'above' or 'below', got {direction!r}")
    limit = float(threshold)
    hits: List[int] = []
    for idx, value in enumerate(values):
        if value is None:
            continue
        v = float(value)
        if (direction == "above" and v > limit) or (direction == "below" and v < limit):
            hits.append(idx)
    return hits


def has_threshold_violations(
    values: Iterable[float],
    threshold: Optional[float],
    direction: ThresholdDirection = "above",
) -> bool:
    return bool(threshold_violations(values, threshold, direction))
