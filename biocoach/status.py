from __future__ import annotations

from enum import Enum
from typing import Iterable


class StatusTier(str, Enum):
    """Severity of a reading against its tolerance range.

    Members compare by severity: ``GOOD < NORMAL < WARNING < CRITICAL``.
    """

    GOOD = "good"
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, StatusTier):
            return NotImplemented
        return self.severity < other.severity

    def __le__(self, other: object) -> bool:
        if not isinstance(other, StatusTier):
            return NotImplemented
        return self.severity <= other.severity

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, StatusTier):
            return NotImplemented
        return self.severity > other.severity

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, StatusTier):
            return NotImplemented
        return self.severity >= other.severity

    def __str__(self) -> str:
        return self.value


_SEVERITY = {
    StatusTier.GOOD: 0,
    StatusTier.NORMAL: 1,
    StatusTier.WARNING: 2,
    StatusTier.CRITICAL: 3,
}


def parse_status(value: object) -> StatusTier:
    if isinstance(value, StatusTier):
        return value
    text = str(value or "").strip().lower()
    try:
        return StatusTier(text)
    except ValueError:
        raise ValueError(f"Unknown status tier: {value!r}") from None


def most_severe(tiers: Iterable[StatusTier], default: StatusTier = StatusTier.GOOD) -> StatusTier:
    worst = default
    for tier in tiers:
        if tier > worst:
            worst = tier
    return worst
