from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import math
from typing import Any, Dict, Iterable, Optional

from .errors import InvalidReadingError
from .tolerances.ranges import MetricName, parse_metric_name


def _as_utc(ts: datetime) -> datetime:
    # Naive timestamps are taken to be UTC.
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class BiometricReading:
    metric: MetricName
    value: float
    player_id: str
    timestamp: datetime

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "BiometricReading":
        """Parse a reading; the timestamp comes back timezone-aware in UTC."""
        raw_ts = data.get("timestamp")
        if isinstance(raw_ts, datetime):
            ts = raw_ts
        elif isinstance(raw_ts, (int, float)) and not isinstance(raw_ts, bool):
            # Sensor feeds stamp readings in epoch milliseconds.
            ts = datetime.fromtimestamp(float(raw_ts) / 1000.0, tz=timezone.utc)
        else:
            try:
                ts = datetime.fromisoformat(str(raw_ts))
            except ValueError as exc:
                raise InvalidReadingError(f"Invalid timestamp: {raw_ts!r}") from exc
        try:
            value = float(data.get("value"))
        except (TypeError, ValueError) as exc:
            raise InvalidReadingError(f"Reading value must be numeric: {data.get('value')!r}") from exc
        return BiometricReading(
            metric=parse_metric_name(data.get("metric")),
            value=value,
            player_id=str(data.get("player_id") or data.get("playerId") or "").strip(),
            timestamp=_as_utc(ts),
        )


def validate_reading(reading: BiometricReading) -> BiometricReading:
    """Reject readings that are physically impossible for every tracked metric."""
    if not math.isfinite(reading.value):
        raise InvalidReadingError(f"{reading.metric} reading must be finite, got {reading.value}")
    if reading.value < 0:
        raise InvalidReadingError(f"{reading.metric} reading must not be negative, got {reading.value}")
    if not reading.player_id:
        raise InvalidReadingError("Reading has no player_id")
    return reading


def latest_values(
    readings: Iterable[BiometricReading],
    player_id: Optional[str] = None,
) -> Dict[MetricName, float]:
    """Newest value per metric, optionally for one player only.

    Ties on timestamp keep the reading seen last.
    """
    newest: Dict[MetricName, BiometricReading] = {}
    for reading in readings:
        if player_id is not None and reading.player_id != player_id:
            continue
        current = newest.get(reading.metric)
        if current is None or _as_utc(reading.timestamp) >= _as_utc(current.timestamp):
            newest[reading.metric] = reading
    return {metric: r.value for metric, r in newest.items()}


def latest_values_by_player(readings: Iterable[BiometricReading]) -> Dict[str, Dict[MetricName, float]]:
    grouped: Dict[str, list[BiometricReading]] = {}
    for reading in readings:
        grouped.setdefault(reading.player_id, []).append(reading)
    return {pid: latest_values(items) for pid, items in grouped.items()}
