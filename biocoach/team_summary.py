from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from loguru import logger
import numpy as np

from .readings import BiometricReading, latest_values_by_player, validate_reading
from .status import StatusTier, most_severe
from .tolerance_settings import ToleranceSettingsSnapshot, ToleranceSettingsStore
from .tolerances.defaults import DEFAULT_MARGINS
from .tolerances.evaluator import (
    TeamStatusSummary,
    aggregate_team_summary,
    classify_metric_readings,
)
from .tolerances.ranges import MarginLike, MetricName, parse_metric_name

# Decimal places shown in the team averages panel.
AVERAGE_DECIMALS: Dict[MetricName, int] = {
    MetricName.HEART_RATE: 0,
    MetricName.HYDRATION: 0,
    MetricName.LACTIC_ACID: 1,
    MetricName.VO2_MAX: 0,
    MetricName.MUSCLE_FATIGUE: 0,
}


@dataclass(frozen=True)
class PlayerSnapshot:
    player_id: str
    player_name: str = ""
    readings: Mapping[MetricName, float] = field(default_factory=dict)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "PlayerSnapshot":
        pid = str(data.get("player_id") or data.get("playerId") or "").strip()
        if not pid:
            raise ValueError("player_id is required")
        raw = data.get("readings")
        if not isinstance(raw, dict):
            raise ValueError(f"readings for player {pid} must be a mapping")
        readings = {parse_metric_name(k): float(v) for k, v in raw.items() if v is not None}
        return PlayerSnapshot(
            player_id=pid,
            player_name=str(data.get("player_name") or data.get("playerName") or pid),
            readings=readings,
        )


def snapshots_from_readings(
    readings: Iterable[BiometricReading],
    player_names: Optional[Mapping[str, str]] = None,
) -> List[PlayerSnapshot]:
    """Roster snapshots holding each player's newest valid reading per metric.

    Raises :class:`InvalidReadingError` on the first negative or non-finite reading.
    """
    names = player_names or {}
    grouped = latest_values_by_player(validate_reading(r) for r in readings)
    return [
        PlayerSnapshot(player_id=pid, player_name=names.get(pid, pid), readings=values)
        for pid, values in sorted(grouped.items())
    ]


def _round_half_up(value: float, decimals: int = 0) -> float:
    scale = 10 ** decimals
    return math.floor(value * scale + 0.5) / scale


def team_averages(players: Iterable[PlayerSnapshot]) -> Dict[MetricName, float]:
    """Per-metric mean over the players that report the metric.

    Rounded half-up to the precision of the averages panel; metrics nobody
    reports average to 0.
    """
    columns: Dict[MetricName, List[float]] = {metric: [] for metric in MetricName}
    for player in players:
        for metric, value in player.readings.items():
            if value is None:
                continue
            columns[parse_metric_name(metric)].append(float(value))
    averages: Dict[MetricName, float] = {}
    for metric, values in columns.items():
        if not values:
            averages[metric] = 0.0
            continue
        mean = float(np.mean(np.asarray(values, dtype=float)))
        averages[metric] = _round_half_up(mean, AVERAGE_DECIMALS[metric])
    return averages


@dataclass(frozen=True)
class PlayerStatusRow:
    player_id: str
    player_name: str
    status: StatusTier
    metric_statuses: Mapping[MetricName, StatusTier]
    readings: Mapping[MetricName, float]

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "player_name": self.player_name,
            "status": self.status.value,
            "metric_statuses": {m.value: s.value for m, s in self.metric_statuses.items()},
            "readings": {m.value: v for m, v in self.readings.items()},
        }


@dataclass(frozen=True)
class RosterReport:
    players: List[PlayerStatusRow]
    summary: TeamStatusSummary
    averages: Mapping[MetricName, float]

    def flagged(self) -> List[PlayerStatusRow]:
        """Players in warning or critical, most severe first."""
        rows = [row for row in self.players if row.status >= StatusTier.WARNING]
        return sorted(rows, key=lambda row: row.status.severity, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "summary": self.summary.to_dict(),
            "averages": {m.value: v for m, v in self.averages.items()},
            "players": [row.to_dict() for row in self.players],
        }


SettingsSource = Union[ToleranceSettingsStore, ToleranceSettingsSnapshot, None]


def evaluate_roster(
    players: Iterable[PlayerSnapshot],
    settings: SettingsSource = None,
    margins: Optional[Mapping[Any, MarginLike]] = None,
) -> RosterReport:
    """Team view: absolute-margin status per player, tier counts and averages.

    Tolerances are read from one settings snapshot taken before any player is
    classified, so a concurrent save does not mix old and new ranges.
    """
    snapshot: Optional[ToleranceSettingsSnapshot]
    if isinstance(settings, ToleranceSettingsStore):
        snapshot = settings.snapshot()
    else:
        snapshot = settings
    margin_map = margins if margins is not None else DEFAULT_MARGINS

    roster = list(players)
    rows: List[PlayerStatusRow] = []
    for player in roster:
        tolerances = snapshot.tolerances_for(player.player_id).ranges if snapshot is not None else None
        metric_statuses = classify_metric_readings(player.readings, tolerances, margin_map)
        status = most_severe(metric_statuses.values(), default=StatusTier.GOOD)
        rows.append(
            PlayerStatusRow(
                player_id=player.player_id,
                player_name=player.player_name or player.player_id,
                status=status,
                metric_statuses=metric_statuses,
                readings=dict(player.readings),
            )
        )

    summary = aggregate_team_summary(row.status for row in rows)
    if summary.critical:
        logger.info(f"Roster evaluation: {summary.critical} of {summary.total} players critical")
    return RosterReport(players=rows, summary=summary, averages=team_averages(roster))
