from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict

from .errors import BiocoachError
from .tolerances.defaults import DEFAULT_TOLERANCES
from .tolerances.ranges import MetricName, ToleranceRange, camel_case_key, parse_metric_name


GLOBAL_PLAYER_ID = "global"
SCHEMA_VERSION = 1


@dataclass(frozen=True)
class PlayerTolerances:
    """Tolerance ranges for one player, or for the ``global`` fallback."""

    player_id: str
    player_name: Optional[str] = None
    ranges: Mapping[MetricName, ToleranceRange] = field(default_factory=lambda: DEFAULT_TOLERANCES)

    def __post_init__(self) -> None:
        merged: Dict[MetricName, ToleranceRange] = dict(DEFAULT_TOLERANCES)
        for raw_metric, raw_range in dict(self.ranges).items():
            merged[parse_metric_name(raw_metric)] = (
                raw_range if isinstance(raw_range, ToleranceRange) else ToleranceRange.from_dict(raw_range)
            )
        object.__setattr__(self, "ranges", MappingProxyType(merged))

    def range_for(self, metric: Any) -> ToleranceRange:
        return self.ranges[parse_metric_name(metric)]

    def with_range(self, metric: Any, tolerance: ToleranceRange) -> "PlayerTolerances":
        ranges = dict(self.ranges)
        ranges[parse_metric_name(metric)] = tolerance
        return PlayerTolerances(player_id=self.player_id, player_name=self.player_name, ranges=ranges)

    def with_ranges_of(self, other: "PlayerTolerances") -> "PlayerTolerances":
        return PlayerTolerances(player_id=self.player_id, player_name=self.player_name, ranges=other.ranges)

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "player_name": self.player_name,
            "tolerances": {metric.value: rng.to_dict() for metric, rng in self.ranges.items()},
        }


def player_tolerances_from_dict(data: dict[str, Any], player_id: Optional[str] = None) -> PlayerTolerances:
    """Build from either the stored layout or the dashboard's export layout.

    The export layout is flat: ``{"playerId": ..., "heartRate": {"min", "max"}, ...}``.
    """
    pid, name, ranges = _parse_entry(data, player_id)
    return PlayerTolerances(player_id=pid, player_name=name, ranges=ranges)


def _parse_entry(
    data: dict[str, Any],
    player_id: Optional[str] = None,
) -> Tuple[str, Optional[str], Dict[MetricName, ToleranceRange]]:
    # Only the ranges present in ``data``; callers decide what fills the rest.
    pid = str(data.get("player_id") or data.get("playerId") or player_id or "").strip()
    if not pid:
        raise ValueError("player_id is required")
    name = data.get("player_name", data.get("playerName"))
    raw_ranges = data.get("tolerances")
    if not isinstance(raw_ranges, dict):
        raw_ranges = {k: v for k, v in data.items() if k not in ("player_id", "playerId", "player_name", "playerName")}
    ranges = {parse_metric_name(k): ToleranceRange.from_dict(v) for k, v in raw_ranges.items()}
    return pid, str(name) if name is not None else None, ranges


def export_player_tolerances(tolerances: PlayerTolerances) -> dict[str, Any]:
    """Flat camelCase layout the dashboard settings dialog reads."""
    out: dict[str, Any] = {"playerId": tolerances.player_id}
    if tolerances.player_name is not None:
        out["playerName"] = tolerances.player_name
    for metric, rng in tolerances.ranges.items():
        out[camel_case_key(metric)] = rng.to_dict()
    return out


class RangeModel(BaseModel):
    min: float
    max: float


class PlayerToleranceModel(BaseModel):
    player_id: str
    player_name: Optional[str] = None
    tolerances: dict[str, RangeModel] = Field(default_factory=dict)


class ToleranceSettingsFile(BaseModel):
    # Keep "schema" in the saved JSON, without shadowing BaseModel.schema.
    model_config = ConfigDict(populate_by_name=True)
    schema_version: int = Field(default=SCHEMA_VERSION, alias="schema")
    global_tolerances: dict[str, RangeModel] = Field(default_factory=dict)
    players: dict[str, PlayerToleranceModel] = Field(default_factory=dict)


def _to_model(tolerances: PlayerTolerances) -> PlayerToleranceModel:
    return PlayerToleranceModel(
        player_id=tolerances.player_id,
        player_name=tolerances.player_name,
        tolerances={m.value: RangeModel(min=r.min, max=r.max) for m, r in tolerances.ranges.items()},
    )


def _ranges_from_models(models: Mapping[str, RangeModel]) -> Dict[MetricName, ToleranceRange]:
    return {parse_metric_name(k): ToleranceRange(min=v.min, max=v.max) for k, v in models.items()}


SettingsSubscriber = Callable[["ToleranceSettingsSnapshot"], None]


@dataclass(frozen=True)
class ToleranceSettingsSnapshot:
    global_tolerances: PlayerTolerances
    players: Mapping[str, PlayerTolerances]

    def tolerances_for(self, player_id: Optional[str]) -> PlayerTolerances:
        if player_id and player_id in self.players:
            return self.players[player_id]
        return self.global_tolerances


class ToleranceSettingsStore:
    """Global and per-player tolerance ranges for a coaching session.

    Edits only take effect through :meth:`save` (or the helpers that call it),
    which validates every range and writes the settings file.
    """

    def __init__(
        self,
        persist_path: Optional[Path] = None,
        defaults: Optional[Mapping[Any, ToleranceRange]] = None,
    ) -> None:
        repo_root = Path(__file__).resolve().parent.parent
        self._persist_path = persist_path or (repo_root / "config" / "tolerance_settings.json")
        self._defaults = PlayerTolerances(
            player_id=GLOBAL_PLAYER_ID,
            player_name="Global Settings",
            ranges=defaults if defaults is not None else DEFAULT_TOLERANCES,
        )
        self._global = self._defaults
        self._players: Dict[str, PlayerTolerances] = {}
        self._subscribers: dict[int, SettingsSubscriber] = {}
        self._next_subscriber_id = 1
        self._load_persisted_settings()

    @property
    def persist_path(self) -> Path:
        return self._persist_path

    def snapshot(self) -> ToleranceSettingsSnapshot:
        return ToleranceSettingsSnapshot(
            global_tolerances=self._global,
            players=MappingProxyType(dict(self._players)),
        )

    def subscribe(self, callback: SettingsSubscriber, emit_initial: bool = True) -> int:
        token = self._next_subscriber_id
        self._next_subscriber_id += 1
        self._subscribers[token] = callback
        if emit_initial:
            callback(self.snapshot())
        return token

    def unsubscribe(self, token: int) -> None:
        self._subscribers.pop(token, None)

    def _emit(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self._subscribers.values()):
            try:
                callback(snapshot)
            except Exception as exc:
                logger.warning(f"Tolerance settings subscriber failed: {exc}")

    def global_tolerances(self) -> PlayerTolerances:
        return self._global

    def tolerances_for(self, player_id: Optional[str]) -> PlayerTolerances:
        return self.snapshot().tolerances_for(player_id)

    def list_players(self) -> list[PlayerTolerances]:
        return sorted(self._players.values(), key=lambda p: (p.player_name or p.player_id).lower())

    def has_player(self, player_id: str) -> bool:
        return player_id in self._players

    def register_player(self, player_id: str, player_name: Optional[str] = None) -> PlayerTolerances:
        pid = self._sanitize_player_id(player_id)
        existing = self._players.get(pid)
        if existing is not None:
            return existing
        created = PlayerTolerances(player_id=pid, player_name=player_name, ranges=self._global.ranges)
        self.save(players={pid: created})
        logger.info(f"Registered player {pid} with global tolerances")
        return created

    def save(
        self,
        global_tolerances: Optional[PlayerTolerances] = None,
        players: Optional[Mapping[str, PlayerTolerances]] = None,
    ) -> None:
        """Apply and persist settings. Players not named keep their ranges."""
        new_global = self._global
        if global_tolerances is not None:
            new_global = PlayerTolerances(
                player_id=GLOBAL_PLAYER_ID,
                player_name=global_tolerances.player_name or self._global.player_name,
                ranges=global_tolerances.ranges,
            )
        new_players = dict(self._players)
        for raw_id, tolerances in (players or {}).items():
            pid = self._sanitize_player_id(raw_id)
            if pid == GLOBAL_PLAYER_ID:
                raise ValueError(f"'{GLOBAL_PLAYER_ID}' is reserved for the global settings")
            new_players[pid] = PlayerTolerances(
                player_id=pid,
                player_name=tolerances.player_name,
                ranges=tolerances.ranges,
            )
        self._write(new_global, new_players)
        self._global = new_global
        self._players = new_players
        self._emit()

    def update_range(
        self,
        metric: Any,
        min_value: float,
        max_value: float,
        player_id: Optional[str] = None,
    ) -> PlayerTolerances:
        tolerance = ToleranceRange(min=min_value, max=max_value)
        if player_id is None or player_id == GLOBAL_PLAYER_ID:
            updated = self._global.with_range(metric, tolerance)
            self.save(global_tolerances=updated)
            return self._global
        pid = self._sanitize_player_id(player_id)
        current = self._players.get(pid) or self.register_player(pid)
        updated = current.with_range(metric, tolerance)
        self.save(players={pid: updated})
        return updated

    def apply_global_to_player(self, player_id: str) -> PlayerTolerances:
        pid = self._sanitize_player_id(player_id)
        current = self._players.get(pid)
        if current is None:
            raise KeyError(f"Player not registered: {player_id}")
        updated = current.with_ranges_of(self._global)
        self.save(players={pid: updated})
        return updated

    def import_players(self, entries: Mapping[str, Any]) -> List[PlayerTolerances]:
        """Load a dashboard export keyed by player id, then save once.

        A ``global`` entry fills the metrics it omits from the store defaults.
        Player entries fill theirs from the global ranges in effect after the
        import. Nothing is saved if any entry is invalid.
        """
        new_global: Optional[PlayerTolerances] = None
        raw_global = entries.get(GLOBAL_PLAYER_ID)
        if isinstance(raw_global, dict):
            _, name, partial = _parse_entry(raw_global, GLOBAL_PLAYER_ID)
            ranges = dict(self._defaults.ranges)
            ranges.update(partial)
            new_global = PlayerTolerances(player_id=GLOBAL_PLAYER_ID, player_name=name, ranges=ranges)
        base = (new_global or self._global).ranges

        players: Dict[str, PlayerTolerances] = {}
        for key, value in entries.items():
            if key == GLOBAL_PLAYER_ID or not isinstance(value, dict):
                continue
            pid, name, partial = _parse_entry(value, key)
            ranges = dict(base)
            ranges.update(partial)
            players[pid] = PlayerTolerances(player_id=pid, player_name=name, ranges=ranges)

        self.save(global_tolerances=new_global, players=players)
        logger.info(f"Imported tolerances for {len(players)} players")
        return list(players.values())

    def remove_player(self, player_id: str) -> None:
        pid = self._sanitize_player_id(player_id)
        if pid not in self._players:
            return
        remaining = {k: v for k, v in self._players.items() if k != pid}
        self._write(self._global, remaining)
        self._players = remaining
        self._emit()

    def reset_global(self) -> None:
        self.save(global_tolerances=self._defaults)

    def _sanitize_player_id(self, player_id: str) -> str:
        safe = str(player_id or "").strip()
        if not safe:
            raise ValueError("Invalid player_id")
        return safe

    def _write(self, global_tolerances: PlayerTolerances, players: Mapping[str, PlayerTolerances]) -> None:
        payload = ToleranceSettingsFile(
            schema_version=SCHEMA_VERSION,
            global_tolerances=_to_model(global_tolerances).tolerances,
            players={pid: _to_model(p) for pid, p in players.items()},
        )
        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        self._persist_path.write_text(payload.model_dump_json(indent=2, by_alias=True), encoding="utf-8")

    def _load_persisted_settings(self) -> None:
        if not self._persist_path.exists():
            return
        try:
            settings = ToleranceSettingsFile.model_validate_json(self._persist_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning(f"Ignoring unreadable tolerance settings {self._persist_path}: {exc}")
            return

        try:
            ranges = dict(self._defaults.ranges)
            ranges.update(_ranges_from_models(settings.global_tolerances))
            self._global = PlayerTolerances(
                player_id=GLOBAL_PLAYER_ID,
                player_name=self._defaults.player_name,
                ranges=ranges,
            )
        except BiocoachError as exc:
            logger.warning(f"Ignoring invalid global tolerances in {self._persist_path}: {exc}")

        for raw_id, model in settings.players.items():
            pid = str(raw_id or "").strip()
            if not pid or pid == GLOBAL_PLAYER_ID:
                continue
            # Metrics absent from the file inherit the global ranges.
            ranges = dict(self._global.ranges)
            try:
                ranges.update(_ranges_from_models(model.tolerances))
            except BiocoachError as exc:
                logger.warning(f"Skipping tolerances for player {pid}: {exc}")
                continue
            self._players[pid] = PlayerTolerances(player_id=pid, player_name=model.player_name, ranges=ranges)
