from __future__ import annotations

import argparse
import json
from pathlib import Path
import sys
from typing import Any, Dict

from loguru import logger

from .errors import BiocoachError
from .logger import setup_logger
from .readings import BiometricReading
from .tolerance_settings import (
    GLOBAL_PLAYER_ID,
    ToleranceSettingsStore,
    export_player_tolerances,
)
from .team_summary import PlayerSnapshot, evaluate_roster, snapshots_from_readings
from .tolerances.config_loader import ToleranceConfig, load_tolerance_config
from .tolerances.evaluator import classify_by_absolute_margin, classify_by_percent_deviation
from .tolerances.ranges import parse_metric_name


def _load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _emit(payload: Any, out: str | None = None) -> None:
    out_json = json.dumps(payload, indent=2)
    if out:
        Path(out).write_text(out_json, encoding="utf-8")
    print(out_json)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="biocoach",
        description="Classify player biometrics against tolerance ranges.",
    )
    p.add_argument("--settings", default=None, help="Tolerance settings JSON (default: ./config/tolerance_settings.json)")
    p.add_argument("--config", default=None, help="YAML with default ranges and margins (default: packaged)")
    p.add_argument("--log-level", default="WARNING", help="DEBUG, INFO, WARNING, ERROR")
    p.add_argument("--log-file", default=None, help="Optional log file path")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_classify = sub.add_parser("classify", help="Classify a single reading")
    p_classify.add_argument("--metric", required=True, help="Metric (e.g. heart_rate, hydration)")
    p_classify.add_argument("--value", required=True, type=float)
    p_classify.add_argument(
        "--policy",
        choices=["percent", "margin"],
        default="percent",
        help="percent: individual view severity; margin: team roster severity",
    )
    p_classify.add_argument("--player", default=None, help="Use this player's tolerances")

    p_eval = sub.add_parser("evaluate", help="Evaluate a roster snapshot")
    source = p_eval.add_mutually_exclusive_group(required=True)
    source.add_argument("--roster", default=None, help="JSON list of {player_id, player_name, readings}")
    source.add_argument("--readings", default=None, help="JSON list of {metric, value, player_id, timestamp}")
    p_eval.add_argument("--out", default=None, help="Optional output JSON path")

    p_tol = sub.add_parser("tolerances", help="Tolerance settings management")
    subt = p_tol.add_subparsers(dest="action", required=True)

    p_show = subt.add_parser("show", help="Show global or player tolerances")
    p_show.add_argument("--player", default=None)

    p_set = subt.add_parser("set", help="Set one metric range")
    p_set.add_argument("--metric", required=True)
    p_set.add_argument("--min", dest="min_value", required=True, type=float)
    p_set.add_argument("--max", dest="max_value", required=True, type=float)
    p_set.add_argument("--player", default=None, help="Player id (default: global)")

    p_reg = subt.add_parser("register", help="Register a player with the global tolerances")
    p_reg.add_argument("--player", required=True)
    p_reg.add_argument("--name", default=None)

    p_apply = subt.add_parser("apply-global", help="Copy global tolerances onto a player")
    p_apply.add_argument("--player", required=True)

    p_import = subt.add_parser("import", help="Import a dashboard settings export")
    p_import.add_argument("--file", required=True, help="JSON map of playerId -> settings")

    p_export = subt.add_parser("export", help="Export settings in the dashboard layout")
    p_export.add_argument("--out", default=None)

    return p


def _run_classify(args: argparse.Namespace, store: ToleranceSettingsStore, config: ToleranceConfig) -> int:
    metric = parse_metric_name(args.metric)
    tolerance = store.tolerances_for(args.player).range_for(metric)
    if args.policy == "percent":
        status = classify_by_percent_deviation(args.value, tolerance)
    else:
        status = classify_by_absolute_margin(args.value, tolerance, config.margins[metric])
    spec = config.spec(metric)
    _emit(
        {
            "metric": metric.value,
            "value": args.value,
            "unit": spec.unit,
            "policy": args.policy,
            "range": tolerance.to_dict(),
            "status": status.value,
        }
    )
    return 0


def _load_players(args: argparse.Namespace) -> list[PlayerSnapshot]:
    if args.roster:
        raw = _load_json(Path(args.roster))
        if isinstance(raw, dict):
            raw = raw.get("players", [])
        if not isinstance(raw, list):
            raise ValueError("Roster must be a list of players or {\"players\": [...]}")
        return [PlayerSnapshot.from_dict(item) for item in raw if isinstance(item, dict)]

    raw = _load_json(Path(args.readings))
    names: Dict[str, str] = {}
    if isinstance(raw, dict):
        names = {str(k): str(v) for k, v in (raw.get("player_names") or {}).items()}
        raw = raw.get("readings", [])
    if not isinstance(raw, list):
        raise ValueError("Readings must be a list or {\"readings\": [...], \"player_names\": {...}}")
    readings = [BiometricReading.from_dict(item) for item in raw if isinstance(item, dict)]
    return snapshots_from_readings(readings, player_names=names)


def _run_evaluate(args: argparse.Namespace, store: ToleranceSettingsStore, config: ToleranceConfig) -> int:
    players = _load_players(args)
    report = evaluate_roster(players, settings=store, margins=config.margins)
    _emit(report.to_dict(), args.out)
    return 0


def _run_tolerances(args: argparse.Namespace, store: ToleranceSettingsStore) -> int:
    if args.action == "show":
        _emit(store.tolerances_for(args.player).to_dict())
        return 0
    if args.action == "set":
        updated = store.update_range(args.metric, args.min_value, args.max_value, player_id=args.player)
        _emit(updated.to_dict())
        return 0
    if args.action == "register":
        _emit(store.register_player(args.player, args.name).to_dict())
        return 0
    if args.action == "apply-global":
        _emit(store.apply_global_to_player(args.player).to_dict())
        return 0
    if args.action == "import":
        raw = _load_json(Path(args.file))
        if not isinstance(raw, dict):
            raise ValueError("Settings export must be a JSON object keyed by player id")
        imported = store.import_players(raw)
        print(f"Imported tolerances for {len(imported)} players")
        return 0
    if args.action == "export":
        payload: Dict[str, Any] = {GLOBAL_PLAYER_ID: export_player_tolerances(store.global_tolerances())}
        for player in store.list_players():
            payload[player.player_id] = export_player_tolerances(player)
        _emit(payload, args.out)
        return 0
    return 2


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(level=args.log_level, log_file=args.log_file)

    try:
        config = load_tolerance_config(Path(args.config) if args.config else None)
        settings_path = Path(args.settings) if args.settings else Path.cwd() / "config" / "tolerance_settings.json"
        store = ToleranceSettingsStore(persist_path=settings_path, defaults=config.tolerances)

        if args.cmd == "classify":
            return _run_classify(args, store, config)
        if args.cmd == "evaluate":
            return _run_evaluate(args, store, config)
        if args.cmd == "tolerances":
            return _run_tolerances(args, store)
    except (BiocoachError, ValueError, KeyError, FileNotFoundError) as exc:
        logger.debug(f"Command {args.cmd} failed: {exc!r}")
        print(f"[biocoach] {exc}", file=sys.stderr)
        return 2
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
