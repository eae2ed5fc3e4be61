from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from loguru import logger
import yaml

from ..errors import BiocoachError, ToleranceConfigError
from .defaults import METRIC_SPECS
from .ranges import AbsoluteMargin, MetricName, MetricSpec, ToleranceRange, parse_metric_name


CONFIG_VERSION = "v1"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "data" / "default_tolerances.yaml"


@dataclass(frozen=True)
class ToleranceConfig:
    specs: Mapping[MetricName, MetricSpec]

    @property
    def tolerances(self) -> Dict[MetricName, ToleranceRange]:
        return {metric: spec.default_range for metric, spec in self.specs.items()}

    @property
    def margins(self) -> Dict[MetricName, AbsoluteMargin]:
        return {metric: spec.margin for metric, spec in self.specs.items()}

    def spec(self, metric: Any) -> MetricSpec:
        return self.specs[parse_metric_name(metric)]


BUILTIN_CONFIG = ToleranceConfig(specs=METRIC_SPECS)


def _expect_keys(obj: Dict[str, Any], required: Tuple[str, ...], path: str, optional: Tuple[str, ...] = ()) -> None:
    missing = [k for k in required if k not in obj]
    extra = [k for k in obj.keys() if k not in required and k not in optional]
    if missing:
        raise ToleranceConfigError(f"Missing keys at {path}: {missing}")
    if extra:
        raise ToleranceConfigError(f"Unexpected keys at {path}: {extra}")


def _expect_type(value: Any, expected_type: type | Tuple[type, ...], path: str) -> None:
    if isinstance(value, bool) or not isinstance(value, expected_type):
        names = (
            expected_type.__name__
            if isinstance(expected_type, type)
            else "/".join(t.__name__ for t in expected_type)
        )
        raise ToleranceConfigError(f"Expected {names} at {path}, got {type(value).__name__}")


def _parse_margin(raw: Any, path: str) -> AbsoluteMargin:
    if raw is None:
        return AbsoluteMargin()
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return AbsoluteMargin.symmetric(float(raw))
    _expect_type(raw, dict, path)
    _expect_keys(raw, (), path, optional=("above", "below"))
    sides: Dict[str, Optional[float]] = {}
    for side in ("above", "below"):
        val = raw.get(side)
        if val is not None:
            _expect_type(val, (int, float), f"{path}.{side}")
            val = float(val)
        sides[side] = val
    return AbsoluteMargin(above=sides["above"], below=sides["below"])


def _parse_metric(metric: MetricName, raw: Any, path: str) -> MetricSpec:
    _expect_type(raw, dict, path)
    _expect_keys(raw, ("min", "max"), path, optional=("label", "unit", "margin"))
    builtin = METRIC_SPECS[metric]
    for key in ("min", "max"):
        _expect_type(raw[key], (int, float), f"{path}.{key}")
    label = raw.get("label", builtin.label)
    unit = raw.get("unit", builtin.unit)
    _expect_type(label, str, f"{path}.label")
    _expect_type(unit, str, f"{path}.unit")
    return MetricSpec(
        metric=metric,
        label=label,
        unit=unit,
        default_range=ToleranceRange(min=float(raw["min"]), max=float(raw["max"])),
        margin=_parse_margin(raw.get("margin"), f"{path}.margin") if "margin" in raw else builtin.margin,
    )


def validate_tolerance_config(data: Any) -> ToleranceConfig:
    """Validate a parsed config document.

    Metrics the document leaves out keep their built-in defaults.
    """
    _expect_type(data, dict, "config")
    _expect_keys(data, ("config_version", "metrics"), "config")
    _expect_type(data["config_version"], str, "config.config_version")
    if data["config_version"] != CONFIG_VERSION:
        raise ToleranceConfigError(
            f"Unsupported config_version {data['config_version']!r}, expected {CONFIG_VERSION!r}"
        )
    _expect_type(data["metrics"], dict, "config.metrics")

    specs: Dict[MetricName, MetricSpec] = dict(METRIC_SPECS)
    for raw_name, raw_metric in data["metrics"].items():
        path = f"metrics.{raw_name}"
        try:
            metric = parse_metric_name(raw_name)
            specs[metric] = _parse_metric(metric, raw_metric, path)
        except ToleranceConfigError:
            raise
        except BiocoachError as exc:
            raise ToleranceConfigError(f"Invalid entry at {path}: {exc}") from exc
    return ToleranceConfig(specs=MappingProxyType(specs))


def load_tolerance_config(path: Optional[Path] = None) -> ToleranceConfig:
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        if path is not None:
            raise FileNotFoundError(f"Tolerance config not found: {cfg_path}")
        logger.warning(f"Default tolerance config missing at {cfg_path}; using built-in defaults")
        return BUILTIN_CONFIG
    try:
        data = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ToleranceConfigError(f"Could not parse tolerance config {cfg_path}: {exc}") from exc
    config = validate_tolerance_config(data)
    logger.debug(f"Loaded tolerance config from {cfg_path}")
    return config
