"""
gpxstages configuration

Stage detection thresholds and the default simplification accuracy can be
set in TOML files or environment variables, so a rider can tune them once
instead of repeating flags on every run.

Where a value comes from, strongest first:
1) command line flag (applied by the CLI through StageConfig.with_overrides)
2) GPXSTAGES_* environment variable
3) ~/.config/gpxstages/config.toml
4) config/config.toml in the repository checkout
5) the defaults below

File layout:

    [stages]
    stopped_speed_kmh = 0.15          # at or below this you are stopped
    min_control_minutes = 5.0         # shortest stop that counts as a control
    control_resumption_metres = 100.0 # distance from the stop that means moving again

    [simplify]
    accuracy_metres = 10              # 1..1000, omit to disable simplification

TOML is read with tomllib on Python 3.11+ and tomli before that.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional

from gpxstages.errors import ConfigError

DEFAULT_STOPPED_SPEED_KMH = 0.15
DEFAULT_MIN_CONTROL_MINUTES = 5.0
DEFAULT_CONTROL_RESUMPTION_METRES = 100.0

SIMPLIFY_METRES_MIN = 1
SIMPLIFY_METRES_MAX = 1000

_DEFAULTS: dict[str, Any] = {
    "stages.stopped_speed_kmh": DEFAULT_STOPPED_SPEED_KMH,
    "stages.min_control_minutes": DEFAULT_MIN_CONTROL_MINUTES,
    "stages.control_resumption_metres": DEFAULT_CONTROL_RESUMPTION_METRES,
    "simplify.accuracy_metres": None,
}

_ENV_MAP = {
    "GPXSTAGES_STOPPED_SPEED_KMH": "stages.stopped_speed_kmh",
    "GPXSTAGES_MIN_CONTROL_MINUTES": "stages.min_control_minutes",
    "GPXSTAGES_CONTROL_RESUMPTION_METRES": "stages.control_resumption_metres",
    "GPXSTAGES_SIMPLIFY_METRES": "simplify.accuracy_metres",
}


# ---------------------------------------------------------------------------
# Reading and coercing raw values
# ---------------------------------------------------------------------------
def _load_toml(path: Path) -> dict[str, Any]:
    """
    Read one TOML file.

    A missing file is fine and gives {}. A file that exists but does not
    parse raises ConfigError naming the file.
    """
    if not path.is_file():
        return {}

    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib

    try:
        return tomllib.loads(path.read_text(encoding="utf-8")) or {}
    except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to parse TOML config: {path} ({e})") from e


def _lookup(table: dict[str, Any], key: str) -> Any:
    """_lookup(cfg, "stages.stopped_speed_kmh") -> value, or None if any level is absent."""
    section, _, name = key.partition(".")
    sub = table.get(section)
    if not isinstance(sub, dict):
        return None
    return sub.get(name)


def _as_float(v: Any, key: str, origin: str) -> float:
    """
    Coerce a config value to float.

    Strings are accepted so environment variables behave like TOML.
    Booleans are refused even though Python treats them as ints.
    """
    if not isinstance(v, bool):
        if isinstance(v, (int, float)):
            return float(v)
        if isinstance(v, str):
            try:
                return float(v.strip())
            except ValueError:
                pass
    raise ConfigError(f"{key} from {origin} must be a number, got {v!r}")


def _as_int(v: Any, key: str, origin: str) -> int:
    if not isinstance(v, bool):
        if isinstance(v, int):
            return v
        if isinstance(v, str):
            try:
                return int(v.strip())
            except ValueError:
                pass
    raise ConfigError(f"{key} from {origin} must be an integer, got {v!r}")


def find_repo_root(start: Path) -> Optional[Path]:
    """Nearest directory at or above `start` holding config/config.toml."""
    start = start.resolve()
    for candidate in (start, *start.parents):
        if (candidate / "config" / "config.toml").is_file():
            return candidate
    return None


# ---------------------------------------------------------------------------
# Typed config
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StageConfig:
    """
    Stage detection thresholds.

    min_control_minutes is in minutes here because that is how people
    think about stops; detection works in seconds.
    """

    stopped_speed_kmh: float = DEFAULT_STOPPED_SPEED_KMH
    min_control_minutes: float = DEFAULT_MIN_CONTROL_MINUTES
    control_resumption_metres: float = DEFAULT_CONTROL_RESUMPTION_METRES

    @property
    def min_control_seconds(self) -> float:
        return self.min_control_minutes * 60.0

    def with_overrides(self, **overrides: Optional[float]) -> "StageConfig":
        """Apply CLI overrides, ignoring the ones left as None."""
        cfg = replace(self, **{k: v for k, v in overrides.items() if v is not None})
        validate_stage_config(cfg)
        return cfg


@dataclass(frozen=True)
class SimplifyConfig:
    # None means "do not simplify".
    accuracy_metres: Optional[int] = None


@dataclass(frozen=True)
class GpxStagesConfig:
    """
    The merged configuration.

    `source` maps each dotted key to where its value came from: "default",
    "repo:<path>", "user:<path>" or "env:<VAR>".
    """

    stages: StageConfig
    simplify: SimplifyConfig
    source: dict[str, str]


def validate_stage_config(cfg: StageConfig) -> None:
    if cfg.stopped_speed_kmh < 0:
        raise ConfigError(f"stopped_speed_kmh must be >= 0, got {cfg.stopped_speed_kmh}")
    if cfg.min_control_minutes < 0:
        raise ConfigError(f"min_control_minutes must be >= 0, got {cfg.min_control_minutes}")
    if cfg.control_resumption_metres <= 0:
        raise ConfigError(
            f"control_resumption_metres must be > 0, got {cfg.control_resumption_metres}"
        )


def validate_accuracy_metres(metres: Optional[int]) -> Optional[int]:
    if metres is None:
        return None
    if not SIMPLIFY_METRES_MIN <= metres <= SIMPLIFY_METRES_MAX:
        raise ConfigError(
            f"simplify accuracy must be in {SIMPLIFY_METRES_MIN}..{SIMPLIFY_METRES_MAX} metres, got {metres}"
        )
    return metres


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------
def load_config(
    repo_root: Optional[Path] = None,
    repo_config_path: Optional[Path] = None,
    user_config_path: Optional[Path] = None,
) -> GpxStagesConfig:
    """
    Merge defaults, the repo file, the user file and the environment.

    Paths may be given explicitly (tests do this); otherwise the repo file
    is looked for above this module and the user file under ~/.config.

    Raises:
      ConfigError for unparseable files or out-of-range values.
    """
    if repo_config_path is None:
        root = repo_root if repo_root is not None else find_repo_root(Path(__file__).parent)
        if root is not None:
            repo_config_path = root / "config" / "config.toml"
    if user_config_path is None:
        user_config_path = Path.home() / ".config" / "gpxstages" / "config.toml"

    values = dict(_DEFAULTS)
    src = dict.fromkeys(values, "default")

    layers = [("repo", repo_config_path), ("user", user_config_path)]
    for label, path in layers:
        if path is None:
            continue
        table = _load_toml(path)
        for key in values:
            v = _lookup(table, key)
            if v is not None:
                values[key] = v
                src[key] = f"{label}:{path}"

    for env, key in _ENV_MAP.items():
        v = os.environ.get(env)
        if v:
            values[key] = v
            src[key] = f"env:{env}"

    stages = StageConfig(
        stopped_speed_kmh=_as_float(
            values["stages.stopped_speed_kmh"], "stages.stopped_speed_kmh",
            src["stages.stopped_speed_kmh"]),
        min_control_minutes=_as_float(
            values["stages.min_control_minutes"], "stages.min_control_minutes",
            src["stages.min_control_minutes"]),
        control_resumption_metres=_as_float(
            values["stages.control_resumption_metres"], "stages.control_resumption_metres",
            src["stages.control_resumption_metres"]),
    )
    validate_stage_config(stages)

    metres = values["simplify.accuracy_metres"]
    if metres is not None:
        metres = _as_int(metres, "simplify.accuracy_metres", src["simplify.accuracy_metres"])

    return GpxStagesConfig(
        stages=stages,
        simplify=SimplifyConfig(accuracy_metres=validate_accuracy_metres(metres)),
        source=src,
    )
