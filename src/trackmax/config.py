"""
trackmax configuration

This module centralizes *all* configuration handling for trackmax.

There are two layers:

1) PipelineConfig: the read-only values the track pipeline consumes
   (grade limits, smoothing, ranges, retiming, verbatim/quiet flags).
   The CLI builds one per run; tests build them directly.

2) load_config(): persistent defaults for the CLI, merged from TOML files
   and environment variables.

Precedence (highest to lowest) for any given value:
1) CLI argument (handled by trackmax.cli)
2) Environment variables (TRACKMAX_*)
3) User config: ~/.config/trackmax/config.toml
4) Repo config: <repo_root>/config/config.toml
5) Hard defaults

Example config.toml:

    [pipeline]
    max_grade = 15.0
    min_grade = -15.0
    xma_method = "weighted"
    xma_metric = "grade"
    xma_window = 5
    speed_warn_threshold = 25.0

    [output]
    format = "gpx"
    rel_time = "hms"
    activity_type = "ride"
    output_filter = 0x01

This module uses Python's built-in tomllib on Python 3.11+, or `tomli` if installed.
"""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from trackmax.errors import ConfigError

# Roughly 100 km/h; anything faster between two points is likely bad GPS data
DEFAULT_SPEED_WARN_THRESHOLD = 27.78


class XmaMethod(enum.Enum):
    SIMPLE = "simple"       # SMA
    WEIGHTED = "weighted"   # WMA


class XmaMetric(enum.Enum):
    ELEVATION = "elevation"
    GRADE = "grade"
    POWER = "power"
    SPEED = "speed"


class OutputFormat(enum.Enum):
    CSV = "csv"
    GPX = "gpx"
    SHIZ = "shiz"
    TCX = "tcx"


class TimeFormat(enum.Enum):
    NONE = "none"   # absolute timestamps
    SEC = "sec"     # relative, plain seconds
    HMS = "hms"     # relative, hh:mm:ss


def _parse_enum(enum_cls, value: Any, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as e:
        valid = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"Invalid {what} {value!r} (valid: {valid})") from e


# ---------------------------------------------------------------------------
# Pipeline configuration
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PipelineConfig:
    """
    Caller-supplied, read-only configuration for one pipeline run.

    Unset values:
    - max_grade / min_grade: None
    - max_grade_change / max_speed_change / set_speed / start_time: 0
    - xma_window: 0 (smoothing disabled)
    - range / trim: None
    - close_gap: 0
    """

    max_grade: Optional[float] = None           # percent
    min_grade: Optional[float] = None           # percent
    max_grade_change: float = 0.0               # percent per point
    max_speed_change: float = 0.0               # m/s per point
    xma_method: XmaMethod = XmaMethod.SIMPLE
    xma_metric: XmaMetric = XmaMetric.ELEVATION
    xma_window: int = 0
    range: Optional[tuple[int, int]] = None     # inclusive point indices
    trim: Optional[tuple[int, int]] = None      # inclusive point indices
    close_gap: int = 0                          # point index
    set_speed: float = 0.0                      # m/s, to synthesize timestamps
    start_time: float = 0.0                     # seconds since the Epoch
    verbatim: bool = False
    quiet: bool = False
    no_elev_adj: bool = False
    speed_warn_threshold: float = DEFAULT_SPEED_WARN_THRESHOLD

    def validate(self) -> "PipelineConfig":
        """Raise ConfigError on inconsistent values; return self for chaining."""
        if self.xma_window < 0 or (self.xma_window and self.xma_window % 2 == 0):
            raise ConfigError(f"Moving average window must be an odd value >= 1 (got {self.xma_window})")
        for name in ("range", "trim"):
            bounds = getattr(self, name)
            if bounds is None:
                continue
            lo, hi = bounds
            if lo < 1 or lo >= hi:
                raise ConfigError(f"Invalid point {name} {lo},{hi}")
        if self.max_grade is not None and self.min_grade is not None and self.min_grade > self.max_grade:
            raise ConfigError(f"min_grade {self.min_grade} is above max_grade {self.max_grade}")
        if self.max_grade_change < 0 or self.max_speed_change < 0:
            raise ConfigError("Per-point change limits must not be negative")
        if self.set_speed < 0:
            raise ConfigError(f"Invalid average speed {self.set_speed}")
        if self.close_gap < 0:
            raise ConfigError(f"Invalid close-gap point {self.close_gap}")
        return self

    @property
    def smoothing(self) -> bool:
        return self.xma_window > 1

    def with_overrides(self, **changes: Any) -> "PipelineConfig":
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# TOML loading helpers
# ---------------------------------------------------------------------------
def _load_toml(path: Path) -> dict[str, Any]:
    """
    Parse a TOML file at `path`.

    Behavior:
    - If the file does not exist, return an empty dict (non-fatal).
    - If the file exists but is invalid TOML, raise a ConfigError
      with a clear, user-facing message.
    """
    if not path.is_file():
        return {}

    try:
        try:
            # Python 3.11+ standard library
            import tomllib
            return tomllib.loads(path.read_text(encoding="utf-8")) or {}
        except ModuleNotFoundError:
            import tomli
            return tomli.loads(path.read_text(encoding="utf-8")) or {}
    except (OSError, ValueError) as e:
        # TOMLDecodeError subclasses ValueError in both tomllib and tomli
        raise ConfigError(f"Failed to parse TOML config: {path} ({e})") from e


# ---------------------------------------------------------------------------
# Generic coercion helpers
# ---------------------------------------------------------------------------
def _as_bool(v: Any, default: bool) -> bool:
    """
    Coerce loosely-typed config values into booleans, so that TOML and
    environment variables behave consistently.
    """
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("true", "yes", "y", "1", "on"):
            return True
        if s in ("false", "no", "n", "0", "off"):
            return False
    return default


def _as_float(v: Any, key: str) -> Optional[float]:
    if v is None or v == "":
        return None
    try:
        return float(v)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key}: expected a number, got {v!r}") from e


def _as_int(v: Any, key: str) -> Optional[int]:
    if v is None or v == "":
        return None
    try:
        return int(v, 0) if isinstance(v, str) else int(v)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{key}: expected an integer, got {v!r}") from e


# ---------------------------------------------------------------------------
# Repo discovery
# ---------------------------------------------------------------------------
def find_repo_root(start: Path) -> Optional[Path]:
    """
    Walk upward from `start` looking for the trackmax repo root.

    Heuristic:
    - The presence of a `config/` directory marks the repo root
    """
    start = start.resolve()
    for p in [start] + list(start.parents):
        if (p / "config").is_dir():
            return p
    return None


# ---------------------------------------------------------------------------
# Typed config dataclasses
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PipelineDefaults:
    """
    Persistent defaults for the pipeline-related CLI options.
    """

    max_grade: Optional[float] = None
    min_grade: Optional[float] = None
    max_grade_change: float = 0.0
    xma_method: XmaMethod = XmaMethod.SIMPLE
    xma_metric: XmaMetric = XmaMetric.ELEVATION
    xma_window: int = 0
    speed_warn_threshold: float = DEFAULT_SPEED_WARN_THRESHOLD
    quiet: bool = False


@dataclass(frozen=True)
class OutputDefaults:
    """
    Persistent defaults for the output-related CLI options.

    format=None means "same format as the first input file".
    output_filter is the mask of optional channels to suppress.
    """

    format: Optional[OutputFormat] = None
    rel_time: TimeFormat = TimeFormat.NONE
    activity_type: Optional[str] = None
    output_filter: int = 0


@dataclass(frozen=True)
class TrackmaxConfig:
    """
    Fully merged trackmax configuration.

    Attributes:
    - pipeline: defaults for the pipeline options
    - output: defaults for the output options
    - source: provenance map showing where each value came from
    """

    pipeline: PipelineDefaults
    output: OutputDefaults
    source: dict[str, str] = field(default_factory=dict)


_PIPELINE_KEYS = (
    "max_grade", "min_grade", "max_grade_change",
    "xma_method", "xma_metric", "xma_window",
    "speed_warn_threshold", "quiet",
)
_OUTPUT_KEYS = ("format", "rel_time", "activity_type", "output_filter")

_ENV_MAP = {
    "TRACKMAX_MAX_GRADE": "pipeline.max_grade",
    "TRACKMAX_MIN_GRADE": "pipeline.min_grade",
    "TRACKMAX_MAX_GRADE_CHANGE": "pipeline.max_grade_change",
    "TRACKMAX_XMA_METHOD": "pipeline.xma_method",
    "TRACKMAX_XMA_METRIC": "pipeline.xma_metric",
    "TRACKMAX_XMA_WINDOW": "pipeline.xma_window",
    "TRACKMAX_SPEED_WARN_THRESHOLD": "pipeline.speed_warn_threshold",
    "TRACKMAX_QUIET": "pipeline.quiet",
    "TRACKMAX_OUTPUT_FORMAT": "output.format",
    "TRACKMAX_REL_TIME": "output.rel_time",
    "TRACKMAX_ACTIVITY_TYPE": "output.activity_type",
    "TRACKMAX_OUTPUT_FILTER": "output.output_filter",
}


def _coerce(key: str, v: Any) -> Any:
    """Turn a raw TOML/env value for dotted `key` into its typed form."""
    name = key.split(".", 1)[1]
    if name in ("max_grade", "min_grade", "max_grade_change", "speed_warn_threshold"):
        return _as_float(v, key)
    if name in ("xma_window", "output_filter"):
        return _as_int(v, key)
    if name == "quiet":
        return _as_bool(v, False)
    if name == "xma_method":
        return _parse_enum(XmaMethod, v, key)
    if name == "xma_metric":
        return _parse_enum(XmaMetric, v, key)
    if name == "format":
        return _parse_enum(OutputFormat, v, key)
    if name == "rel_time":
        return _parse_enum(TimeFormat, v, key)
    return str(v)


# ---------------------------------------------------------------------------
# Main config loader
# ---------------------------------------------------------------------------
def load_config(
    repo_root: Optional[Path] = None,
    repo_config_path: Optional[Path] = None,
    user_config_path: Optional[Path] = None,
) -> TrackmaxConfig:
    """
    Load, merge, and normalize all trackmax configuration.

    This function is the single authoritative entry point
    for persistent configuration access.
    """

    # Locate repo and config files
    if repo_root is None:
        repo_root = find_repo_root(Path(__file__).resolve())
    if repo_config_path is None and repo_root is not None:
        repo_config_path = repo_root / "config" / "config.toml"
    if user_config_path is None:
        user_config_path = Path.home() / ".config" / "trackmax" / "config.toml"

    values: dict[str, Any] = {}
    src: dict[str, str] = {}
    for k in _PIPELINE_KEYS:
        src[f"pipeline.{k}"] = "default"
    for k in _OUTPUT_KEYS:
        src[f"output.{k}"] = "default"

    # Repo config, then user config (overrides repo)
    for cfg_path, label in ((repo_config_path, "repo"), (user_config_path, "user")):
        if cfg_path is None:
            continue
        raw = _load_toml(cfg_path)
        for section, keys in (("pipeline", _PIPELINE_KEYS), ("output", _OUTPUT_KEYS)):
            block = raw.get(section, {}) or {}
            if not isinstance(block, dict):
                raise ConfigError(f"[{section}] in {cfg_path} must be a table")
            for k in keys:
                if k not in block:
                    continue
                key = f"{section}.{k}"
                values[key] = _coerce(key, block[k])
                src[key] = f"{label}:{cfg_path}"

    # Environment variable overrides (highest non-CLI precedence)
    for env, key in _ENV_MAP.items():
        raw_val = os.environ.get(env)
        if raw_val is None or raw_val == "":
            continue
        values[key] = _coerce(key, raw_val)
        src[key] = f"env:{env}"

    def pick(key: str, default: Any) -> Any:
        v = values.get(key)
        return default if v is None else v

    pipeline = PipelineDefaults(
        max_grade=values.get("pipeline.max_grade"),
        min_grade=values.get("pipeline.min_grade"),
        max_grade_change=pick("pipeline.max_grade_change", 0.0),
        xma_method=pick("pipeline.xma_method", XmaMethod.SIMPLE),
        xma_metric=pick("pipeline.xma_metric", XmaMetric.ELEVATION),
        xma_window=pick("pipeline.xma_window", 0),
        speed_warn_threshold=pick("pipeline.speed_warn_threshold", DEFAULT_SPEED_WARN_THRESHOLD),
        quiet=pick("pipeline.quiet", False),
    )

    output = OutputDefaults(
        format=values.get("output.format"),
        rel_time=pick("output.rel_time", TimeFormat.NONE),
        activity_type=values.get("output.activity_type"),
        output_filter=pick("output.output_filter", 0),
    )

    return TrackmaxConfig(pipeline=pipeline, output=output, source=src)
