"""Load, validate, and hot-reload the Clarity engine configuration.

The config lives in ``engine_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_engine_config()`` to re-read from
disk after an edit; no restart required.

Usage::

    from clarity.config_loader import get_engine_config

    config = get_engine_config()
    config.remote.timeout_seconds          # 15.0
    config.local_scoring.delta("alcohol")  # -0.3
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger("clarity.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "engine_config.yaml"

_REQUIRED_DELTAS = (
    "motivation_low",
    "motivation_high",
    "midday_energy_low",
    "midday_energy_high",
    "day_worse",
    "day_better",
    "late_caffeine",
    "skipped_meals",
    "alcohol",
)


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class RemoteScoringConfig:
    """Deadlines for the remote (AI-augmented) score computation."""

    timeout_seconds: float
    regenerate_timeout_seconds: float


@dataclass
class LocalScoringConfig:
    """Parameters of the deterministic local fallback heuristic."""

    baseline: float
    rested_weight: float
    min_score: float
    max_score: float
    deltas: dict[str, float]

    def delta(self, name: str) -> float:
        return self.deltas.get(name, 0.0)


@dataclass
class SleepQualityConfig:
    """Duration thresholds (hours) for the sleep quality tiers."""

    good_hours: float
    fair_hours: float


@dataclass
class HealthSyncConfig:
    """Health sync window and OAuth refresh settings."""

    range_days: int
    token_refresh_buffer_seconds: int


@dataclass
class SyntheticRanges:
    """Half-open [low, high) ranges for generated test data."""

    sleep_hours: tuple[float, float]
    steps: tuple[int, int]
    hrv_ms: tuple[int, int]
    resting_hr_bpm: tuple[int, int]
    active_calories: tuple[int, int]


@dataclass
class EngineConfig:
    """Complete, validated engine configuration.

    This is the single in-memory representation of engine_config.yaml.
    The score engine, reconciler and adapters read from this object.
    """

    version: str
    remote: RemoteScoringConfig
    local_scoring: LocalScoringConfig
    sleep_quality: SleepQualityConfig
    health_sync: HealthSyncConfig
    synthetic: SyntheticRanges
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when engine_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _range(raw: dict, key: str, errors: list[str], cast: type = float) -> tuple:
    value = raw.get(key)
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        errors.append(f"synthetic.{key} must be a [low, high] pair, got {value!r}")
        return (cast(0), cast(1))
    low, high = cast(value[0]), cast(value[1])
    if low >= high:
        errors.append(f"synthetic.{key} low bound {low} must be below high bound {high}")
    return (low, high)


def _validate_and_build(raw: dict) -> EngineConfig:
    """Validate the raw YAML dict and construct an EngineConfig.

    Raises:
        ConfigValidationError: If required fields are missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Remote scoring ──
    rs_raw = raw.get("remote_scoring", {}) or {}
    remote = RemoteScoringConfig(
        timeout_seconds=float(rs_raw.get("timeout_seconds", 15)),
        regenerate_timeout_seconds=float(rs_raw.get("regenerate_timeout_seconds", 20)),
    )
    if remote.timeout_seconds <= 0 or remote.regenerate_timeout_seconds <= 0:
        errors.append("remote_scoring timeouts must be positive")

    # ── Local scoring ──
    ls_raw = raw.get("local_scoring", {}) or {}
    deltas: dict[str, float] = {}
    for key, val in (ls_raw.get("deltas") or {}).items():
        try:
            deltas[key] = float(val)
        except (TypeError, ValueError):
            errors.append(f"local_scoring.deltas.{key} must be a number, got {val!r}")
    for key in _REQUIRED_DELTAS:
        if key not in deltas:
            errors.append(f"Missing required key '{key}' in section 'local_scoring.deltas'")

    local_scoring = LocalScoringConfig(
        baseline=float(ls_raw.get("baseline", 5.0)),
        rested_weight=float(ls_raw.get("rested_weight", 0.4)),
        min_score=float(ls_raw.get("min_score", 1.0)),
        max_score=float(ls_raw.get("max_score", 10.0)),
        deltas=deltas,
    )
    if not (0.0 <= local_scoring.rested_weight <= 1.0):
        errors.append(
            f"local_scoring.rested_weight = {local_scoring.rested_weight} "
            "is out of range [0.0, 1.0]"
        )
    if local_scoring.min_score >= local_scoring.max_score:
        errors.append("local_scoring.min_score must be below max_score")

    # ── Sleep quality ──
    sq_raw = raw.get("sleep_quality", {}) or {}
    sleep_quality = SleepQualityConfig(
        good_hours=float(sq_raw.get("good_hours", 7.0)),
        fair_hours=float(sq_raw.get("fair_hours", 6.0)),
    )
    if sleep_quality.fair_hours > sleep_quality.good_hours:
        errors.append("sleep_quality.fair_hours must not exceed good_hours")

    # ── Health sync ──
    hs_raw = raw.get("health_sync", {}) or {}
    health_sync = HealthSyncConfig(
        range_days=int(hs_raw.get("range_days", 7)),
        token_refresh_buffer_seconds=int(hs_raw.get("token_refresh_buffer_seconds", 300)),
    )
    if health_sync.range_days < 1:
        errors.append("health_sync.range_days must be at least 1")

    # ── Synthetic ranges ──
    syn_raw = raw.get("synthetic", {}) or {}
    synthetic = SyntheticRanges(
        sleep_hours=_range(syn_raw, "sleep_hours", errors),
        steps=_range(syn_raw, "steps", errors, int),
        hrv_ms=_range(syn_raw, "hrv_ms", errors, int),
        resting_hr_bpm=_range(syn_raw, "resting_hr_bpm", errors, int),
        active_calories=_range(syn_raw, "active_calories", errors, int),
    )

    if errors:
        raise ConfigValidationError(
            f"engine_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return EngineConfig(
        version=version,
        remote=remote,
        local_scoring=local_scoring,
        sleep_quality=sleep_quality,
        health_sync=health_sync,
        synthetic=synthetic,
        _raw=raw,
    )


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses the bundled engine_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded engine config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: EngineConfig | None = None
_config_lock = threading.Lock()


def get_engine_config() -> EngineConfig:
    """Return the global EngineConfig singleton, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_engine_config()
    return _config


def reload_engine_config(path: Path | None = None) -> EngineConfig:
    """Reload the engine config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_engine_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded engine config: %s → %s", old_version, new_config.version)
    return new_config
