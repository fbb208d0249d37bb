"""
YAML → CalibrationConfig loader.

Loads calibration parameters from calibration.yaml (bundled with the package)
and optionally merges user overrides from ~/.effort-calibration/calibration.yaml.

Usage:
    from effort_calibration.core.config_loader import load_calibration_config
    cfg = load_calibration_config()
    engine = CalibrationEngine(cfg)

If the bundled YAML cannot be parsed, the Python defaults from config.py are
used (no crash).  If the user override file has parse errors or invalid
values, a warning is emitted and the file is ignored.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path
from typing import Any

import yaml

from .config import DEFAULT_CONFIG, CalibrationConfig

# (section, key) in YAML → CalibrationConfig field
_FIELD_MAP: dict[tuple[str, str], str] = {
    ("sample_window", "retention_days"): "retention_days",
    ("sample_window", "max_window_samples"): "max_window_samples",
    ("confidence", "medium_min"): "confidence_medium_min",
    ("confidence", "high_min"): "confidence_high_min",
    ("bias", "accurate_threshold"): "accurate_bias_threshold",
    ("bias", "context_uses_reported_rir"): "context_uses_reported_rir",
}

_FIELD_TYPES: dict[str, type] = {
    "retention_days": int,
    "max_window_samples": int,
    "confidence_medium_min": int,
    "confidence_high_min": int,
    "accurate_bias_threshold": float,
    "context_uses_reported_rir": bool,
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; warn and return {} on parse errors."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(
            f"effort-calibration: ignoring unreadable config {path} ({exc})",
            stacklevel=3,
        )
        return {}
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def config_from_dict(data: dict[str, Any]) -> CalibrationConfig:
    """
    Build a CalibrationConfig from a sectioned dict (as found in YAML).

    Unknown keys are ignored; missing keys keep their defaults.

    Raises:
        ValueError: If a value cannot be converted or fails validation
    """
    kwargs: dict[str, Any] = {}
    for (section, key), field_name in _FIELD_MAP.items():
        block = data.get(section)
        if not isinstance(block, dict) or key not in block:
            continue
        raw = block[key]
        cast = _FIELD_TYPES[field_name]
        if cast is bool:
            if not isinstance(raw, bool):
                raise ValueError(f"{section}.{key} must be true or false, got {raw!r}")
            kwargs[field_name] = raw
            continue
        try:
            kwargs[field_name] = cast(raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"{section}.{key} has invalid value {raw!r}") from e
    return CalibrationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_bundled_yaml_path() -> Path | None:
    """Return the path to the bundled calibration.yaml, or None if not found."""
    # config_loader.py lives at src/effort_calibration/core/config_loader.py
    candidate = Path(__file__).parent.parent / "calibration.yaml"
    return candidate if candidate.is_file() else None


def get_user_yaml_path() -> Path | None:
    """Return ~/.effort-calibration/calibration.yaml if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".effort-calibration" / "calibration.yaml"
    return p if p.exists() else None


def load_calibration_config(user_path: Path | None = None) -> CalibrationConfig:
    """
    Load and merge calibration configuration from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/effort_calibration/calibration.yaml
    2. User override (``user_path`` or ~/.effort-calibration/calibration.yaml)

    Returns:
        CalibrationConfig; DEFAULT_CONFIG when no YAML is usable.
    """
    config: dict[str, Any] = {}

    bundled = get_bundled_yaml_path()
    if bundled is not None:
        config = _deep_merge(config, _load_yaml_file(bundled))

    base = DEFAULT_CONFIG
    if config:
        try:
            base = config_from_dict(config)
        except ValueError as exc:
            warnings.warn(
                f"effort-calibration: bundled config invalid ({exc}); using defaults.",
                stacklevel=2,
            )
            config = {}

    user = user_path if user_path is not None else get_user_yaml_path()
    if user is None or not user.exists():
        return base

    user_cfg = _load_yaml_file(user)
    if not user_cfg:
        return base
    try:
        return config_from_dict(_deep_merge(config, user_cfg))
    except ValueError as exc:
        warnings.warn(
            f"effort-calibration: ignoring user config {user} ({exc})",
            stacklevel=2,
        )
        return base
