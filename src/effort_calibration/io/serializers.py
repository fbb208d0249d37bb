"""
JSON serialization for calibration data models.

Handles conversion between dataclasses and JSON-compatible dicts.
Timestamps are ISO 8601 strings.
"""

import math
from datetime import datetime
from typing import Any

from ..core.models import (
    AdjustedTarget,
    CalibrationResult,
    RepRange,
    SetObservation,
    ValidationError,
)
from ..core.strength import rir_from_rpe

__all__ = [
    "ValidationError",
    "adjusted_target_to_dict",
    "calibration_result_to_dict",
    "dict_to_observation",
    "observation_to_dict",
    "parse_timestamp",
]


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO 8601 timestamp.

    Accepts datetime objects unchanged and a trailing "Z" for UTC.

    Raises:
        ValidationError: If the value is not a valid timestamp
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise ValidationError(f"Invalid timestamp: {value!r}") from e


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data or data[key] is None:
        raise ValidationError(f"Missing required field: {key}")
    return data[key]


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    try:
        number = float(value)
        whole = int(number)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValidationError(f"{name} must be an integer, got {value!r}") from e
    if number != whole:
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    return whole


def _as_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return number


def observation_to_dict(observation: SetObservation) -> dict[str, Any]:
    """
    Convert SetObservation to JSON-compatible dict.

    Args:
        observation: SetObservation to convert

    Returns:
        Dict representation
    """
    data: dict[str, Any] = {
        "exercise_id": observation.exercise_id,
        "exercise_name": observation.exercise_name,
        "weight": observation.weight,
        "prescribed_reps": {
            "min": observation.prescribed_reps.min,
            "max": observation.prescribed_reps.max,
        },
        "actual_reps": observation.actual_reps,
        "reported_rir": observation.reported_rir,
        "was_amrap": observation.was_amrap,
        "timestamp": observation.timestamp.isoformat(),
    }
    if observation.rest_seconds is not None:
        data["rest_seconds"] = observation.rest_seconds
    return data


def dict_to_observation(data: dict[str, Any]) -> SetObservation:
    """
    Convert dict to SetObservation.

    ``reported_rir`` may be replaced by ``rpe``, converted with
    RIR = round(10 - RPE) floored at 0.  ``prescribed_reps`` may be a
    {"min", "max"} dict or a single integer.  ``exercise_name`` defaults to
    the exercise ID.

    Args:
        data: Dict representation

    Returns:
        SetObservation instance

    Raises:
        ValidationError: If data is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Expected an object, got {type(data).__name__}")

    exercise_id = _require(data, "exercise_id")
    if not isinstance(exercise_id, str):
        raise ValidationError(f"exercise_id must be a string, got {exercise_id!r}")

    if data.get("reported_rir") is not None:
        reported_rir = _as_int(data["reported_rir"], "reported_rir")
    elif data.get("rpe") is not None:
        reported_rir = rir_from_rpe(_as_float(data["rpe"], "rpe"))
    else:
        raise ValidationError("Missing required field: reported_rir (or rpe)")

    raw_range = data.get("prescribed_reps")
    if isinstance(raw_range, dict):
        rep_min = _as_int(raw_range.get("min", 0), "prescribed_reps.min")
        rep_max_raw = raw_range.get("max")
        rep_max = None if rep_max_raw is None else _as_int(rep_max_raw, "prescribed_reps.max")
    elif raw_range is None:
        rep_min, rep_max = 0, None
    else:
        rep_min = _as_int(raw_range, "prescribed_reps")
        rep_max = rep_min

    was_amrap = data.get("was_amrap", False)
    if not isinstance(was_amrap, bool):
        raise ValidationError(f"was_amrap must be true or false, got {was_amrap!r}")

    rest = data.get("rest_seconds")

    return SetObservation(
        exercise_id=exercise_id,
        exercise_name=str(data.get("exercise_name") or exercise_id),
        weight=_as_float(_require(data, "weight"), "weight"),
        prescribed_reps=RepRange(min=rep_min, max=rep_max),
        actual_reps=_as_int(_require(data, "actual_reps"), "actual_reps"),
        reported_rir=reported_rir,
        was_amrap=was_amrap,
        timestamp=parse_timestamp(_require(data, "timestamp")),
        rest_seconds=None if rest is None else _as_int(rest, "rest_seconds"),
    )


def calibration_result_to_dict(result: CalibrationResult) -> dict[str, Any]:
    """
    Convert CalibrationResult to JSON-compatible dict.

    Float fields are rounded to 2 decimal places.
    """
    return {
        "exercise_id": result.exercise_id,
        "exercise_name": result.exercise_name,
        "predicted_max_reps": round(result.predicted_max_reps, 2),
        "actual_max_reps": result.actual_max_reps,
        "bias": round(result.bias, 2),
        "smoothed_bias": round(result.smoothed_bias, 2),
        "bias_interpretation": result.bias_interpretation,
        "confidence_level": result.confidence_level,
        "last_calibrated": result.last_calibrated.isoformat(),
        "data_points": result.data_points,
    }


def adjusted_target_to_dict(target: AdjustedTarget) -> dict[str, Any]:
    """Convert AdjustedTarget to JSON-compatible dict."""
    return {
        "has_adjustment": target.has_adjustment,
        "prescribed_rir": target.prescribed_rir,
        "internal_target_rir": target.internal_target_rir,
        "confidence_level": target.confidence_level,
        "adjustment_reason": target.adjustment_reason,
    }
