"""
Data models for effort calibration.

SetObservation is the single value type accepted at the engine boundary;
it validates itself on construction so nothing malformed reaches the
sample window.  The remaining dataclasses are engine outputs.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

ConfidenceLevel = Literal["low", "medium", "high"]
BiasInterpretation = Literal[
    "accurate",
    "leaves more in reserve than reported",
    "pushes closer to failure than reported",
]
BiasLevel = Literal["sandbagging", "accurate", "overreaching"]
Priority = Literal["high", "medium", "low"]


class ValidationError(ValueError):
    """Raised when an observation or its ordering is invalid."""

    pass


class OutOfOrderObservationError(ValidationError):
    """Raised when an observation is older than the exercise's latest sample."""

    pass


@dataclass(frozen=True)
class RepRange:
    """Prescribed rep range; ``max`` is None for open-ended AMRAP prescriptions."""

    min: int
    max: int | None = None

    def __post_init__(self) -> None:
        if self.min < 0:
            raise ValidationError("prescribed_reps.min must be non-negative")
        if self.max is not None and self.max < self.min:
            raise ValidationError(
                f"prescribed_reps.max ({self.max}) must be >= min ({self.min})"
            )

    def __str__(self) -> str:
        if self.max is None:
            return f"{self.min}+"
        if self.max == self.min:
            return str(self.min)
        return f"{self.min}-{self.max}"


def _check_count(name: str, value: object) -> None:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")


@dataclass(frozen=True)
class SetObservation:
    """
    One completed working set offered to the calibration engine.

    Samples are partitioned strictly by ``exercise_id``.  ``was_amrap`` is
    true only for sets taken to volitional failure.
    """

    exercise_id: str
    exercise_name: str
    weight: float
    prescribed_reps: RepRange
    actual_reps: int
    reported_rir: int
    was_amrap: bool
    timestamp: datetime
    rest_seconds: int | None = None

    def __post_init__(self) -> None:
        """Validate observation data."""
        if not isinstance(self.exercise_id, str) or not self.exercise_id.strip():
            raise ValidationError("exercise_id must be a non-empty string")
        if not isinstance(self.timestamp, datetime):
            raise ValidationError(
                f"timestamp must be a datetime, got {type(self.timestamp).__name__}"
            )
        if isinstance(self.weight, bool) or not isinstance(self.weight, (int, float)):
            raise ValidationError(f"weight must be a number, got {self.weight!r}")
        if not math.isfinite(self.weight) or self.weight < 0:
            raise ValidationError(
                f"weight must be finite and non-negative, got {self.weight!r}"
            )
        _check_count("actual_reps", self.actual_reps)
        _check_count("reported_rir", self.reported_rir)
        if self.rest_seconds is not None:
            _check_count("rest_seconds", self.rest_seconds)


@dataclass(frozen=True)
class BiasEstimate:
    """Raw comparison of one AMRAP against its sub-maximal context."""

    predicted_max_reps: float
    actual_max_reps: int
    bias: float
    authoritative_1rm: float
    context_samples: int
    timestamp: datetime


@dataclass(frozen=True)
class CalibrationResult:
    """
    Output of one successful calibration event.

    ``predicted_max_reps``, ``actual_max_reps`` and ``bias`` describe the AMRAP
    that triggered the event.  ``smoothed_bias``, ``bias_interpretation``,
    ``confidence_level`` and ``data_points`` describe the exercise's updated
    running calibration.
    """

    exercise_id: str
    exercise_name: str
    predicted_max_reps: float
    actual_max_reps: int
    bias: float  # actual - predicted; positive = under-reported effort
    smoothed_bias: float
    bias_interpretation: BiasInterpretation
    confidence_level: ConfidenceLevel
    last_calibrated: datetime
    data_points: int  # Cumulative AMRAP events since the last reset


@dataclass(frozen=True)
class AdjustedTarget:
    """RIR prescription after applying an exercise's calibration."""

    has_adjustment: bool
    prescribed_rir: int  # What to tell the trainee
    internal_target_rir: int  # What we actually want them to hit
    confidence_level: ConfidenceLevel | None = None
    adjustment_reason: str | None = None


@dataclass
class BiasAnalysis:
    """Read-only summary of calibration across all exercises."""

    overall_bias: float
    exercise_specific_bias: dict[str, float] = field(default_factory=dict)
    sandbagging_detected: bool = False
    overreaching_detected: bool = False
    recommendation: str = ""
    calibrated_exercises: int = 0
    needs_more_data: bool = True


@dataclass(frozen=True)
class CalibrationPriority:
    """How urgently an exercise needs a fresh AMRAP."""

    exercise_id: str
    exercise_name: str
    priority: Priority
    reason: str
