"""
Calibration aggregation: fold per-AMRAP bias samples into a running estimate.

A single AMRAP is a noisy signal (form breakdown, motivation, unfamiliarity
with true failure), so each exercise keeps a bounded window of bias samples
and reports their arithmetic mean:

    smoothed_bias = mean(bias_samples in window)

The mean is used instead of an EWMA so the figure can be explained directly:
"your average measured bias across N true-failure sets is X reps".

Confidence is earned by the cumulative number of AMRAP events since the
last reset, not by the window size: with one AMRAP a week the 28-day window
never holds more than five samples, yet six weeks of data are "high".

Confidence tiers by cumulative data points (defaults):
    N < 3        → low
    3 <= N < 6   → medium
    N >= 6       → high
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from .bias import interpret_bias
from .config import (
    ACCURATE_BIAS_THRESHOLD,
    CONFIDENCE_HIGH_MIN,
    CONFIDENCE_MEDIUM_MIN,
    MAX_WINDOW_SAMPLES,
    RETENTION_DAYS,
)
from .models import BiasEstimate, CalibrationResult, ConfidenceLevel


def confidence_for(
    data_points: int,
    medium_min: int = CONFIDENCE_MEDIUM_MIN,
    high_min: int = CONFIDENCE_HIGH_MIN,
) -> ConfidenceLevel:
    """Map a count of AMRAP data points to a confidence tier."""
    if data_points >= high_min:
        return "high"
    if data_points >= medium_min:
        return "medium"
    return "low"


@dataclass
class ExerciseCalibrationState:
    """Running calibration for one exercise; mutated in place."""

    exercise_id: str
    exercise_name: str
    bias_samples: deque[tuple[datetime, float]] = field(default_factory=deque)
    total_events: int = 0  # Every AMRAP folded in since the last reset, incl. evicted
    last_calibrated: datetime | None = None
    last_result: CalibrationResult | None = None

    @property
    def data_points(self) -> int:
        """Cumulative AMRAP count; drives the confidence tier."""
        return self.total_events

    @property
    def window_size(self) -> int:
        """Bias samples still inside the smoothing window."""
        return len(self.bias_samples)

    @property
    def smoothed_bias(self) -> float:
        if not self.bias_samples:
            return 0.0
        return sum(b for _, b in self.bias_samples) / len(self.bias_samples)


class CalibrationAggregator:
    """Maintains a smoothed calibration state per exercise."""

    def __init__(
        self,
        retention_days: int = RETENTION_DAYS,
        max_samples: int = MAX_WINDOW_SAMPLES,
        medium_min: int = CONFIDENCE_MEDIUM_MIN,
        high_min: int = CONFIDENCE_HIGH_MIN,
        accurate_threshold: float = ACCURATE_BIAS_THRESHOLD,
    ):
        self.retention = timedelta(days=retention_days)
        self.max_samples = max_samples
        self.medium_min = medium_min
        self.high_min = high_min
        self.accurate_threshold = accurate_threshold
        self._states: dict[str, ExerciseCalibrationState] = {}

    def add(
        self,
        exercise_id: str,
        exercise_name: str,
        estimate: BiasEstimate,
    ) -> CalibrationResult:
        """
        Fold one bias sample into the exercise's window.

        Returns:
            CalibrationResult whose smoothed bias comes from the updated
            window and whose confidence comes from the cumulative count
        """
        state = self._states.get(exercise_id)
        if state is None:
            state = ExerciseCalibrationState(exercise_id, exercise_name)
            self._states[exercise_id] = state
        state.exercise_name = exercise_name or state.exercise_name

        state.bias_samples.append((estimate.timestamp, estimate.bias))
        cutoff = estimate.timestamp - self.retention
        while state.bias_samples and state.bias_samples[0][0] < cutoff:
            state.bias_samples.popleft()
        while len(state.bias_samples) > self.max_samples:
            state.bias_samples.popleft()

        state.total_events += 1
        state.last_calibrated = estimate.timestamp

        smoothed = state.smoothed_bias
        result = CalibrationResult(
            exercise_id=exercise_id,
            exercise_name=state.exercise_name,
            predicted_max_reps=estimate.predicted_max_reps,
            actual_max_reps=estimate.actual_max_reps,
            bias=estimate.bias,
            smoothed_bias=smoothed,
            bias_interpretation=interpret_bias(smoothed, self.accurate_threshold),
            confidence_level=self.confidence(state.data_points),
            last_calibrated=estimate.timestamp,
            data_points=state.data_points,
        )
        state.last_result = result
        return result

    def confidence(self, data_points: int) -> ConfidenceLevel:
        return confidence_for(data_points, self.medium_min, self.high_min)

    def get_state(self, exercise_id: str) -> ExerciseCalibrationState | None:
        """Current state for an exercise, or None if it was never calibrated."""
        return self._states.get(exercise_id)

    def exercise_ids(self) -> list[str]:
        return list(self._states)

    def reset(self, exercise_id: str | None = None) -> None:
        """Forget one exercise's calibration, or all of them."""
        if exercise_id is None:
            self._states.clear()
        else:
            self._states.pop(exercise_id, None)
