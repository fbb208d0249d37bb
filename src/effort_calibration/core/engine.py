"""
CalibrationEngine: the single entry point for effort calibration.

Usage:
    engine = CalibrationEngine(load_calibration_config())
    engine.replay(historical_sets)          # chronological, completed sets only
    result = engine.record_set(observation) # live ingestion, same semantics
    target = engine.get_adjusted_target("bench_press", nominal_rir=2)

Every set goes into the SampleStore.  AMRAP sets are additionally compared
against the exercise's prior sub-maximal sets (BiasEstimator) and folded into
the running calibration (CalibrationAggregator).

State is partitioned by exercise and each exercise is guarded by its own
lock, so different exercises can be fed from different threads.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterable, Iterator

from .aggregator import CalibrationAggregator
from .bias import BiasEstimator, format_bias, overall_recommendation
from .config import (
    CONFIDENCE_WEIGHTS,
    DEFAULT_CONFIG,
    MIN_CONFIDENT_EXERCISES,
    OVERALL_BIAS_FLAG_THRESHOLD,
    RECALIBRATION_DAYS,
    STALE_CALIBRATION_DAYS,
    CalibrationConfig,
)
from .models import (
    AdjustedTarget,
    BiasAnalysis,
    CalibrationPriority,
    CalibrationResult,
    OutOfOrderObservationError,
    SetObservation,
    ValidationError,
)
from .sample_store import SampleStore

logger = logging.getLogger(__name__)

_PRIORITY_ORDER: dict[str, int] = {"high": 0, "medium": 1, "low": 2}


class CalibrationEngine:
    """
    Stateful online estimator of per-exercise RIR reporting bias.

    Owned by whatever manages a trainee's session; it keeps everything in
    memory and persists nothing.
    """

    def __init__(self, config: CalibrationConfig | None = None):
        """
        Initialize an empty engine.

        Args:
            config: Calibration parameters (defaults from config.py)
        """
        self.config = config if config is not None else DEFAULT_CONFIG
        self.samples = SampleStore(
            retention_days=self.config.retention_days,
            max_samples=self.config.max_window_samples,
        )
        self.estimator = BiasEstimator(
            retention_days=self.config.retention_days,
            context_uses_reported_rir=self.config.context_uses_reported_rir,
        )
        self.aggregator = CalibrationAggregator(
            retention_days=self.config.retention_days,
            max_samples=self.config.max_window_samples,
            medium_min=self.config.confidence_medium_min,
            high_min=self.config.confidence_high_min,
            accurate_threshold=self.config.accurate_bias_threshold,
        )
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _exercise_lock(self, exercise_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(exercise_id, threading.Lock())
        with lock:
            yield

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def record_set(self, observation: SetObservation) -> CalibrationResult | None:
        """
        Ingest one completed working set.

        Args:
            observation: The set; must not be older than the latest set
                already recorded for the same exercise

        Returns:
            CalibrationResult for an AMRAP with usable context, else None

        Raises:
            ValidationError: If the observation is malformed or out of order
                (nothing is mutated in that case)
        """
        if not isinstance(observation, SetObservation):
            raise ValidationError(
                f"expected SetObservation, got {type(observation).__name__}"
            )
        exercise_id = observation.exercise_id

        with self._exercise_lock(exercise_id):
            latest = self.samples.latest_timestamp(exercise_id)
            if latest is not None:
                try:
                    out_of_order = observation.timestamp < latest
                except TypeError as e:
                    raise ValidationError(
                        f"timestamp {observation.timestamp.isoformat()} is not "
                        f"comparable with stored {latest.isoformat()}"
                    ) from e
                if out_of_order:
                    raise OutOfOrderObservationError(
                        f"{exercise_id}: timestamp {observation.timestamp.isoformat()} "
                        f"is earlier than latest recorded {latest.isoformat()}; "
                        "sort observations before submitting"
                    )

            context = self.samples.recent(exercise_id) if observation.was_amrap else ()
            self.samples.add(observation)

            if not observation.was_amrap:
                return None

            estimate = self.estimator.estimate(observation, context)
            if estimate is None:
                logger.debug(
                    "%s: AMRAP at %s has no prior sub-maximal context; stored only",
                    exercise_id,
                    observation.timestamp.isoformat(),
                )
                return None

            result = self.aggregator.add(
                exercise_id, observation.exercise_name, estimate
            )

        logger.info(
            "Calibrated %s: predicted=%.1f actual=%d bias=%+.2f smoothed=%+.2f "
            "confidence=%s points=%d",
            exercise_id,
            result.predicted_max_reps,
            result.actual_max_reps,
            result.bias,
            result.smoothed_bias,
            result.confidence_level,
            result.data_points,
        )
        return result

    def replay(self, observations: Iterable[SetObservation]) -> list[CalibrationResult]:
        """
        Feed historical observations through record_set, in order.

        Returns:
            Every CalibrationResult emitted during the replay
        """
        results: list[CalibrationResult] = []
        for obs in observations:
            result = self.record_set(obs)
            if result is not None:
                results.append(result)
        logger.debug("Replay produced %d calibration events", len(results))
        return results

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_calibration(self, exercise_id: str) -> CalibrationResult | None:
        """Latest calibration result for the exercise, or None."""
        with self._exercise_lock(exercise_id):
            state = self.aggregator.get_state(exercise_id)
            return state.last_result if state is not None else None

    def get_adjusted_target(self, exercise_id: str, nominal_rir: int) -> AdjustedTarget:
        """
        RIR to prescribe so the trainee actually lands on ``nominal_rir``.

        prescribed = max(0, round(nominal_rir - smoothed_bias))

        Low confidence (or no calibration) leaves the target unchanged.
        """
        if nominal_rir < 0:
            raise ValidationError(f"nominal_rir must be non-negative, got {nominal_rir}")

        with self._exercise_lock(exercise_id):
            state = self.aggregator.get_state(exercise_id)
            if state is None or not state.bias_samples:
                return AdjustedTarget(
                    has_adjustment=False,
                    prescribed_rir=nominal_rir,
                    internal_target_rir=nominal_rir,
                )
            smoothed = state.smoothed_bias
            confidence = self.aggregator.confidence(state.data_points)

        if confidence == "low":
            return AdjustedTarget(
                has_adjustment=False,
                prescribed_rir=nominal_rir,
                internal_target_rir=nominal_rir,
                confidence_level=confidence,
            )

        prescribed = max(0, round(nominal_rir - smoothed))
        if prescribed == nominal_rir:
            return AdjustedTarget(
                has_adjustment=False,
                prescribed_rir=nominal_rir,
                internal_target_rir=nominal_rir,
                confidence_level=confidence,
            )

        shift = nominal_rir - prescribed
        if shift > 0:
            reason = (
                f"Adjusted down by {shift} based on your calibration data "
                f"(measured bias {format_bias(smoothed)}: you tend to stop early)"
            )
        else:
            reason = (
                f"Adjusted up by {-shift} based on your calibration data "
                f"(measured bias {format_bias(smoothed)}: you tend to push closer "
                "to failure than you report)"
            )
        return AdjustedTarget(
            has_adjustment=True,
            prescribed_rir=prescribed,
            internal_target_rir=nominal_rir,
            confidence_level=confidence,
            adjustment_reason=reason,
        )

    def needs_calibration(
        self,
        exercise_id: str,
        as_of: datetime | None = None,
        day_threshold: int = RECALIBRATION_DAYS,
    ) -> bool:
        """True if uncalibrated, low confidence, or calibrated too long ago."""
        calibration = self.get_calibration(exercise_id)
        if calibration is None or calibration.confidence_level == "low":
            return True
        now = as_of if as_of is not None else datetime.now(calibration.last_calibrated.tzinfo)
        return now - calibration.last_calibrated >= timedelta(days=day_threshold)

    def calibration_priorities(
        self,
        as_of: datetime | None = None,
    ) -> list[CalibrationPriority]:
        """Exercises ordered by how urgently they need a fresh AMRAP."""
        priorities: list[CalibrationPriority] = []
        for exercise_id in self.exercise_ids():
            with self._exercise_lock(exercise_id):
                samples = self.samples.recent(exercise_id)
                state = self.aggregator.get_state(exercise_id)
            calibration = state.last_result if state is not None else None
            name = (
                calibration.exercise_name
                if calibration is not None
                else samples[-1].exercise_name if samples else exercise_id
            )

            if calibration is None:
                priorities.append(
                    CalibrationPriority(exercise_id, name, "high", "Never calibrated")
                )
                continue
            if calibration.confidence_level == "low":
                priorities.append(
                    CalibrationPriority(
                        exercise_id, name, "high", "Low confidence calibration"
                    )
                )
                continue

            now = as_of if as_of is not None else datetime.now(calibration.last_calibrated.tzinfo)
            days_since = (now - calibration.last_calibrated).days
            if days_since > STALE_CALIBRATION_DAYS:
                priorities.append(
                    CalibrationPriority(
                        exercise_id, name, "medium", f"Last calibrated {days_since} days ago"
                    )
                )
            else:
                priorities.append(
                    CalibrationPriority(exercise_id, name, "low", "Recently calibrated")
                )

        priorities.sort(key=lambda p: _PRIORITY_ORDER[p.priority])
        return priorities

    def analyze_overall_bias(self) -> BiasAnalysis:
        """
        Confidence-weighted summary of every exercise's smoothed bias.

        Exercises are summarised side by side; their samples are never pooled.
        """
        calibrations = [
            c for c in (self.get_calibration(ex) for ex in self.exercise_ids())
            if c is not None
        ]
        if not calibrations:
            return BiasAnalysis(
                overall_bias=0.0,
                recommendation="Complete some AMRAP sets to calibrate your RPE perception.",
                calibrated_exercises=0,
                needs_more_data=True,
            )

        total_weight = sum(CONFIDENCE_WEIGHTS[c.confidence_level] for c in calibrations)
        overall = (
            sum(c.smoothed_bias * CONFIDENCE_WEIGHTS[c.confidence_level] for c in calibrations)
            / total_weight
        )
        confident = sum(1 for c in calibrations if c.confidence_level != "low")

        return BiasAnalysis(
            overall_bias=overall,
            exercise_specific_bias={c.exercise_id: c.smoothed_bias for c in calibrations},
            sandbagging_detected=overall >= OVERALL_BIAS_FLAG_THRESHOLD,
            overreaching_detected=overall <= -OVERALL_BIAS_FLAG_THRESHOLD,
            recommendation=overall_recommendation(overall),
            calibrated_exercises=len(calibrations),
            needs_more_data=confident < MIN_CONFIDENT_EXERCISES,
        )

    def exercise_ids(self) -> list[str]:
        """Every exercise with stored samples or a calibration, first seen first."""
        # Every exercise ever touched owns a lock; snapshot them under the guard
        with self._locks_guard:
            known = list(self._locks)
        ids: list[str] = []
        for exercise_id in known:
            with self._exercise_lock(exercise_id):
                if (
                    self.samples.recent(exercise_id)
                    or self.aggregator.get_state(exercise_id) is not None
                ):
                    ids.append(exercise_id)
        return ids

    def sample_count(self, exercise_id: str) -> int:
        with self._exercise_lock(exercise_id):
            return len(self.samples.recent(exercise_id))

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self, exercise_id: str | None = None) -> None:
        """
        Clear samples and calibration for one exercise, or for all of them.

        Callers decide when prior calibration is invalid (new equipment,
        long layoff).
        """
        targets = [exercise_id] if exercise_id is not None else self.exercise_ids()
        for ex in targets:
            with self._exercise_lock(ex):
                self.samples.clear(ex)
                self.aggregator.reset(ex)
        logger.debug("Reset calibration for %s", exercise_id or "all exercises")
