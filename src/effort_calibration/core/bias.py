"""
Bias estimation: compare an AMRAP outcome to what sub-maximal sets predicted.

For an AMRAP at weight W, the exercise's prior non-AMRAP sets give a
strength estimate (1RM).  Converting that 1RM back to reps at W yields the
expected reps to failure; the signed gap to the observed AMRAP reps is the
bias.

    bias = actual_max_reps - predicted_max_reps

Positive bias: the trainee did more than the model expected, i.e. their
self-rated effort leaves more in reserve than reported.  Negative bias: they
push closer to failure than they report.
"""

from datetime import timedelta
from typing import Iterable

from .config import (
    ACCURATE_BIAS_THRESHOLD,
    BIAS_LEVEL_THRESHOLD,
    RETENTION_DAYS,
)
from .models import BiasEstimate, BiasInterpretation, BiasLevel, SetObservation
from .strength import estimated_1rm, estimated_reps_at_load

ACCURATE: BiasInterpretation = "accurate"
LEAVES_MORE_IN_RESERVE: BiasInterpretation = "leaves more in reserve than reported"
PUSHES_CLOSER_TO_FAILURE: BiasInterpretation = "pushes closer to failure than reported"


class BiasEstimator:
    """Computes predicted max reps and signed bias for one AMRAP set."""

    def __init__(
        self,
        retention_days: int = RETENTION_DAYS,
        context_uses_reported_rir: bool = False,
    ):
        """
        Args:
            retention_days: Context samples older than this (relative to the
                AMRAP) are ignored
            context_uses_reported_rir: Treat a context set's reps to failure as
                actual_reps + reported_rir instead of actual_reps
        """
        self.retention = timedelta(days=retention_days)
        self.context_uses_reported_rir = context_uses_reported_rir

    def eligible_context(
        self,
        amrap: SetObservation,
        samples: Iterable[SetObservation],
    ) -> list[SetObservation]:
        """
        Filter ``samples`` down to valid comparison context for ``amrap``.

        Only non-AMRAP sets of the same exercise that happened strictly
        before the AMRAP, inside the retention horizon, with a positive load
        and at least one rep are eligible.
        """
        cutoff = amrap.timestamp - self.retention
        return [
            s
            for s in samples
            if s.exercise_id == amrap.exercise_id
            and not s.was_amrap
            and cutoff <= s.timestamp < amrap.timestamp
            and s.weight > 0
            and s.actual_reps >= 1
        ]

    def _sample_1rm(self, sample: SetObservation) -> float:
        reps = sample.actual_reps
        if self.context_uses_reported_rir:
            reps += sample.reported_rir
        return estimated_1rm(sample.weight, reps)

    def estimate(
        self,
        amrap: SetObservation,
        samples: Iterable[SetObservation],
    ) -> BiasEstimate | None:
        """
        Compare ``amrap`` against its prior sub-maximal sets.

        The most recent context set is the authoritative strength estimate;
        sets sharing that timestamp are averaged.

        Returns:
            BiasEstimate, or None when there is no usable context (the caller
            still keeps the AMRAP for future use)
        """
        if amrap.weight <= 0:
            return None

        context = self.eligible_context(amrap, samples)
        if not context:
            return None

        newest = max(s.timestamp for s in context)
        latest = [self._sample_1rm(s) for s in context if s.timestamp == newest]
        authoritative = sum(latest) / len(latest)
        if authoritative <= 0:
            return None

        predicted = estimated_reps_at_load(authoritative, amrap.weight)
        return BiasEstimate(
            predicted_max_reps=predicted,
            actual_max_reps=amrap.actual_reps,
            bias=amrap.actual_reps - predicted,
            authoritative_1rm=authoritative,
            context_samples=len(context),
            timestamp=amrap.timestamp,
        )


# ---------------------------------------------------------------------------
# Interpretation helpers
# ---------------------------------------------------------------------------


def interpret_bias(
    bias: float,
    threshold: float = ACCURATE_BIAS_THRESHOLD,
) -> BiasInterpretation:
    """Categorise a (smoothed) bias: within ±threshold reps is accurate."""
    if abs(bias) < threshold:
        return ACCURATE
    if bias > 0:
        return LEAVES_MORE_IN_RESERVE
    return PUSHES_CLOSER_TO_FAILURE


def bias_level(bias: float) -> BiasLevel:
    """Coarse display category with a ±1.5 rep band."""
    if bias >= BIAS_LEVEL_THRESHOLD:
        return "sandbagging"
    if bias <= -BIAS_LEVEL_THRESHOLD:
        return "overreaching"
    return "accurate"


def format_bias(bias: float) -> str:
    """Format bias as a signed rep count, e.g. "+2.0 reps"."""
    return f"{bias:+.1f} reps"


def describe_bias(bias: float) -> str:
    """Longer human-readable description of a bias value."""
    if bias >= 4:
        return "Significant sandbagging: 4+ more reps in the tank than reported"
    if bias >= 2:
        return "Moderate sandbagging: stopping 2-3 reps earlier than necessary"
    if bias >= 0.5:
        return "Slight underestimate: pretty well calibrated"
    if bias >= -0.5:
        return "Excellent calibration: RIR estimates are accurate"
    if bias >= -2:
        return "Slight overestimate: pushing a bit harder than reported"
    return "Significant overestimate: closer to failure than reported"


def overall_recommendation(overall_bias: float) -> str:
    """Coaching recommendation for a cross-exercise average bias."""
    if overall_bias >= 3:
        return (
            "You're consistently stopping 3+ reps before failure. Your hard sets "
            "aren't as hard as you think; push closer to failure on safe exercises."
        )
    if overall_bias >= 1.5:
        return (
            "You tend to underestimate your capacity by 1-2 reps. Consider pushing "
            "a bit harder, especially on machine and isolation work."
        )
    if overall_bias >= -0.5:
        return (
            "Your RPE calibration is solid. Keep using AMRAP sets periodically "
            "to stay calibrated."
        )
    if overall_bias >= -1.5:
        return (
            "You tend to push slightly closer to failure than you think. This is "
            "fine, but monitor for signs of overreaching."
        )
    return (
        "You may be pushing too close to failure regularly, which raises injury "
        "risk and recovery demands. Consider leaving 1-2 more reps in reserve."
    )
