"""
Strength model: estimated 1RM and reps-at-load conversions.

Brzycki (1993) for the 1-12 rep range, where the curve is well behaved:

    1RM  = w * 36 / (37 - r)
    r    = 37 - 36 * w / 1RM

Beyond 12 reps the curve over-predicts badly (and has a singularity at
r = 37), so a linear extension is used instead:

    1RM  = w * (1 + r / 30)
    r    = 30 * (1RM / w - 1)

All functions are pure.
"""

from .config import (
    BRZYCKI_DENOMINATOR,
    BRZYCKI_MAX_REPS,
    BRZYCKI_NUMERATOR,
    LINEAR_REPS_DIVISOR,
)


def estimated_1rm(weight: float, reps: int) -> float:
    """
    Estimate one-rep max from a set taken to (or near) failure.

    Args:
        weight: Load lifted
        reps: Reps performed (>= 1)

    Returns:
        Estimated 1RM in the same unit as ``weight``

    Raises:
        ValueError: If reps < 1 or weight < 0
    """
    if reps < 1:
        raise ValueError(f"reps must be >= 1, got {reps}")
    if weight < 0:
        raise ValueError(f"weight must be non-negative, got {weight}")

    if reps == 1:
        return float(weight)
    # Also covers the r == 37 singularity of the Brzycki denominator
    if reps > BRZYCKI_MAX_REPS:
        return weight * (1 + reps / LINEAR_REPS_DIVISOR)
    return weight * BRZYCKI_NUMERATOR / (BRZYCKI_DENOMINATOR - reps)


def estimated_reps_at_load(estimated_1rm: float, weight: float) -> float:
    """
    Estimate reps to failure at ``weight`` for a lifter with a known 1RM.

    Inverse of :func:`estimated_1rm`.  The Brzycki inverse is clamped to
    [1, 12]; loads light enough to push it above 12 use the linear inverse.

    Args:
        estimated_1rm: Known or estimated one-rep max (> 0)
        weight: Target load (> 0)

    Returns:
        Expected reps to failure (float, >= 1)

    Raises:
        ValueError: If either argument is not positive
    """
    if estimated_1rm <= 0:
        raise ValueError(f"estimated_1rm must be positive, got {estimated_1rm}")
    if weight <= 0:
        raise ValueError(f"weight must be positive, got {weight}")

    reps = BRZYCKI_DENOMINATOR - BRZYCKI_NUMERATOR * weight / estimated_1rm
    # Rounded so float noise at exactly 12 reps stays on the Brzycki branch
    if round(reps, 9) > BRZYCKI_MAX_REPS:
        return LINEAR_REPS_DIVISOR * (estimated_1rm / weight - 1)
    return max(1.0, reps)


def rir_from_rpe(rpe: float) -> int:
    """
    Convert an RPE rating (1-10) to reps in reserve.

    RIR = round(10 - RPE), floored at 0.
    """
    return max(0, round(10 - rpe))
