"""
Configuration constants for the effort-calibration model.

All adjustable parameters are centralized here for easy tuning.
The numbers are product defaults, not protocol-fixed values; a user
override can be supplied through calibration.yaml (see config_loader.py).
"""

from dataclasses import dataclass
from typing import Final

# =============================================================================
# STRENGTH MODEL (Brzycki family)
# =============================================================================

BRZYCKI_NUMERATOR: Final[float] = 36.0  # 1RM = w * 36 / (37 - r)
BRZYCKI_DENOMINATOR: Final[float] = 37.0
BRZYCKI_MAX_REPS: Final[int] = 12  # Curve is unreliable beyond this rep count
LINEAR_REPS_DIVISOR: Final[float] = 30.0  # Linear extension: 1RM = w * (1 + r/30)

# =============================================================================
# SAMPLE WINDOW
# =============================================================================

RETENTION_DAYS: Final[int] = 28  # Samples older than this are evicted
MAX_WINDOW_SAMPLES: Final[int] = 10  # Per-exercise cap, oldest evicted first

# =============================================================================
# CONFIDENCE TIERS
# =============================================================================

CONFIDENCE_MEDIUM_MIN: Final[int] = 3  # Minimum points to tell noise from trend
CONFIDENCE_HIGH_MIN: Final[int] = 6  # Roughly one AMRAP per week over a mesocycle

# =============================================================================
# BIAS INTERPRETATION
# =============================================================================

ACCURATE_BIAS_THRESHOLD: Final[float] = 1.0  # |bias| below this reads "accurate"
BIAS_LEVEL_THRESHOLD: Final[float] = 1.5  # Display band for sandbagging/overreaching
OVERALL_BIAS_FLAG_THRESHOLD: Final[float] = 2.0  # Cross-exercise sandbagging flag

CONFIDENCE_WEIGHTS: Final[dict[str, int]] = {
    "low": 1,
    "medium": 2,
    "high": 3,
}

# =============================================================================
# RECALIBRATION SCHEDULING
# =============================================================================

RECALIBRATION_DAYS: Final[int] = 14  # needs_calibration() default threshold
STALE_CALIBRATION_DAYS: Final[int] = 28  # Priorities: older than this is "medium"
MIN_CONFIDENT_EXERCISES: Final[int] = 3  # Overall analysis needs this many non-low


@dataclass(frozen=True)
class CalibrationConfig:
    """Runtime parameters for one CalibrationEngine."""

    retention_days: int = RETENTION_DAYS
    max_window_samples: int = MAX_WINDOW_SAMPLES
    confidence_medium_min: int = CONFIDENCE_MEDIUM_MIN
    confidence_high_min: int = CONFIDENCE_HIGH_MIN
    accurate_bias_threshold: float = ACCURATE_BIAS_THRESHOLD
    context_uses_reported_rir: bool = False

    def __post_init__(self) -> None:
        """Validate parameter ranges."""
        if self.retention_days <= 0:
            raise ValueError("retention_days must be positive")
        if self.max_window_samples <= 0:
            raise ValueError("max_window_samples must be positive")
        if self.confidence_medium_min <= 0:
            raise ValueError("confidence_medium_min must be positive")
        if self.confidence_high_min <= self.confidence_medium_min:
            raise ValueError(
                "confidence_high_min must be greater than confidence_medium_min"
            )
        if self.accurate_bias_threshold <= 0:
            raise ValueError("accurate_bias_threshold must be positive")


DEFAULT_CONFIG: Final[CalibrationConfig] = CalibrationConfig()
