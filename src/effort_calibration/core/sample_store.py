"""
Per-exercise rolling window of observed sets.

Eviction favours recency over volume: samples older than the retention
horizon (measured from the newest sample of that exercise) are dropped
first, then the oldest samples beyond the count cap.
"""

from collections import deque
from datetime import datetime, timedelta

from .config import MAX_WINDOW_SAMPLES, RETENTION_DAYS
from .models import SetObservation


class SampleStore:
    """
    Holds a bounded chronological window of SetObservations per exercise.

    The store assumes per-exercise chronological insertion; ordering is
    enforced by CalibrationEngine before samples reach it.  The store is not
    synchronized: CalibrationEngine holds the exercise's lock around every
    call.
    """

    def __init__(
        self,
        retention_days: int = RETENTION_DAYS,
        max_samples: int = MAX_WINDOW_SAMPLES,
    ):
        """
        Initialize an empty store.

        Args:
            retention_days: Age horizon in days, relative to the newest sample
            max_samples: Maximum samples kept per exercise
        """
        if retention_days <= 0:
            raise ValueError("retention_days must be positive")
        if max_samples <= 0:
            raise ValueError("max_samples must be positive")
        self.retention = timedelta(days=retention_days)
        self.max_samples = max_samples
        self._windows: dict[str, deque[SetObservation]] = {}

    def add(self, observation: SetObservation) -> None:
        """Append an observation and evict by age, then by count."""
        window = self._windows.setdefault(observation.exercise_id, deque())
        window.append(observation)
        self._evict(window, observation.timestamp)

    def _evict(self, window: deque[SetObservation], newest: datetime) -> None:
        cutoff = newest - self.retention
        while window and window[0].timestamp < cutoff:
            window.popleft()
        while len(window) > self.max_samples:
            window.popleft()

    def recent(self, exercise_id: str) -> tuple[SetObservation, ...]:
        """Return the exercise's window, oldest to newest."""
        return tuple(self._windows.get(exercise_id, ()))

    def latest_timestamp(self, exercise_id: str) -> datetime | None:
        """Timestamp of the newest stored sample, or None if the window is empty."""
        window = self._windows.get(exercise_id)
        if not window:
            return None
        return window[-1].timestamp

    def exercise_ids(self) -> list[str]:
        """Exercises with at least one stored sample, in first-seen order."""
        return [ex for ex, window in self._windows.items() if window]

    def __len__(self) -> int:
        return sum(len(w) for w in self._windows.values())

    def clear(self, exercise_id: str | None = None) -> None:
        """Drop one exercise's window, or every window when ``exercise_id`` is None."""
        if exercise_id is None:
            self._windows.clear()
        else:
            self._windows.pop(exercise_id, None)
