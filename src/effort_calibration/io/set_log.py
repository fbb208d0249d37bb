"""
JSONL-based set log used to replay history into a CalibrationEngine.

The log file contains one JSON object per line, one completed set each
(see serializers.dict_to_observation for the fields).  Records carrying a
``set_type`` other than "normal" (warm-ups, drop sets) are skipped.
"""

import json
from pathlib import Path

from ..core.models import CalibrationResult, SetObservation
from .serializers import (
    ValidationError,
    calibration_result_to_dict,
    dict_to_observation,
    observation_to_dict,
)

REPLAYABLE_SET_TYPE = "normal"


class SetLogStore:
    """
    Manages a set log stored in JSONL format.
    """

    def __init__(self, log_path: str | Path):
        """
        Initialize the store.

        Args:
            log_path: Path to the JSONL set log
        """
        self.log_path = Path(log_path)

    def exists(self) -> bool:
        """Check if the log file exists."""
        return self.log_path.exists()

    def init(self) -> None:
        """
        Create an empty log file if it doesn't exist.

        Creates parent directories if needed.
        """
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        if not self.log_path.exists():
            self.log_path.touch()

    def load_observations(self) -> list[SetObservation]:
        """
        Load all replayable sets from the log.

        Returns:
            SetObservations sorted chronologically (stable for equal times)

        Raises:
            FileNotFoundError: If the log file doesn't exist
            ValidationError: If a line cannot be parsed
        """
        if not self.log_path.exists():
            raise FileNotFoundError(f"Set log not found: {self.log_path}")

        observations: list[SetObservation] = []
        with open(self.log_path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                    if not isinstance(data, dict):
                        raise ValidationError("record is not a JSON object")
                    if data.get("set_type", REPLAYABLE_SET_TYPE) != REPLAYABLE_SET_TYPE:
                        continue
                    observations.append(dict_to_observation(data))
                except (json.JSONDecodeError, ValidationError) as e:
                    raise ValidationError(
                        f"Error parsing line {line_num} in {self.log_path}: {e}"
                    ) from e

        try:
            observations.sort(key=lambda o: o.timestamp)
        except TypeError as e:
            raise ValidationError(
                f"{self.log_path} mixes timezone-aware and naive timestamps"
            ) from e
        return observations

    def append(self, observation: SetObservation) -> None:
        """
        Append one set to the log.

        Raises:
            FileNotFoundError: If the log file doesn't exist
        """
        if not self.log_path.exists():
            raise FileNotFoundError(
                f"Set log not found: {self.log_path}. Run 'init' first."
            )
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(observation_to_dict(observation)) + "\n")


def write_results(path: str | Path, results: list[CalibrationResult]) -> None:
    """
    Write calibration results as JSONL, replacing any existing file.

    Args:
        path: Destination file
        results: Results in emission order
    """
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with open(out, "w", encoding="utf-8") as f:
        for result in results:
            f.write(json.dumps(calibration_result_to_dict(result)) + "\n")


def get_default_log_path() -> Path:
    """
    Get the default set log path.

    Returns:
        ~/.effort-calibration/sets.jsonl
    """
    return Path.home() / ".effort-calibration" / "sets.jsonl"
