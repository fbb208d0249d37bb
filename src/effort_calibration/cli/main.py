"""
CLI entry point using Typer.

Provides commands for effort calibration:
- init: Create an empty set log
- log-set: Log a completed set (optionally an AMRAP)
- replay: Replay the log and list calibration events
- status: Current calibration per exercise
- adjust: Calibrated RIR prescription
- priorities: Which exercises need a fresh AMRAP
"""

from .app import app
from .commands import calibration  # noqa: F401  (registers commands)

__all__ = ["app"]


if __name__ == "__main__":
    app()
