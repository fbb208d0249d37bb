"""Shared Typer app object, shared option types, and engine/store utilities."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from ..core.config_loader import load_calibration_config
from ..core.engine import CalibrationEngine
from ..core.models import CalibrationResult
from ..io.set_log import SetLogStore, get_default_log_path
from ..io.serializers import ValidationError
from . import views

# Shared --log option type used across all commands
LogOption = Annotated[
    Optional[Path],
    typer.Option("--log", "-l", help="Path to set log JSONL file"),
]

# Shared --config option type (user override of calibration.yaml)
ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Calibration YAML overriding the defaults"),
]

JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output as JSON for machine processing"),
]

app = typer.Typer(
    name="effort-calibration",
    help="Learn how far from failure your reported RIR really is, per exercise.",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """
    RPE/RIR calibration from AMRAP sets.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


def get_store(log_path: Path | None) -> SetLogStore:
    """Get set log store from path or default location."""
    if log_path is None:
        log_path = get_default_log_path()
    return SetLogStore(log_path)


def build_engine(config_path: Path | None = None) -> CalibrationEngine:
    """Create an engine configured from bundled YAML plus optional overrides."""
    return CalibrationEngine(load_calibration_config(config_path))


def replay_store(
    store: SetLogStore,
    config_path: Path | None = None,
) -> tuple[CalibrationEngine, list[CalibrationResult]]:
    """
    Replay a set log into a fresh engine, exiting with code 1 on failure.

    Returns:
        (engine, calibration results in emission order)
    """
    if not store.exists():
        views.print_error(f"Set log not found: {store.log_path}")
        views.print_info("Run 'init' first or pass --log.")
        raise typer.Exit(1)

    engine = build_engine(config_path)
    try:
        results = engine.replay(store.load_observations())
    except (FileNotFoundError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    return engine, results
