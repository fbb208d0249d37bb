"""Calibration commands: init, log-set, replay, status, adjust, priorities."""

import json
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer

from ...core.models import RepRange, SetObservation
from ...core.strength import rir_from_rpe
from ...io.serializers import (
    ValidationError,
    adjusted_target_to_dict,
    calibration_result_to_dict,
    parse_timestamp,
)
from ...io.set_log import write_results
from .. import views
from ..app import ConfigOption, JsonOption, LogOption, app, get_store, replay_store


@app.command()
def init(log_path: LogOption = None) -> None:
    """
    Create an empty set log.
    """
    store = get_store(log_path)
    if store.exists():
        views.print_info(f"Set log already exists: {store.log_path}")
        return
    store.init()
    views.print_success(f"Created set log: {store.log_path}")


@app.command("log-set")
def log_set(
    exercise_id: Annotated[str, typer.Option("--exercise", "-e", help="Exercise ID")],
    weight: Annotated[float, typer.Option("--weight", "-w", help="Load used")],
    reps: Annotated[int, typer.Option("--reps", "-r", help="Reps completed")],
    rir: Annotated[
        Optional[int],
        typer.Option("--rir", help="Reported reps in reserve"),
    ] = None,
    rpe: Annotated[
        Optional[float],
        typer.Option("--rpe", help="Reported RPE (converted to RIR = 10 - RPE)"),
    ] = None,
    amrap: Annotated[
        bool,
        typer.Option("--amrap", help="Set was taken to volitional failure"),
    ] = False,
    name: Annotated[
        Optional[str],
        typer.Option("--name", "-n", help="Exercise display name"),
    ] = None,
    min_reps: Annotated[int, typer.Option("--min-reps", help="Prescribed minimum reps")] = 0,
    max_reps: Annotated[
        Optional[int],
        typer.Option("--max-reps", help="Prescribed maximum reps (omit for open AMRAP)"),
    ] = None,
    timestamp: Annotated[
        Optional[str],
        typer.Option("--timestamp", "-t", help="ISO timestamp (default: now)"),
    ] = None,
    log_path: LogOption = None,
    config_path: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Log a completed set and show the calibration it produces, if any.
    """
    if rir is None and rpe is None:
        views.print_error("Provide --rir or --rpe.")
        raise typer.Exit(1)

    store = get_store(log_path)
    if not store.exists():
        store.init()

    try:
        observation = SetObservation(
            exercise_id=exercise_id,
            exercise_name=name or exercise_id,
            weight=weight,
            prescribed_reps=RepRange(min=min_reps, max=max_reps),
            actual_reps=reps,
            reported_rir=rir if rir is not None else rir_from_rpe(rpe),
            was_amrap=amrap,
            timestamp=parse_timestamp(timestamp) if timestamp else datetime.now(),
        )
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    # Replaying first checks ordering against the existing log before writing
    engine, _ = replay_store(store, config_path)
    try:
        result = engine.record_set(observation)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    store.append(observation)

    if json_out:
        print(json.dumps({
            "logged": True,
            "calibration": calibration_result_to_dict(result) if result else None,
        }, indent=2))
        return

    views.print_success(f"Logged {exercise_id}: {reps} reps @ {weight:g}")
    if result is not None:
        views.print_events([result])
    elif amrap:
        views.print_warning(
            "AMRAP stored, but there are no earlier working sets for this "
            "exercise to compare against."
        )


@app.command()
def replay(
    log_path: LogOption = None,
    results_out: Annotated[
        Optional[Path],
        typer.Option("--results-out", "-o", help="Write calibration results as JSONL"),
    ] = None,
    config_path: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Replay the set log and show every calibration event.
    """
    _, results = replay_store(get_store(log_path), config_path)

    if results_out is not None:
        write_results(results_out, results)

    if json_out:
        print(json.dumps([calibration_result_to_dict(r) for r in results], indent=2))
        return

    views.console.print()
    views.print_events(results)
    if results_out is not None:
        views.print_success(f"Wrote {len(results)} results to {results_out}")


@app.command()
def status(
    log_path: LogOption = None,
    exercise_id: Annotated[
        Optional[str],
        typer.Option("--exercise", "-e", help="Only show this exercise"),
    ] = None,
    config_path: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show current calibration per exercise and the overall bias analysis.
    """
    engine, _ = replay_store(get_store(log_path), config_path)

    exercise_ids = [exercise_id] if exercise_id else engine.exercise_ids()
    calibrations = [
        c for c in (engine.get_calibration(ex) for ex in exercise_ids) if c is not None
    ]
    analysis = engine.analyze_overall_bias()

    if json_out:
        print(json.dumps({
            "calibrations": [calibration_result_to_dict(c) for c in calibrations],
            "overall_bias": round(analysis.overall_bias, 2),
            "exercise_specific_bias": {
                k: round(v, 2) for k, v in analysis.exercise_specific_bias.items()
            },
            "sandbagging_detected": analysis.sandbagging_detected,
            "overreaching_detected": analysis.overreaching_detected,
            "needs_more_data": analysis.needs_more_data,
            "recommendation": analysis.recommendation,
        }, indent=2))
        return

    views.console.print()
    views.print_status(calibrations, analysis)
    views.console.print()


@app.command()
def adjust(
    exercise_id: Annotated[str, typer.Option("--exercise", "-e", help="Exercise ID")],
    rir: Annotated[int, typer.Option("--rir", help="Nominal RIR you want to hit")],
    log_path: LogOption = None,
    config_path: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    Show the RIR to prescribe so the nominal target is actually reached.
    """
    engine, _ = replay_store(get_store(log_path), config_path)
    try:
        target = engine.get_adjusted_target(exercise_id, rir)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps(adjusted_target_to_dict(target), indent=2))
        return

    views.print_adjusted_target(exercise_id, target)


@app.command()
def priorities(
    log_path: LogOption = None,
    as_of: Annotated[
        Optional[str],
        typer.Option("--as-of", help="Reference date/time (default: now)"),
    ] = None,
    config_path: ConfigOption = None,
    json_out: JsonOption = False,
) -> None:
    """
    List exercises by how urgently they need a fresh AMRAP.
    """
    engine, _ = replay_store(get_store(log_path), config_path)
    try:
        reference = parse_timestamp(as_of) if as_of else None
        ranked = engine.calibration_priorities(reference)
    except (ValidationError, TypeError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if json_out:
        print(json.dumps([
            {
                "exercise_id": p.exercise_id,
                "exercise_name": p.exercise_name,
                "priority": p.priority,
                "reason": p.reason,
            }
            for p in ranked
        ], indent=2))
        return

    views.print_priorities(ranked)
