"""
CLI view formatters using Rich for pretty console output.

Handles table formatting and display of calibration data.
"""

from rich.console import Console
from rich.table import Table

from ..core.bias import bias_level, describe_bias, format_bias
from ..core.models import AdjustedTarget, BiasAnalysis, CalibrationPriority, CalibrationResult

console = Console()

_LEVEL_STYLE: dict[str, str] = {
    "accurate": "green",
    "sandbagging": "yellow",
    "overreaching": "red",
}

_PRIORITY_STYLE: dict[str, str] = {
    "high": "red",
    "medium": "yellow",
    "low": "green",
}

_CONFIDENCE_STYLE: dict[str, str] = {
    "low": "dim",
    "medium": "yellow",
    "high": "bold green",
}


def _styled_bias(bias: float) -> str:
    style = _LEVEL_STYLE[bias_level(bias)]
    return f"[{style}]{format_bias(bias)}[/{style}]"


def format_events_table(results: list[CalibrationResult]) -> Table:
    """
    Create a Rich table of calibration events in emission order.

    Args:
        results: Calibration results to display

    Returns:
        Rich Table object
    """
    table = Table(title="Calibration Events")

    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Date", style="cyan")
    table.add_column("Exercise", style="magenta")
    table.add_column("Pred.", justify="right")
    table.add_column("AMRAP", justify="right", style="bold")
    table.add_column("Bias", justify="right")
    table.add_column("Smoothed", justify="right")
    table.add_column("Conf.", justify="center")
    table.add_column("N", justify="right")

    for i, r in enumerate(results, 1):
        conf_style = _CONFIDENCE_STYLE[r.confidence_level]
        table.add_row(
            str(i),
            r.last_calibrated.strftime("%Y-%m-%d"),
            r.exercise_name,
            f"{r.predicted_max_reps:.1f}",
            str(r.actual_max_reps),
            format_bias(r.bias),
            _styled_bias(r.smoothed_bias),
            f"[{conf_style}]{r.confidence_level}[/{conf_style}]",
            str(r.data_points),
        )

    return table


def format_status_table(calibrations: list[CalibrationResult]) -> Table:
    """Create a Rich table of each exercise's current calibration."""
    table = Table(title="Current Calibration")

    table.add_column("Exercise", style="magenta")
    table.add_column("Bias", justify="right")
    table.add_column("Interpretation")
    table.add_column("Conf.", justify="center")
    table.add_column("N", justify="right")
    table.add_column("Last", style="cyan")

    for c in calibrations:
        table.add_row(
            c.exercise_name,
            _styled_bias(c.smoothed_bias),
            c.bias_interpretation,
            c.confidence_level,
            str(c.data_points),
            c.last_calibrated.strftime("%Y-%m-%d"),
        )

    return table


def print_events(results: list[CalibrationResult]) -> None:
    """Print calibration events, or a hint when there are none."""
    if not results:
        console.print(
            "[yellow]No calibration events yet. Log an AMRAP set after some "
            "regular working sets.[/yellow]"
        )
        return
    console.print(format_events_table(results))


def print_status(calibrations: list[CalibrationResult], analysis: BiasAnalysis) -> None:
    """Print per-exercise calibration and the overall analysis."""
    if not calibrations:
        console.print(f"[yellow]{analysis.recommendation}[/yellow]")
        return

    console.print(format_status_table(calibrations))
    console.print()
    lines = [
        "Overall",
        f"- Weighted bias: {_styled_bias(analysis.overall_bias)}"
        f"  ({describe_bias(analysis.overall_bias)})",
        f"- Calibrated exercises: {analysis.calibrated_exercises}",
    ]
    if analysis.sandbagging_detected:
        lines.append("- [yellow]Sandbagging detected[/yellow]")
    if analysis.overreaching_detected:
        lines.append("- [red]Overreaching detected[/red]")
    if analysis.needs_more_data:
        lines.append("- [dim]More AMRAP data needed for a confident picture[/dim]")
    console.print("\n".join(lines))
    console.print()
    console.print(analysis.recommendation)


def print_adjusted_target(exercise_id: str, target: AdjustedTarget) -> None:
    """Print an RIR prescription."""
    console.print(
        f"[bold]{exercise_id}[/bold]: prescribe RIR "
        f"[bold cyan]{target.prescribed_rir}[/bold cyan] "
        f"(target {target.internal_target_rir})"
    )
    if target.adjustment_reason:
        console.print(target.adjustment_reason)
    elif target.confidence_level in (None, "low"):
        console.print("[dim]No adjustment: not enough calibration data yet.[/dim]")
    else:
        console.print("[dim]No adjustment: calibration is within rounding.[/dim]")


def print_priorities(priorities: list[CalibrationPriority]) -> None:
    """Print calibration priorities, most urgent first."""
    if not priorities:
        console.print("[yellow]No sets recorded yet.[/yellow]")
        return

    table = Table(title="Calibration Priorities")
    table.add_column("Exercise", style="magenta")
    table.add_column("Priority", justify="center")
    table.add_column("Reason")
    for p in priorities:
        style = _PRIORITY_STYLE[p.priority]
        table.add_row(p.exercise_name, f"[{style}]{p.priority}[/{style}]", p.reason)
    console.print(table)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")
