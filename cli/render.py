from __future__ import annotations

from typing import Any, Iterable, Mapping

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def _format_intensity(value: Any) -> str:
    if isinstance(value, (int, float)):
        return f"{value:.2f} g/kWh"
    return "n/a"


def render_intervals(intervals: Iterable[Mapping[str, Any]]) -> None:
    echo_heading("Carbon Intensity")
    rows = list(intervals)
    if not rows:
        typer.echo("No intervals.")
        return
    for index, interval in enumerate(rows):
        typer.echo(
            f"  [{index}] {interval.get('timestamp')} "
            f"+{interval.get('duration')}s "
            f"@ {interval.get('location') or '-'}: "
            f"{_format_intensity(interval.get('carbon_intensity'))}"
        )
