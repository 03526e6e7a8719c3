from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import uvicorn
from pydantic import ValidationError as SchemaValidationError

from app.schemas import CarbonIntensityRequest, IntervalOut
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_intervals
from logging_config import configure_logging
from models.records import UsageInterval
from providers.watttime import WattTimeClient
from services.aggregator import CarbonIntensityAggregator
from services.errors import CarbonIntensityError
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig


app = typer.Typer(
    help="Estimate grid carbon intensity for usage intervals.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _load_request(path: Path) -> CarbonIntensityRequest:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc
    if isinstance(raw, list):
        raw = {"intervals": raw}
    try:
        return CarbonIntensityRequest.model_validate(raw)
    except SchemaValidationError as exc:
        raise typer.BadParameter(f"{path} does not describe usage intervals: {exc}") from exc


def _build_aggregator() -> CarbonIntensityAggregator:
    settings = get_settings()
    client = WattTimeClient(settings.credentials(), timeout=settings.http_timeout)
    return CarbonIntensityAggregator(source=client, max_span_seconds=settings.max_span_seconds)


async def _estimate(records: List[UsageInterval]) -> List[UsageInterval]:
    aggregator = _build_aggregator()
    try:
        return await aggregator.execute(records)
    finally:
        await aggregator.source.aclose()


def _as_payload(records: List[UsageInterval]) -> List[Dict[str, Any]]:
    return [IntervalOut.from_record(record).model_dump(mode="json") for record in records]


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL for 'submit' (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the service to respond.",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Logging level (defaults to LOG_LEVEL env or INFO).",
    ),
) -> None:
    """Entry point for the CLI."""
    configure_logging(log_level.upper() if log_level else None)
    ctx.obj = CLIState(config=load_config(base_url=base_url, timeout=timeout))


@app.command("estimate")
def estimate_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON file of intervals."),
    as_json: bool = typer.Option(False, "--json", help="Print the annotated intervals as JSON."),
) -> None:
    """Annotate intervals in-process by querying WattTime directly."""
    request = _load_request(file)
    records = [interval.to_record() for interval in request.intervals]
    try:
        annotated = asyncio.run(_estimate(records))
    except CarbonIntensityError as exc:
        _fail(str(exc))
        return

    payload = _as_payload(annotated)
    if as_json:
        typer.echo(json.dumps(payload, indent=2))
        return
    render_intervals(payload)


@app.command("submit")
def submit_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON file of intervals."),
) -> None:
    """Send intervals to a running service and display the annotated result."""
    state = _get_state(ctx)
    request = _load_request(file)
    client = ApiClient(state.config)
    ctx.call_on_close(client.close)
    typer.echo(f"Submitting {len(request.intervals)} interval(s) to {state.config.base_url} ...")
    annotated = client.annotate(
        [interval.model_dump(mode="json") for interval in request.intervals]
    )
    render_intervals(annotated)


@app.command("serve")
def serve_command(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", help="Port to listen on."),
) -> None:
    """Run the HTTP service."""
    uvicorn.run("app.main:app", host=host, port=port)
