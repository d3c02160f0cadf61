from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

import typer

from app.schemas import ReadingPayload, RejectedRecordPayload
from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    echo_heading,
    render_legacy,
    render_reading,
    render_reading_line,
    render_readings,
    render_rejections,
)
from models.records import RecordValidationError
from services.normalizer import RawShape, normalize
from services.window import apply as apply_window
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for inspecting normalized air quality telemetry.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


def _iter_raw_records(payload: Any) -> Iterator[tuple[Optional[str], Any]]:
    if isinstance(payload, dict):
        for key, raw in payload.items():
            yield str(key), raw
    elif isinstance(payload, list):
        for raw in payload:
            yield None, raw
    else:
        raise typer.BadParameter("Expected a JSON list of records or a key-to-record mapping.")


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Ingest API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Window size."),
) -> None:
    """Show the most recent readings published by the service."""
    state = _get_state(ctx)
    render_readings(state.client.get_readings(limit))


@app.command("current")
def current_command(ctx: typer.Context) -> None:
    """Show the device's current value."""
    state = _get_state(ctx)
    render_reading(state.client.get_current())


@app.command("legacy")
def legacy_command(
    ctx: typer.Context,
    results: Optional[int] = typer.Option(None, "--results", "-n", min=1, help="Entries to request."),
) -> None:
    """Show readings from the legacy polling feed."""
    state = _get_state(ctx)
    render_legacy(state.client.get_legacy(results))


@app.command("normalize")
def normalize_command(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON file of raw records."),
    shape: Optional[RawShape] = typer.Option(None, "--shape", help="Skip shape detection."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Window size."),
) -> None:
    """Normalize raw records from a file without contacting the service."""
    try:
        payload = json.loads(file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{file} is not valid JSON: {exc}") from exc

    settings = get_settings()
    valid = []
    rejected = []
    for key, raw in _iter_raw_records(payload):
        result = normalize(raw, record_id=key, schema_hint=shape, tz=settings.device_tz)
        if isinstance(result, RecordValidationError):
            rejected.append(RejectedRecordPayload.from_error(result).model_dump(mode="json"))
        else:
            valid.append(result)

    window = apply_window(valid, limit or settings.window_limit)
    echo_heading(f"Accepted {len(valid)} of {len(valid) + len(rejected)} records")
    for reading in window:
        render_reading_line(ReadingPayload.from_reading(reading).model_dump(mode="json"))
    render_rejections(rejected)
    if rejected:
        raise typer.Exit(code=1)
