from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _format_location(reading: Mapping[str, Any]) -> str:
    latitude = reading.get("latitude")
    longitude = reading.get("longitude")
    if latitude is None or longitude is None:
        return "-"
    return f"{latitude:.4f},{longitude:.4f}"


def render_reading_line(reading: Mapping[str, Any]) -> None:
    typer.echo(
        f"  {reading.get('timestamp')}  {reading.get('id')}  "
        f"T={reading.get('temperature')} H={reading.get('humidity')} "
        f"CO2={reading.get('co2')} PM2.5={reading.get('pm2_5')} "
        f"PM10={reading.get('pm10')} loc={_format_location(reading)}"
    )


def render_reading(reading: Mapping[str, Any]) -> None:
    echo_heading("Current Reading")
    echo_key_values(
        [
            ("id", reading.get("id")),
            ("timestamp", reading.get("timestamp")),
            ("temperature", reading.get("temperature")),
            ("humidity", reading.get("humidity")),
            ("co2", reading.get("co2")),
            ("pm2_5", reading.get("pm2_5")),
            ("pm10", reading.get("pm10")),
            ("location", _format_location(reading)),
        ]
    )


def render_rejections(rejected: Iterable[Mapping[str, Any]]) -> None:
    items = list(rejected)
    typer.echo()
    echo_heading("Rejected Records")
    if not items:
        typer.echo("No records rejected.")
        return
    for item in items:
        typer.echo(f"  - {item.get('record_id') or 'unknown'} ({item.get('shape') or 'unknown shape'})")
        for problem in item.get("problems") or []:
            typer.echo(
                f"      {problem.get('field')}: {problem.get('reason')} "
                f"(got {problem.get('raw_value')!r})"
            )


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading("Readings")
    echo_key_values(
        [
            ("status", payload.get("status")),
            ("loading", payload.get("loading")),
            ("error", payload.get("error")),
            ("rejected_count", payload.get("rejected_count")),
        ]
    )
    readings = payload.get("readings") or []
    typer.echo()
    if readings:
        for reading in readings:
            render_reading_line(reading)
    else:
        typer.echo("No readings available.")


def render_legacy(payload: Dict[str, Any]) -> None:
    echo_heading("Legacy Feed")
    readings = payload.get("readings") or []
    if readings:
        for reading in readings:
            render_reading_line(reading)
    else:
        typer.echo("No readings available.")
    render_rejections(payload.get("rejected") or [])
