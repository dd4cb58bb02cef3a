from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_SUMMARY_SKIP = {"raw_body"}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_gateway_response(payload: Dict[str, Any]) -> None:
    status = payload.get("status")
    if status == "01":
        typer.secho("Gateway accepted the payload (status 01).", fg=typer.colors.GREEN)
        return
    typer.secho(
        f"Gateway rejected the payload (status {status}): {payload.get('message')}",
        fg=typer.colors.RED,
    )


def _render_reading(item: Dict[str, Any]) -> None:
    typer.echo(f"- {item.get('device_id')} @ {item.get('received_time_utc')} (id={item.get('id')})")
    for key, value in item.items():
        if key in _SUMMARY_SKIP or key in {"id", "device_id", "received_time_utc"}:
            continue
        typer.echo(f"    {key}: {value}")


def render_readings(payload: Dict[str, Any]) -> None:
    echo_heading(f"Readings: {payload.get('sensor_type')}")
    echo_key_values(
        [
            ("total", payload.get("total")),
            ("limit", payload.get("limit")),
            ("offset", payload.get("offset")),
        ]
    )
    items: List[Dict[str, Any]] = payload.get("items") or []
    typer.echo()
    if not items:
        typer.echo("No readings stored.")
        return
    for item in items:
        _render_reading(item)


def render_latest(payload: Dict[str, Any]) -> None:
    echo_heading(f"Latest readings: {payload.get('sensor_type')}")
    items: List[Dict[str, Any]] = payload.get("items") or []
    if not items:
        typer.echo("No readings stored.")
        return
    for item in items:
        _render_reading(item)


def render_devices(payload: Dict[str, Any]) -> None:
    echo_heading(f"Devices: {payload.get('sensor_type')}")
    devices = payload.get("devices") or []
    if not devices:
        typer.echo("No devices have reported.")
        return
    for device in devices:
        typer.echo(f"  - {device}")
