from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_devices, render_gateway_response, render_latest, render_readings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for sending sensor payloads to the gateway and browsing stored readings.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _load_payload(path: Path) -> Dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise typer.BadParameter(f"{path} must contain a JSON object.")
    return payload


def _apply_overrides(payload: Dict[str, Any], overrides: List[str]) -> Dict[str, Any]:
    for item in overrides:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Override {item!r} must look like key=value.")
        payload[key.strip()] = value
    return payload


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Gateway base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    payload_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, readable=True, help="JSON file with the sensor payload."
    ),
    m: Optional[str] = typer.Option(None, "--m", help="First credential header (defaults to CLI_CREDENTIAL_M)."),
    k: Optional[str] = typer.Option(None, "--k", help="Second credential header (defaults to CLI_CREDENTIAL_K)."),
    overrides: List[str] = typer.Option(
        [],
        "--set",
        help="Override a payload field, e.g. --set data=75. May be repeated.",
    ),
    now: bool = typer.Option(False, "--now", help="Replace the time field with the current UTC time."),
) -> None:
    """Send one payload to /MagnetAPI as the sensor gateway would."""
    state = _get_state(ctx)
    credential_m = m or state.config.credential_m
    credential_k = k or state.config.credential_k
    if not credential_m or not credential_k:
        raise typer.BadParameter("Both --m and --k credentials are required.")

    payload = _apply_overrides(_load_payload(payload_file), overrides)
    if now:
        payload["time"] = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    typer.echo(f"Sending {payload_file} to {state.config.base_url}/MagnetAPI ...")
    result = state.client.send_payload(payload, m=credential_m, k=credential_k)
    render_gateway_response(result)
    if result.get("status") != "01":
        raise typer.Exit(code=1)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    sensor_type: str = typer.Argument(..., help="Sensor type, e.g. dustbin or manhole."),
    device: Optional[str] = typer.Option(None, "--device", "-d", help="Only readings from this device."),
    limit: int = typer.Option(20, "--limit", min=1, max=500),
    offset: int = typer.Option(0, "--offset", min=0),
) -> None:
    """List stored readings, newest first."""
    state = _get_state(ctx)
    payload = state.client.list_readings(sensor_type, device=device, limit=limit, offset=offset)
    render_readings(payload)


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    sensor_type: str = typer.Argument(..., help="Sensor type, e.g. dustbin or manhole."),
) -> None:
    """Show the latest reading of every device."""
    state = _get_state(ctx)
    render_latest(state.client.latest_readings(sensor_type))


@app.command("devices")
def devices_command(
    ctx: typer.Context,
    sensor_type: str = typer.Argument(..., help="Sensor type, e.g. dustbin or manhole."),
) -> None:
    """List devices that have reported."""
    state = _get_state(ctx)
    render_devices(state.client.list_devices(sensor_type))
