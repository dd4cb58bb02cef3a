from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.config import DEFAULT_TIMEOUT, load_config


class StubClient:
    def __init__(self, config, gateway_status: str = "01") -> None:
        self.config = config
        self.gateway_status = gateway_status
        self.sent: List[tuple[Dict[str, Any], str, str]] = []
        self.reading_calls: List[tuple[str, Any, int, int]] = []
        self.closed = False

    def send_payload(self, payload: Dict[str, Any], m: str, k: str) -> Dict[str, Any]:
        self.sent.append((payload, m, k))
        if self.gateway_status == "01":
            return {"status": "01", "message": ""}
        return {"status": "00", "message": "Invalid data index: expected '0410', got '9999'"}

    def list_readings(self, sensor_type: str, device=None, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        self.reading_calls.append((sensor_type, device, limit, offset))
        return {
            "sensor_type": sensor_type,
            "total": 1,
            "limit": limit,
            "offset": offset,
            "items": [
                {
                    "id": "abc123",
                    "device_id": "DB-01",
                    "received_time_utc": "2024-01-01 10:00:00",
                    "overflow_percentage": 82,
                    "raw_body": {"data": "82"},
                }
            ],
        }

    def latest_readings(self, sensor_type: str) -> Dict[str, Any]:
        return {"sensor_type": sensor_type, "items": []}

    def list_devices(self, sensor_type: str) -> Dict[str, Any]:
        return {"sensor_type": sensor_type, "devices": ["DB-01", "DB-02"]}

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def payload_file(tmp_path) -> Path:
    path = tmp_path / "dustbin.json"
    path.write_text(
        json.dumps(
            {
                "cmd": "RP",
                "device": "DB-01",
                "battery": "3.7",
                "time": "2024-01-01 10:00:00",
                "dIndex": "0410",
                "data": "82",
            }
        )
    )
    return path


def _install_stub(monkeypatch, stub: StubClient) -> None:
    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)


def test_send_with_overrides(monkeypatch, runner: CliRunner, payload_file: Path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(
        app,
        ["send", str(payload_file), "--m", "dm", "--k", "dk", "--set", "data=40", "--set", "device=DB-09"],
    )

    assert result.exit_code == 0
    assert "accepted" in result.stdout
    payload, m, k = stub.sent[0]
    assert (m, k) == ("dm", "dk")
    assert payload["data"] == "40"
    assert payload["device"] == "DB-09"
    assert stub.closed is True


def test_send_reports_rejection(monkeypatch, runner: CliRunner, payload_file: Path) -> None:
    stub = StubClient(config=None, gateway_status="00")
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["send", str(payload_file), "--m", "dm", "--k", "dk"])

    assert result.exit_code == 1
    assert "rejected" in result.stdout
    assert "index" in result.stdout


def test_send_uses_credentials_from_environment(monkeypatch, runner: CliRunner, payload_file: Path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    monkeypatch.setenv("CLI_CREDENTIAL_M", "env-m")
    monkeypatch.setenv("CLI_CREDENTIAL_K", "env-k")

    result = runner.invoke(app, ["send", str(payload_file), "--now"])

    assert result.exit_code == 0
    payload, m, k = stub.sent[0]
    assert (m, k) == ("env-m", "env-k")
    assert payload["time"] != "2024-01-01 10:00:00"


def test_send_without_credentials_fails(monkeypatch, runner: CliRunner, payload_file: Path) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)
    monkeypatch.delenv("CLI_CREDENTIAL_M", raising=False)
    monkeypatch.delenv("CLI_CREDENTIAL_K", raising=False)

    result = runner.invoke(app, ["send", str(payload_file)])

    assert result.exit_code != 0
    assert stub.sent == []


def test_readings_command(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    result = runner.invoke(app, ["readings", "dustbin", "--device", "DB-01", "--limit", "5"])

    assert result.exit_code == 0
    assert stub.reading_calls == [("dustbin", "DB-01", 5, 0)]
    assert "Readings: dustbin" in result.stdout
    assert "overflow_percentage: 82" in result.stdout
    assert "raw_body" not in result.stdout


def test_devices_and_latest_commands(monkeypatch, runner: CliRunner) -> None:
    stub = StubClient(config=None)
    _install_stub(monkeypatch, stub)

    devices = runner.invoke(app, ["devices", "dustbin"])
    latest = runner.invoke(app, ["latest", "dustbin"])

    assert devices.exit_code == 0
    assert "DB-02" in devices.stdout
    assert latest.exit_code == 0
    assert "No readings stored." in latest.stdout


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://gateway:9000/")
    monkeypatch.setenv("CLI_TIMEOUT", "not-a-number")
    monkeypatch.setenv("CLI_CREDENTIAL_M", "env-m")
    monkeypatch.delenv("CLI_CREDENTIAL_K", raising=False)

    config = load_config(credential_k="flag-k")

    assert config.base_url == "http://gateway:9000"
    assert config.timeout == DEFAULT_TIMEOUT
    assert (config.credential_m, config.credential_k) == ("env-m", "flag-k")
