from __future__ import annotations

import json
from datetime import timedelta, timezone

from models.records import AuthenticatedContext
from services.normalizer import Normalizer, resolve_timezone
from services.registry import SensorRegistry


def _context(registry: SensorRegistry, sensor_type: str) -> AuthenticatedContext:
    config = registry.lookup_by_type(sensor_type)
    assert config is not None
    return AuthenticatedContext(sensor_type=sensor_type, config=config)


def test_dustbin_record(registry: SensorRegistry, dustbin_body) -> None:
    record = Normalizer().normalize(_context(registry, "dustbin"), dict(dustbin_body, device=" DB-01 "))

    assert record["device_id"] == "DB-01"
    assert record["battery"] == 3.7
    assert record["command"] == "RP"
    assert record["data_index"] == "0410"
    assert record["overflow_percentage"] == 82
    assert record["received_time_utc"] == "2024-01-01 10:00:00"
    assert record["received_time_local"] == "2024-01-01 10:00:00"
    assert record["raw_body"]["device"] == " DB-01 "
    assert "data" not in record


def test_manhole_record(registry: SensorRegistry, manhole_body) -> None:
    record = Normalizer().normalize(_context(registry, "manhole"), manhole_body)

    assert record["water_level_cm"] == 15
    assert record["x_axis_degree"] == 2
    assert record["y_axis_degree"] == 0
    assert record["z_axis_degree"] == -3
    assert record["battery"] == 4.1
    assert record["battery_low"] is False
    assert record["cover_state"] == "1"


def test_absent_optional_fields_are_null(registry: SensorRegistry, manhole_body) -> None:
    body = {key: value for key, value in manhole_body.items() if key not in {"dt_x", "battery_low"}}
    body["dt_y"] = ""

    record = Normalizer().normalize(_context(registry, "manhole"), body)

    assert record["x_axis_degree"] is None
    assert record["y_axis_degree"] is None
    assert record["battery_low"] is None


def test_undeclared_fields_are_inferred(registry: SensorRegistry, dustbin_body) -> None:
    body = dict(dustbin_body, temp="21.5", lid="1", label="north gate", signal=-71)

    record = Normalizer().normalize(_context(registry, "dustbin"), body)

    assert record["temp"] == 21.5
    assert record["lid"] == 1
    assert record["label"] == "north gate"
    assert record["signal"] == -71


def test_undeclared_fields_do_not_overwrite_columns(registry: SensorRegistry, dustbin_body) -> None:
    body = dict(dustbin_body, device_id="spoofed", raw_body="spoofed")

    record = Normalizer().normalize(_context(registry, "dustbin"), body)

    assert record["device_id"] == "DB-01"
    assert record["raw_body"]["raw_body"] == "spoofed"


def test_local_time_uses_configured_zone(registry: SensorRegistry, dustbin_body) -> None:
    normalizer = Normalizer(local_zone=timezone(timedelta(hours=5, minutes=30)))

    record = normalizer.normalize(_context(registry, "dustbin"), dict(dustbin_body, time="2024-01-01 20:00:00"))

    assert record["received_time_utc"] == "2024-01-01 20:00:00"
    assert record["received_time_local"] == "2024-01-02 01:30:00"


def test_unparseable_time_is_carried_forward(registry: SensorRegistry, dustbin_body) -> None:
    normalizer = Normalizer(local_zone=timezone(timedelta(hours=-3)))

    record = normalizer.normalize(_context(registry, "dustbin"), dict(dustbin_body, time="01/01/2024 10:00"))

    assert record["received_time_utc"] == "01/01/2024 10:00"
    assert record["received_time_local"] == "01/01/2024 10:00"


def test_normalization_is_deterministic(registry: SensorRegistry, manhole_body) -> None:
    normalizer = Normalizer(local_zone=timezone(timedelta(hours=2)))
    context = _context(registry, "manhole")

    first = normalizer.normalize(context, manhole_body)
    second = normalizer.normalize(context, manhole_body)

    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)


def test_raw_body_is_a_copy(registry: SensorRegistry, dustbin_body) -> None:
    body = dict(dustbin_body, extra={"nested": [1, 2]})

    record = Normalizer().normalize(_context(registry, "dustbin"), body)
    body["extra"]["nested"].append(3)

    assert record["raw_body"]["extra"] == {"nested": [1, 2]}


def test_resolve_timezone_falls_back_to_utc() -> None:
    assert resolve_timezone("UTC") is timezone.utc
    assert resolve_timezone("Not/AZone") is timezone.utc


def test_out_of_range_local_time_is_carried_forward(registry: SensorRegistry, dustbin_body) -> None:
    normalizer = Normalizer(local_zone=timezone(timedelta(hours=5)))

    record = normalizer.normalize(_context(registry, "dustbin"), dict(dustbin_body, time="9999-12-31 23:00:00"))

    assert record["received_time_utc"] == "9999-12-31 23:00:00"
    assert record["received_time_local"] == "9999-12-31 23:00:00"


def test_non_string_time_is_rendered_as_text(registry: SensorRegistry, dustbin_body) -> None:
    record = Normalizer().normalize(_context(registry, "dustbin"), dict(dustbin_body, time=1704103200))

    assert record["received_time_utc"] == "1704103200"
    assert record["received_time_local"] == "1704103200"


def test_headers_are_kept_with_credentials_masked(registry: SensorRegistry, dustbin_body) -> None:
    headers = {"M": "dust-m-secret", "k": "dust-k-secret", "User-Agent": "magnet-gw/2.1"}

    record = Normalizer().normalize(_context(registry, "dustbin"), dustbin_body, headers)

    assert record["headers"] == {"m": "[redacted]", "k": "[redacted]", "user-agent": "magnet-gw/2.1"}
