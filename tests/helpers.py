"""Builders shared by the test modules."""

from __future__ import annotations

from typing import Any, Dict

from settings import SensorSettings, Settings

DUSTBIN_HEADERS = {"m": "dust-m-secret", "k": "dust-k-secret"}
MANHOLE_HEADERS = {"m": "hole-m-secret", "k": "hole-k-secret"}


def sensor_settings(sensor_type: str, m: str | None, k: str | None, **overrides: Any) -> SensorSettings:
    values: Dict[str, Any] = {
        "sensor_type": sensor_type,
        "credential_m": m,
        "credential_k": k,
        "header_m": "m",
        "header_k": "k",
        "store_name": None,
        "expected_command": None,
        "expected_index": None,
    }
    values.update(overrides)
    return SensorSettings(**values)


def make_settings(*sensors: SensorSettings, local_timezone: str = "UTC") -> Settings:
    return Settings(
        log_level="INFO",
        local_timezone=local_timezone,
        store_persistence_path=None,
        sensor_schema_path=None,
        sensors=tuple(sensors),
    )
