from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple


_LOG_LEVEL_ENV = "LOG_LEVEL"
_LOCAL_TIMEZONE_ENV = "LOCAL_TIMEZONE"
_STORE_PATH_ENV = "STORE_PERSISTENCE_PATH"
_SENSOR_TYPES_ENV = "SENSOR_TYPES"
_SCHEMA_PATH_ENV = "SENSOR_SCHEMA_PATH"

DEFAULT_SENSOR_TYPES = ("dustbin", "manhole")


@dataclass(frozen=True)
class SensorSettings:
    """Deployment values for one sensor type, read from ``<TYPE>_*`` variables."""

    sensor_type: str
    credential_m: Optional[str]
    credential_k: Optional[str]
    header_m: str
    header_k: str
    store_name: Optional[str]
    expected_command: Optional[str]
    expected_index: Optional[str]


@dataclass(frozen=True)
class Settings:
    log_level: str
    local_timezone: str
    store_persistence_path: Optional[str]
    sensor_schema_path: Optional[str]
    sensors: Tuple[SensorSettings, ...]


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def _read_sensor_types(default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(_SENSOR_TYPES_ENV)
    if value is None:
        return default
    names = []
    for part in value.split(","):
        candidate = part.strip().lower()
        if candidate and candidate not in names:
            names.append(candidate)
    return tuple(names) or default


def _read_secret_env(name: str) -> Optional[str]:
    # Secrets are compared verbatim, so only an entirely blank value counts as unset.
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value


def _read_sensor_settings(sensor_type: str) -> SensorSettings:
    prefix = sensor_type.upper()
    return SensorSettings(
        sensor_type=sensor_type,
        credential_m=_read_secret_env(f"{prefix}_CREDENTIAL_M"),
        credential_k=_read_secret_env(f"{prefix}_CREDENTIAL_K"),
        header_m=_read_str_env(f"{prefix}_HEADER_M", "m").lower(),
        header_k=_read_str_env(f"{prefix}_HEADER_K", "k").lower(),
        store_name=_read_optional_env(f"{prefix}_STORE_NAME", None),
        expected_command=_read_optional_env(f"{prefix}_EXPECTED_COMMAND", None),
        expected_index=_read_optional_env(f"{prefix}_EXPECTED_INDEX", None),
    )


@lru_cache
def get_settings() -> Settings:
    return Settings(
        log_level=_read_log_level("INFO"),
        local_timezone=_read_str_env(_LOCAL_TIMEZONE_ENV, "UTC"),
        store_persistence_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/readings.json"),
        sensor_schema_path=_read_optional_env(_SCHEMA_PATH_ENV, None),
        sensors=tuple(
            _read_sensor_settings(name)
            for name in _read_sensor_types(DEFAULT_SENSOR_TYPES)
        ),
    )
