from __future__ import annotations

from typing import Any, Dict

import pytest

from services.registry import SensorRegistry, build_registry

from tests.helpers import DUSTBIN_HEADERS, MANHOLE_HEADERS, make_settings, sensor_settings


@pytest.fixture()
def registry() -> SensorRegistry:
    settings = make_settings(
        sensor_settings("dustbin", DUSTBIN_HEADERS["m"], DUSTBIN_HEADERS["k"]),
        sensor_settings("manhole", MANHOLE_HEADERS["m"], MANHOLE_HEADERS["k"]),
    )
    return build_registry(settings)


@pytest.fixture()
def dustbin_body() -> Dict[str, Any]:
    return {
        "cmd": "RP",
        "device": "DB-01",
        "battery": "3.7",
        "time": "2024-01-01 10:00:00",
        "dIndex": "0410",
        "data": "82",
    }


@pytest.fixture()
def manhole_body() -> Dict[str, Any]:
    return {
        "cmd": "06",
        "device": "MH-07",
        "battery": "4.1",
        "battery_low": "0",
        "time": "2024-01-01 10:00:00",
        "dIndex": "0010",
        "dt_state": "1",
        "dt_waterLV": "15",
        "dt_x": "2",
        "dt_y": "0",
        "dt_z": "-3",
    }

