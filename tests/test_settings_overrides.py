from __future__ import annotations

from typing import Iterable

from datastore.record_store import build_default_store
from services.dispatcher import build_default_dispatcher
from services.normalizer import build_default_normalizer
from services.registry import build_default_registry
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


CACHES = (
    get_settings,
    build_default_registry,
    build_default_store,
    build_default_normalizer,
    build_default_dispatcher,
)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    store_path = tmp_path / "readings.json"

    monkeypatch.setenv("STORE_PERSISTENCE_PATH", str(store_path))
    monkeypatch.setenv("LOCAL_TIMEZONE", "UTC")
    monkeypatch.setenv("SENSOR_TYPES", " Dustbin , manhole,dustbin ")
    monkeypatch.setenv("DUSTBIN_CREDENTIAL_M", "dm")
    monkeypatch.setenv("DUSTBIN_CREDENTIAL_K", "dk")
    monkeypatch.setenv("DUSTBIN_STORE_NAME", "bins")
    monkeypatch.setenv("DUSTBIN_HEADER_M", "X-Bin-M")
    monkeypatch.setenv("MANHOLE_CREDENTIAL_M", "hm")
    monkeypatch.delenv("MANHOLE_CREDENTIAL_K", raising=False)

    _clear_caches(CACHES)
    try:
        settings = get_settings()
        assert [sensor.sensor_type for sensor in settings.sensors] == ["dustbin", "manhole"]

        dispatcher = build_default_dispatcher()
        assert dispatcher.store.persistence_path == store_path
        assert dispatcher.registry.sensor_types() == ["dustbin"]
        config = dispatcher.registry.lookup_by_type("dustbin")
        assert config is not None
        assert config.store_name == "bins"
        assert config.header_m == "x-bin-m"
        assert config.header_k == "k"
    finally:
        _clear_caches(CACHES)


def test_defaults_when_environment_is_blank(monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "  ")
    monkeypatch.setenv("SENSOR_TYPES", "")
    monkeypatch.setenv("STORE_PERSISTENCE_PATH", "")
    monkeypatch.setenv("DUSTBIN_CREDENTIAL_M", "   ")

    _clear_caches(CACHES)
    try:
        settings = get_settings()
        assert settings.log_level == "INFO"
        assert settings.store_persistence_path is None
        assert [sensor.sensor_type for sensor in settings.sensors] == ["dustbin", "manhole"]
        assert settings.sensors[0].credential_m is None
    finally:
        _clear_caches(CACHES)
