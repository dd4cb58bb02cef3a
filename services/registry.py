"""Sensor type registry built once at startup from settings."""

from __future__ import annotations

import hmac
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from models.records import FieldSpec, FieldType, SensorTypeConfig
from services.errors import RegistryError
from settings import SensorSettings, Settings, get_settings

logger = logging.getLogger(__name__)


COMMON_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("cmd", "command", FieldType.string, required=True),
    FieldSpec("device", "device_id", FieldType.string, required=True),
    FieldSpec("battery", "battery", FieldType.decimal, required=True),
    FieldSpec("time", "received_time_utc", FieldType.timestamp, required=True),
    FieldSpec("dIndex", "data_index", FieldType.string, required=True),
)


class FieldDefinition(BaseModel):
    name: str = Field(..., min_length=1)
    column: Optional[str] = None
    type: FieldType = FieldType.string
    required: bool = False

    def to_spec(self) -> FieldSpec:
        return FieldSpec(
            name=self.name,
            column=self.column or self.name,
            type=self.type,
            required=self.required,
        )


class SensorDefinition(BaseModel):
    """Schema-level description of a sensor type, without credentials."""

    store_name: str = Field(..., min_length=1)
    expected_command: Optional[str] = None
    expected_index: Optional[str] = None
    fields: List[FieldDefinition] = Field(default_factory=list)


class SchemaDocument(BaseModel):
    sensor_types: Dict[str, SensorDefinition] = Field(default_factory=dict)


BUILTIN_DEFINITIONS: Dict[str, SensorDefinition] = {
    "dustbin": SensorDefinition(
        store_name="dustbin_data",
        expected_command="RP",
        expected_index="0410",
        fields=[
            FieldDefinition(name="data", column="overflow_percentage", type=FieldType.integer),
        ],
    ),
    "manhole": SensorDefinition(
        store_name="manhole_data",
        expected_command="06",
        expected_index="0010",
        fields=[
            FieldDefinition(name="battery_low", column="battery_low", type=FieldType.boolean),
            FieldDefinition(name="dt_state", column="cover_state", type=FieldType.string),
            FieldDefinition(name="dt_waterLV", column="water_level_cm", type=FieldType.integer),
            FieldDefinition(name="dt_x", column="x_axis_degree", type=FieldType.integer),
            FieldDefinition(name="dt_y", column="y_axis_degree", type=FieldType.integer),
            FieldDefinition(name="dt_z", column="z_axis_degree", type=FieldType.integer),
        ],
    ),
}


def _secret_equals(provided: str, expected: str) -> bool:
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def credentials_match(config: SensorTypeConfig, m: Optional[str], k: Optional[str]) -> bool:
    """Exact, case-sensitive comparison of both shared secrets."""
    if m is None or k is None:
        return False
    # Both secrets are always compared.
    m_ok = _secret_equals(m, config.credential_m)
    k_ok = _secret_equals(k, config.credential_k)
    return m_ok and k_ok


class SensorRegistry:
    """Ordered, read-only-after-startup collection of sensor type configs."""

    def __init__(self) -> None:
        self._configs: Dict[str, SensorTypeConfig] = {}
        self._sealed = False

    def register(self, sensor_type: str, config: SensorTypeConfig) -> None:
        if self._sealed:
            raise RegistryError("Sensor registry is sealed; register types at startup.")
        if sensor_type in self._configs:
            raise RegistryError(f"Sensor type {sensor_type!r} is already registered.")
        for existing in self._configs.values():
            if credentials_match(existing, config.credential_m, config.credential_k):
                raise RegistryError(
                    f"Sensor type {sensor_type!r} reuses the credentials of "
                    f"{existing.sensor_type!r}."
                )
        self._configs[sensor_type] = config

    def seal(self) -> None:
        self._sealed = True

    def lookup_by_credentials(self, m: Optional[str], k: Optional[str]) -> Optional[SensorTypeConfig]:
        for config in self._configs.values():
            if credentials_match(config, m, k):
                return config
        return None

    def lookup_by_type(self, sensor_type: str) -> Optional[SensorTypeConfig]:
        return self._configs.get(sensor_type)

    def sensor_types(self) -> List[str]:
        return list(self._configs)

    def __iter__(self) -> Iterator[SensorTypeConfig]:
        return iter(list(self._configs.values()))

    def __len__(self) -> int:
        return len(self._configs)


def load_schema_file(path: Path) -> Dict[str, SensorDefinition]:
    """Read additional or overriding sensor definitions from a JSON document."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        document = SchemaDocument.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        raise RegistryError(f"Unable to load sensor schema file {str(path)!r}: {exc}") from exc
    return {name.strip().lower(): definition for name, definition in document.sensor_types.items()}


def _merge_fields(definition: SensorDefinition) -> Tuple[FieldSpec, ...]:
    specs: List[FieldSpec] = list(COMMON_FIELDS)
    positions = {spec.name: index for index, spec in enumerate(specs)}
    for item in definition.fields:
        spec = item.to_spec()
        if spec.name in positions:
            specs[positions[spec.name]] = spec
        else:
            positions[spec.name] = len(specs)
            specs.append(spec)
    return tuple(specs)


def _build_config(
    sensor: SensorSettings,
    definition: Optional[SensorDefinition],
) -> Optional[SensorTypeConfig]:
    if definition is None:
        logger.warning(
            "Skipping sensor type without a schema definition",
            extra={"sensor_type": sensor.sensor_type, "reason": "unknown sensor type"},
        )
        return None

    store_name = sensor.store_name or definition.store_name
    if not sensor.credential_m or not sensor.credential_k:
        logger.warning(
            "Skipping sensor type with incomplete credentials",
            extra={"sensor_type": sensor.sensor_type, "reason": "missing credentials"},
        )
        return None
    if not store_name:
        logger.warning(
            "Skipping sensor type without a store name",
            extra={"sensor_type": sensor.sensor_type, "reason": "missing store name"},
        )
        return None

    return SensorTypeConfig(
        sensor_type=sensor.sensor_type,
        credential_m=sensor.credential_m,
        credential_k=sensor.credential_k,
        store_name=store_name,
        fields=_merge_fields(definition),
        expected_command=sensor.expected_command or definition.expected_command,
        expected_index=sensor.expected_index or definition.expected_index,
        header_m=sensor.header_m,
        header_k=sensor.header_k,
    )


def build_registry(
    settings: Settings,
    definitions: Optional[Mapping[str, SensorDefinition]] = None,
) -> SensorRegistry:
    """Assemble and seal a registry from settings and schema definitions."""
    catalog: Dict[str, SensorDefinition] = dict(BUILTIN_DEFINITIONS)
    if definitions is not None:
        catalog.update(definitions)
    elif settings.sensor_schema_path:
        catalog.update(load_schema_file(Path(settings.sensor_schema_path)))

    registry = SensorRegistry()
    for sensor in settings.sensors:
        config = _build_config(sensor, catalog.get(sensor.sensor_type))
        if config is None:
            continue
        registry.register(sensor.sensor_type, config)
        logger.info(
            "Registered sensor type",
            extra={"sensor_type": config.sensor_type, "store_name": config.store_name},
        )

    if not registry:
        logger.warning("No sensor types registered; every ingest request will be rejected")
    registry.seal()
    return registry


@lru_cache
def build_default_registry() -> SensorRegistry:
    return build_registry(get_settings())
