"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class FieldType(str, Enum):
    """Semantic type of a payload field."""

    string = "string"
    integer = "integer"
    decimal = "decimal"
    boolean = "boolean"
    timestamp = "timestamp"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """A payload key, the column it is stored under, and how to coerce it."""

    name: str
    column: str
    type: FieldType = FieldType.string
    required: bool = False


@dataclass(frozen=True, slots=True)
class SensorTypeConfig:
    """Credentials, framing constants and schema for one sensor type."""

    sensor_type: str
    credential_m: str
    credential_k: str
    store_name: str
    fields: Tuple[FieldSpec, ...] = ()
    expected_command: Optional[str] = None
    expected_index: Optional[str] = None
    header_m: str = "m"
    header_k: str = "k"

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.fields if spec.required)

    def spec_for(self, name: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None


@dataclass(frozen=True, slots=True)
class AuthenticatedContext:
    """Result of a successful credential match."""

    sensor_type: str
    config: SensorTypeConfig


NormalizedRecord = Dict[str, Any]
