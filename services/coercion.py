"""Conversion of string-encoded firmware values into typed values.

Upstream firmware sends every field as a string. Fields the sensor schema
declares are converted to their declared type; anything else goes through
:func:`infer_value`, which keeps number-looking text as numbers and leaves
the rest untouched.
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional

from models.records import FieldType

_INTEGER_RE = re.compile(r"[+-]?\d+")
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

_TRUE_LITERALS = frozenset({"1", "true", "yes", "on"})
_FALSE_LITERALS = frozenset({"0", "false", "no", "off"})


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def parse_decimal(value: Any) -> float:
    """Parse a finite decimal number; raise ``ValueError`` otherwise."""
    if isinstance(value, bool):
        raise ValueError(f"Boolean {value!r} is not a decimal number.")
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        candidate = value.strip()
        if not _DECIMAL_RE.fullmatch(candidate):
            raise ValueError(f"{value!r} is not a decimal number.")
        parsed = float(candidate)
    else:
        raise ValueError(f"{value!r} is not a decimal number.")
    if not math.isfinite(parsed):
        raise ValueError(f"{value!r} is not a finite number.")
    return parsed


def parse_integer(value: Any) -> int:
    """Parse a whole number, accepting integral decimals such as ``"15.0"``."""
    if isinstance(value, str) and _INTEGER_RE.fullmatch(value.strip()):
        return int(value.strip())
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    parsed = parse_decimal(value)
    if not parsed.is_integer():
        raise ValueError(f"{value!r} is not a whole number.")
    return int(parsed)


def parse_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        candidate = value.strip().lower()
        if candidate in _TRUE_LITERALS:
            return True
        if candidate in _FALSE_LITERALS:
            return False
    raise ValueError(f"{value!r} is not a boolean flag.")


def infer_value(raw: Any) -> Any:
    """Best-effort typing for fields the schema does not declare."""
    if not isinstance(raw, str):
        return raw
    candidate = raw.strip()
    if _INTEGER_RE.fullmatch(candidate):
        try:
            return int(candidate)
        except ValueError:
            # Longer than the interpreter's int conversion limit.
            return raw
    if _DECIMAL_RE.fullmatch(candidate):
        parsed = float(candidate)
        if math.isfinite(parsed):
            return parsed
    return raw


def coerce_value(raw: Any, field_type: Optional[FieldType] = None) -> Any:
    """Convert ``raw`` to ``field_type``, or infer a type when none is declared.

    Raises ``ValueError`` when a declared numeric or boolean field cannot be
    converted. Inference never raises.
    """
    if field_type is None:
        return infer_value(raw)
    if field_type is FieldType.integer:
        return parse_integer(raw)
    if field_type is FieldType.decimal:
        return parse_decimal(raw)
    if field_type is FieldType.boolean:
        return parse_boolean(raw)
    if field_type is FieldType.timestamp:
        return raw if isinstance(raw, str) else str(raw)
    return raw.strip() if isinstance(raw, str) else str(raw)
