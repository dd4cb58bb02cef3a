"""Build storage-ready records from validated payloads."""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from models.records import AuthenticatedContext, NormalizedRecord
from services.coercion import coerce_value, infer_value, is_blank
from settings import get_settings

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
TIME_FIELD = "time"
LOCAL_TIME_COLUMN = "received_time_local"
RAW_BODY_COLUMN = "raw_body"
HEADERS_COLUMN = "headers"
REDACTED = "[redacted]"
RESERVED_FIELDS = frozenset({"cmd", "device", "battery", "time", "dIndex"})


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown local timezone %r; using UTC", name)
        return timezone.utc


def redact_headers(context: AuthenticatedContext, headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy request headers with the credential values masked."""
    secret_names = {context.config.header_m.lower(), context.config.header_k.lower()}
    return {
        str(name).lower(): REDACTED if str(name).lower() in secret_names else str(value)
        for name, value in headers.items()
    }


class Normalizer:
    """Pure transformation from a validated body to a flat record."""

    def __init__(self, local_zone: tzinfo = timezone.utc) -> None:
        self.local_zone = local_zone

    def normalize(
        self,
        context: AuthenticatedContext,
        body: Mapping[str, Any],
        headers: Optional[Mapping[str, str]] = None,
    ) -> NormalizedRecord:
        config = context.config
        record: NormalizedRecord = {}

        for spec in config.fields:
            value = body.get(spec.name)
            if is_blank(value):
                record[spec.column] = None
                continue
            record[spec.column] = coerce_value(value, spec.type)

        record[LOCAL_TIME_COLUMN] = self.to_local_time(body.get(TIME_FIELD))
        record[HEADERS_COLUMN] = redact_headers(context, headers or {})

        for key, value in body.items():
            if key in RESERVED_FIELDS or config.spec_for(key) is not None:
                continue
            record.setdefault(key, infer_value(value))

        record[RAW_BODY_COLUMN] = copy.deepcopy(dict(body))
        return record

    def to_local_time(self, value: Any) -> Any:
        """Render a UTC ``YYYY-MM-DD HH:MM:SS`` string in the local zone.

        Values that do not parse, or fall outside the representable range once
        shifted, are returned as text unchanged.
        """
        if value is None:
            return None
        text = value if isinstance(value, str) else str(value)
        try:
            parsed = datetime.strptime(text, TIMESTAMP_FORMAT)
            local = parsed.replace(tzinfo=timezone.utc).astimezone(self.local_zone)
        except (ValueError, OverflowError):
            logger.warning(
                "Timestamp cannot be rendered in the local zone; keeping UTC value",
                extra={"reason": "unconvertible timestamp"},
            )
            return text
        return local.strftime(TIMESTAMP_FORMAT)


@lru_cache
def build_default_normalizer() -> Normalizer:
    return Normalizer(local_zone=resolve_timezone(get_settings().local_timezone))
