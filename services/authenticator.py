"""Resolve the sensor type of a request from its credential headers."""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from models.records import AuthenticatedContext
from services.errors import AuthenticationFailed
from services.registry import SensorRegistry, credentials_match

logger = logging.getLogger(__name__)


def _lower_keys(headers: Mapping[str, str]) -> Dict[str, str]:
    return {str(name).lower(): value for name, value in headers.items()}


class Authenticator:
    """Matches credential headers against every registered sensor type."""

    def __init__(self, registry: SensorRegistry) -> None:
        self.registry = registry

    def authenticate(self, headers: Mapping[str, str]) -> AuthenticatedContext:
        normalized = _lower_keys(headers)
        saw_credentials = False

        for config in self.registry:
            m: Optional[str] = normalized.get(config.header_m.lower())
            k: Optional[str] = normalized.get(config.header_k.lower())
            if m is None or k is None:
                continue
            saw_credentials = True
            if credentials_match(config, m, k):
                logger.info(
                    "Authenticated ingest request",
                    extra={"sensor_type": config.sensor_type, "status": "accepted"},
                )
                return AuthenticatedContext(sensor_type=config.sensor_type, config=config)

        # Missing and wrong credentials raise the same error.
        reason = "unrecognized credentials" if saw_credentials else "missing credential headers"
        logger.warning(
            "Rejected ingest request",
            extra={"status": "rejected", "reason": reason},
        )
        raise AuthenticationFailed()
