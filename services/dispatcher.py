"""Orchestration of the ingest pipeline and its uniform response contract."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Optional

from fastapi import status

from app.schemas import GatewayResponse, GatewayStatus
from datastore.record_store import RecordStore, build_default_store
from services.authenticator import Authenticator
from services.errors import AuthenticationFailed, StoreError, ValidationFailed
from services.normalizer import Normalizer, build_default_normalizer
from services.registry import SensorRegistry, build_default_registry
from services.validator import Validator

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Internal server error"


@dataclass(frozen=True)
class DispatchOutcome:
    """Wire response plus the HTTP status it is sent with."""

    http_status: int
    response: GatewayResponse
    record_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.response.status is GatewayStatus.success


def _failure(http_status: int, message: str) -> DispatchOutcome:
    return DispatchOutcome(
        http_status=http_status,
        response=GatewayResponse(status=GatewayStatus.failure, message=message),
    )


class IngestDispatcher:
    """Authenticate, validate, normalize and store one sensor payload.

    Every failure is converted to a ``status: "00"`` response here; nothing
    raised by the pipeline escapes :meth:`dispatch`.
    """

    def __init__(
        self,
        registry: SensorRegistry,
        store: RecordStore,
        normalizer: Optional[Normalizer] = None,
        validator: Optional[Validator] = None,
    ) -> None:
        self.registry = registry
        self.store = store
        self.authenticator = Authenticator(registry)
        self.validator = validator or Validator()
        self.normalizer = normalizer or Normalizer()

    def dispatch(self, headers: Mapping[str, str], body: Any) -> DispatchOutcome:
        sensor_type: Optional[str] = None
        try:
            context = self.authenticator.authenticate(headers)
            sensor_type = context.sensor_type
            self.validator.validate(context, body)
            record = self.normalizer.normalize(context, body, headers)
            stored = self.store.insert(context.config.store_name, record)
        except AuthenticationFailed as exc:
            return _failure(status.HTTP_401_UNAUTHORIZED, exc.message)
        except ValidationFailed as exc:
            logger.warning(
                "Rejected sensor payload: %s",
                exc.message,
                extra={"sensor_type": sensor_type, "reason": type(exc).__name__, "http_status": 200},
            )
            return _failure(status.HTTP_200_OK, exc.message)
        except StoreError as exc:
            logger.error(
                "Failed to store sensor payload: %s",
                exc.message,
                extra={"sensor_type": sensor_type, "http_status": 500},
            )
            return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)
        except Exception:
            logger.exception(
                "Unexpected error while ingesting sensor payload",
                extra={"sensor_type": sensor_type, "http_status": 500},
            )
            return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, UNEXPECTED_ERROR_MESSAGE)

        record_id = stored.get("id")
        logger.info(
            "Stored sensor payload",
            extra={
                "sensor_type": sensor_type,
                "device_id": record.get("device_id"),
                "store_name": context.config.store_name,
                "record_id": record_id,
            },
        )
        return DispatchOutcome(
            http_status=status.HTTP_200_OK,
            response=GatewayResponse(status=GatewayStatus.success, message=""),
            record_id=record_id,
        )


@lru_cache
def build_default_dispatcher() -> IngestDispatcher:
    """Factory that wires the dispatcher with the configured registry and store."""
    return IngestDispatcher(
        registry=build_default_registry(),
        store=build_default_store(),
        normalizer=build_default_normalizer(),
    )
