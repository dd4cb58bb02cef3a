"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.schemas import DeleteResult, DeviceList, GatewayResponse, LatestReadings, ReadingPage
from datastore.record_store import MockRecordStore, build_default_store
from services.dispatcher import IngestDispatcher, build_default_dispatcher
from services.errors import StoreError
from services.registry import SensorRegistry, build_default_registry

logger = logging.getLogger(__name__)

router = APIRouter()


def get_dispatcher() -> IngestDispatcher:
    return build_default_dispatcher()


def get_registry() -> SensorRegistry:
    return build_default_registry()


def get_store() -> MockRecordStore:
    return build_default_store()


def _store_name_for(sensor_type: str, registry: SensorRegistry) -> str:
    config = registry.lookup_by_type(sensor_type)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown sensor type {sensor_type!r}.",
        )
    return config.store_name


@router.post(
    "/MagnetAPI",
    response_model=GatewayResponse,
    summary="Ingest one payload from the sensor gateway.",
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": GatewayResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": GatewayResponse},
    },
)
async def ingest_payload(
    request: Request,
    dispatcher: IngestDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    body: Any
    try:
        body = await request.json()
    except ValueError:
        # Malformed JSON still goes through authentication first.
        body = None
    logger.debug("Received sensor payload: %s", body)

    outcome = await run_in_threadpool(dispatcher.dispatch, request.headers, body)
    return JSONResponse(
        status_code=outcome.http_status,
        content=outcome.response.model_dump(mode="json"),
    )


@router.get(
    "/readings/{sensor_type}",
    response_model=ReadingPage,
    summary="List stored readings for a sensor type, newest first.",
)
async def list_readings(
    sensor_type: str,
    device: Optional[str] = Query(None, description="Only readings from this device."),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    registry: SensorRegistry = Depends(get_registry),
    store: MockRecordStore = Depends(get_store),
) -> ReadingPage:
    store_name = _store_name_for(sensor_type, registry)
    items, total = store.query(store_name, device_id=device, limit=limit, offset=offset)
    return ReadingPage(
        sensor_type=sensor_type,
        total=total,
        limit=limit,
        offset=offset,
        items=items,
    )


@router.get(
    "/readings/{sensor_type}/latest",
    response_model=LatestReadings,
    summary="Latest reading of every device of a sensor type.",
)
async def latest_readings(
    sensor_type: str,
    registry: SensorRegistry = Depends(get_registry),
    store: MockRecordStore = Depends(get_store),
) -> LatestReadings:
    store_name = _store_name_for(sensor_type, registry)
    return LatestReadings(sensor_type=sensor_type, items=store.latest_per_device(store_name))


@router.get(
    "/readings/{sensor_type}/devices",
    response_model=DeviceList,
    summary="Distinct device identifiers that have reported.",
)
async def list_devices(
    sensor_type: str,
    registry: SensorRegistry = Depends(get_registry),
    store: MockRecordStore = Depends(get_store),
) -> DeviceList:
    store_name = _store_name_for(sensor_type, registry)
    return DeviceList(sensor_type=sensor_type, devices=store.distinct_devices(store_name))


@router.get(
    "/readings/{sensor_type}/{record_id}",
    summary="Fetch a single stored reading.",
)
async def get_reading(
    sensor_type: str,
    record_id: str,
    registry: SensorRegistry = Depends(get_registry),
    store: MockRecordStore = Depends(get_store),
) -> Dict[str, Any]:
    store_name = _store_name_for(sensor_type, registry)
    item = store.get(store_name, record_id)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Reading {record_id!r} not found.",
        )
    return item


@router.delete(
    "/readings/{sensor_type}/{record_id}",
    response_model=DeleteResult,
    summary="Delete a single stored reading.",
)
async def delete_reading(
    sensor_type: str,
    record_id: str,
    registry: SensorRegistry = Depends(get_registry),
    store: MockRecordStore = Depends(get_store),
) -> DeleteResult:
    store_name = _store_name_for(sensor_type, registry)
    try:
        deleted = store.delete(store_name, record_id)
    except StoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        ) from exc
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Reading {record_id!r} not found.",
        )
    return DeleteResult(deleted=1)


@router.delete(
    "/readings/{sensor_type}",
    response_model=DeleteResult,
    summary="Bulk delete readings by device and/or age.",
)
async def delete_readings(
    sensor_type: str,
    device: Optional[str] = Query(None),
    before: Optional[datetime] = Query(None, description="Delete readings stored before this instant."),
    registry: SensorRegistry = Depends(get_registry),
    store: MockRecordStore = Depends(get_store),
) -> DeleteResult:
    store_name = _store_name_for(sensor_type, registry)
    try:
        deleted = store.delete_where(store_name, device_id=device, before=before)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.message,
        ) from exc
    return DeleteResult(deleted=deleted)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "message": "Sensor Data API Server Running"}
