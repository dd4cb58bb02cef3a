"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class GatewayStatus(str, Enum):
    """Status codes the upstream sensor gateway understands."""

    success = "01"
    failure = "00"


class GatewayResponse(BaseModel):
    """Fixed two-field body returned by ``POST /MagnetAPI``."""

    status: GatewayStatus
    message: str = ""


class ReadingPage(BaseModel):
    """One page of stored readings, newest first."""

    sensor_type: str
    total: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    offset: int = Field(..., ge=0)
    items: List[Dict[str, Any]] = Field(default_factory=list)


class LatestReadings(BaseModel):
    sensor_type: str
    items: List[Dict[str, Any]] = Field(default_factory=list)


class DeviceList(BaseModel):
    sensor_type: str
    devices: List[str] = Field(default_factory=list)


class DeleteResult(BaseModel):
    """Number of readings removed by a delete call."""

    deleted: int = Field(..., ge=0)
