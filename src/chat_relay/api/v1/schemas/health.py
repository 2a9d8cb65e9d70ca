from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class WebsocketHealth(BaseModel):
    status: Literal["active"] = "active"
    connections: int


class ServicesHealth(BaseModel):
    database: Literal["connected", "disconnected"]
    websocket: WebsocketHealth


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    services: ServicesHealth
