from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from chat_relay.api.deps import RegistryDep, StoreDep
from chat_relay.api.v1.schemas.health import HealthResponse, ServicesHealth, WebsocketHealth
from chat_relay.application.exceptions import PersistenceError

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(store: StoreDep, registry: RegistryDep) -> JSONResponse:
    database = "connected"
    try:
        await store.ping()
    except PersistenceError as exc:
        logger.warning("Health check: %s", exc.detail)
        database = "disconnected"

    body = HealthResponse(
        status="healthy" if database == "connected" else "degraded",
        services=ServicesHealth(
            database=database,
            websocket=WebsocketHealth(connections=registry.count()),
        ),
    )
    return JSONResponse(
        status_code=200 if body.status == "healthy" else 503,
        content=body.model_dump(),
    )
