from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from ..schemas import HealthResponse


router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


async def _check(name: str, probe) -> str:
    try:
        await probe()
        return "up"
    except Exception as exc:
        logger.warning("health_check_failed", extra={"endpoint": name, "status": type(exc).__name__})
        return "down"


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    state = request.app.state
    services = {
        "store": await _check("store", state.store.ping),
        "corpus": await _check("corpus", state.corpus.ping),
    }
    if state.redis is not None:
        services["redis"] = await _check("redis", state.redis.ping)
    else:
        services["redis"] = "disabled"

    status = "healthy" if all(value != "down" for value in services.values()) else "degraded"
    return HealthResponse(status=status, services=services)
