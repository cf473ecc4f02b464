"""Health check endpoints.

- /health: liveness, always 200
- /healthz: central database and Redis connectivity, 503 when degraded
"""

from typing import Any

import redis.asyncio as redis
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from saas_platform.app.config import Settings

router = APIRouter()


async def check_db(engine: AsyncEngine) -> tuple[bool, str]:
    """Check central database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if not settings.redis_url:
        return (True, "not_configured")

    try:
        client = redis.from_url(settings.redis_url)
        try:
            await client.ping()
        finally:
            await client.aclose()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(request: Request) -> dict[str, Any] | JSONResponse:
    """Health check endpoint.

    Returns:
        200 with component status if core systems ok
        503 if the central database or Redis is down
    """
    settings: Settings = request.app.state.settings

    db_ok, db_status = await check_db(request.app.state.central_engine)
    redis_ok, redis_status = await check_redis(settings)

    response_body = {
        "status": "ok" if db_ok and redis_ok else "degraded",
        "components": {
            "db": db_status,
            "redis": redis_status,
            "tenant_engines": len(request.app.state.tenant_pool),
        },
    }

    if not (db_ok and redis_ok):
        return JSONResponse(response_body, status_code=503)

    return response_body
