"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - tenant_resolutions_total{outcome}
    - tenant_cache_lookups_total{result}
    - tenant_binding_seconds
    - tenant_pool_engines
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
