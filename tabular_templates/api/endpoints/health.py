"""Liveness, readiness and the Prometheus scrape endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import JSONResponse

from ...core.errors import CacheIOError
from ..deps import TemplateServices, get_services

router = APIRouter()


@router.get("/health")
def health_check():
    return {"status": "healthy"}


@router.get("/api/v1/health/ready")
def readiness(services: TemplateServices = Depends(get_services)):
    """Ready once the template cache is populated; a cold cache is populated here."""
    try:
        services.cache.ensure_initialized()
    except CacheIOError:
        # reported by the cache; the next readiness check retries
        return JSONResponse(status_code=503, content={"status": "not_ready", "problems": ["template_cache_unavailable"]})
    return {"status": "ready"}


@router.get("/metrics", include_in_schema=False)
def prometheus_metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
