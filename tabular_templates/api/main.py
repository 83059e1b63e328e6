from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .. import __version__
from ..core.errors import CacheIOError, TemplateManagerError
from .deps import get_services
from .endpoints import health, templates
from .middleware.error_shaping import SafeErrorMiddleware, template_error_handler
from .middleware.request_context import RequestContextMiddleware

log = logging.getLogger("tabular_templates.api")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    # warm the template cache so readiness does not wait for the first request
    services = app.dependency_overrides.get(get_services, get_services)()
    try:
        services.cache.ensure_initialized()
    except CacheIOError as exc:
        log.warning("Template cache warm-up failed, readiness will retry: %s", exc)
    yield


app = FastAPI(
    title="Tabular Templates API",
    version=__version__,
    lifespan=_lifespan,
)

# Starlette reverses add_middleware order: the LAST call is the OUTERMOST wrapper.
app.add_middleware(RequestContextMiddleware)
app.add_middleware(SafeErrorMiddleware)

app.add_exception_handler(TemplateManagerError, template_error_handler)

app.include_router(health.router)
app.include_router(templates.router)
