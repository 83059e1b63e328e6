from __future__ import annotations

import logging
import traceback
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from ...core.errors import ErrorKind, TemplateManagerError

log = logging.getLogger("tabular_templates.errors")

STATUS_BY_KIND = {
    ErrorKind.TEMPLATE: 422,
    ErrorKind.CONNECTION: 502,
    ErrorKind.SAVE: 409,
    ErrorKind.CACHE_IO: 503,
    ErrorKind.CANCELED: 499,
}


def _request_id(request: Request):
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


async def template_error_handler(request: Request, exc: TemplateManagerError) -> JSONResponse:
    # already reported to diagnostics where it was first caught
    payload = {"error": exc.to_dict()}
    rid = _request_id(request)
    if rid:
        payload["request_id"] = rid
    return JSONResponse(status_code=STATUS_BY_KIND.get(exc.kind, 500), content=payload)


class SafeErrorMiddleware(BaseHTTPMiddleware):
    """
    - Never return stack traces to clients
    - Preserve request_id if present
    - Log traceback server-side
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            rid = _request_id(request)
            log.error(
                "Unhandled error: %s rid=%s path=%s\n%s",
                str(e),
                rid,
                request.url.path,
                traceback.format_exc(),
            )
            payload = {"detail": "Internal Server Error"}
            if rid:
                payload["request_id"] = rid
            return JSONResponse(status_code=500, content=payload)
