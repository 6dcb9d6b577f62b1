"""
HTTP middleware: request logging, timing and request-id correlation.
"""

import time
from typing import Callable, Set

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from logging_config import (
    logger,
    generate_request_id,
    set_project_id,
    set_request_id,
    set_user_id,
)


SKIP_LOGGING_PATHS: Set[str] = {
    "/",
    "/health",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}


def project_id_from_path(path: str) -> str:
    if "/projects/" not in path:
        return ""
    candidate = path.split("/projects/", 1)[1].split("/", 1)[0]
    return candidate if candidate.isdigit() else ""


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log one line per request and echo ``X-Request-ID`` back."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        set_user_id("")
        set_project_id(project_id_from_path(request.url.path))

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request_id
        if request.url.path not in SKIP_LOGGING_PATHS:
            logger.log_request(
                request.method, request.url.path, response.status_code, duration_ms
            )
        return response
