"""
Request middleware: request_id propagation, timing and the response log line.
"""
import time
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from draftio.core.logging import (
    api_logger,
    generate_request_id,
    request_start_var,
    set_request_id,
)

QUIET_PATHS = ("/health", "/readyz")


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)
        request_start_var.set(time.time())
        request.state.request_id = request_id

        path = request.url.path
        quiet = path.endswith(QUIET_PATHS)

        try:
            response = await call_next(request)
        except Exception as e:
            duration = round((time.time() - request_start_var.get()) * 1000, 2)
            api_logger.error(f"{request.method} {path} -> 500 (unhandled)", error=e, duration_ms=duration)
            return JSONResponse(
                status_code=500,
                content={"detail": "Internal server error", "request_id": request_id},
                headers={"X-Request-ID": request_id},
            )

        response.headers["X-Request-ID"] = request_id
        if not quiet:
            duration = round((time.time() - request_start_var.get()) * 1000, 2)
            log_level = "info" if response.status_code < 400 else "warning"
            getattr(api_logger, log_level)(
                f"{request.method} {path} -> {response.status_code}",
                duration_ms=duration,
                status=response.status_code,
            )
        return response
