"""Request ID middleware for request tracing."""

import contextvars
import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

# Probe and static asset paths are traced but not logged.
QUIET_PATH_PREFIXES = ("/healthz", "/readyz", "/health", "/assets", "/gradio_api", "/file=")

logger = structlog.get_logger("api.requests")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns a request ID, binds it to the log context and echoes it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(request_id)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        path = request.url.path
        quiet = path.startswith(QUIET_PATH_PREFIXES)
        if not quiet:
            await logger.ainfo("request_started", method=request.method, path=path)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

        if not quiet:
            await logger.ainfo(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        response.headers["X-Request-ID"] = request_id
        return response
