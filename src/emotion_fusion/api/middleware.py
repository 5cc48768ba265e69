"""Middleware — request ids, request logging and error handling."""

from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from emotion_fusion.exceptions import FusionError

logger = structlog.get_logger(__name__)

# ── Request logging ───────────────────────────────────────────


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Bind a request id into the log context and log each fusion call."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.monotonic()
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")
        response.headers["X-Request-ID"] = request_id

        if request.url.path != "/health":
            logger.info(
                "http.request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.monotonic() - start) * 1000, 1),
            )
        return response


# ── Global error handler ─────────────────────────────────────


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turn engine errors that escape a route into JSON responses.

    Validation errors raised by the engine become 422; anything else is
    logged with its traceback and becomes 500.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except FusionError as exc:
            logger.warning("http.fusion_error", path=request.url.path, error=str(exc))
            return JSONResponse(status_code=422, content={"detail": str(exc)})
        except Exception:
            logger.exception("http.unhandled_error", path=request.url.path)
            return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ── Setup helper ──────────────────────────────────────────────


def setup_middleware(app: FastAPI) -> None:
    """Wire middleware; the error handler is outermost."""
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
