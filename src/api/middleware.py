"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so in main.py the request
logger is added after the error handler and sees the final status code.

Every request gets a short ``request_id`` bound into the structlog
context vars, so log lines emitted by routes (and by pipeline work the
route awaits) can be correlated.  The id is echoed back in the
``X-Request-ID`` response header.
"""

from __future__ import annotations

import time
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas import ErrorResponse
from src.utils.errors import ConfigurationError, RecipeSnapError, TransportError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; all origins are allowed unless *allowed_origins* is given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each request once it finishes, tagged with a request id.

    A client-supplied ``X-Request-ID`` is reused; otherwise a new one is
    generated.  Server errors are logged at warning level.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex[:12]
        start = time.perf_counter()
        status_code = 500

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
                status_code = response.status_code
                response.headers[REQUEST_ID_HEADER] = request_id
                return response
            finally:
                log = _logger.warning if status_code >= 500 else _logger.info
                log(
                    "http_request",
                    method=request.method,
                    path=request.url.path,
                    status=status_code,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )


def status_for_error(exc: RecipeSnapError) -> int:
    """HTTP status for an application error reaching the API boundary.

    ``ConfigurationError`` → 400 (the caller can fix settings),
    ``TransportError`` → 502 (a collaborator failed), anything else → 500.
    """
    if isinstance(exc, ConfigurationError):
        return 400
    if isinstance(exc, TransportError):
        return 502
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn ``RecipeSnapError`` subclasses into JSON ``ErrorResponse`` bodies.

    The client sees the exception class name and message only; provider
    details and tracebacks stay in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except RecipeSnapError as exc:
            status_code = status_for_error(exc)
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=request.url.path,
                status=status_code,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status_code, content=body.model_dump())
