"""recipeSnap API layer: routes, schemas, WebSocket, and middleware."""

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    status_for_error,
)
from src.api.routes import router
from src.api.schemas import (
    BatchSubmitResponse,
    ErrorResponse,
    HealthResponse,
    QueueResponse,
)
from src.api.websocket import websocket_queue

__all__ = [
    "BatchSubmitResponse",
    "ErrorHandlingMiddleware",
    "ErrorResponse",
    "HealthResponse",
    "QueueResponse",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "status_for_error",
    "websocket_queue",
]
