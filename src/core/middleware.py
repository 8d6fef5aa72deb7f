"""Middleware for request correlation ID tracking."""

import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.error_handler import set_correlation_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to every request and response.

    An incoming ``X-Correlation-ID`` header is reused so tool calls can be
    traced across the caller and this server; otherwise a UUID is generated.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response
