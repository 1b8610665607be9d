"""
FastAPI middleware for request tracing and correlation.

This module provides middleware components for adding observability to HTTP requests,
including unique request IDs for distributed tracing and log correlation.
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add unique request IDs to each HTTP request.

    This middleware reuses the gateway's X-Request-ID when present, otherwise
    generates a UUID, and:
    1. Stores it in request.state.request_id for access in route handlers
    2. Binds it into structlog contextvars so every log line carries it
    3. Adds it to the response as X-Request-ID header for client correlation

    Example:
        >>> # In main.py
        >>> from rentease.middleware import RequestIDMiddleware
        >>> app.add_middleware(RequestIDMiddleware)
        >>>
        >>> # Response headers will include:
        >>> # X-Request-ID: 550e8400-e29b-41d4-a716-446655440000
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """
        Process each request with a request ID bound to the logging context.

        Args:
            request: Incoming FastAPI request
            call_next: Next middleware or route handler in chain

        Returns:
            Response with X-Request-ID header added
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=request.method, path=request.url.path
        )
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "method", "path")

        response.headers["X-Request-ID"] = request_id
        return response
