"""
Access Logging Middleware

Logs every API request with its duration and flags slow requests.
"""

import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from restock.helpers.getters import getClientIp
from restock.logging import get_logger

logger = get_logger("restock.access")


class AccessLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log API access.

    Captures method, path, status, client IP, duration and a request id
    that is echoed back in the X-Request-ID header.
    """

    def __init__(self, app: ASGIApp, enabled: bool = True, slow_threshold: float = 1.0):
        """
        Args:
            app: FastAPI application
            enabled: Whether logging is enabled (can be disabled in tests)
            slow_threshold: Seconds after which a request is logged as slow
        """
        super().__init__(app)
        self.enabled = enabled
        self.slow_threshold = slow_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled or request.url.path in ["/", "/health", "/docs", "/openapi.json"]:
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        logger.request(
            "API request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=round(duration, 4),
            request_id=request_id,
            ip_address=getClientIp(request),
        )
        if duration > self.slow_threshold:
            logger.slow("Slow request", duration=duration, threshold=self.slow_threshold,
                        path=request.url.path)

        response.headers["X-Request-ID"] = request_id
        return response
