"""
Request logging middleware for the location API.
"""

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from config.logging_config import get_logger

# Configure logging
logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Request logging middleware for API monitoring and debugging.
    """

    def __init__(self, app):
        super().__init__(app)
        self.excluded_paths = {"/health", "/docs", "/openapi.json", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next):
        """
        Log request and response details.

        Args:
            request: Incoming request
            call_next: Next middleware in chain

        Returns:
            Response object
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        start_time = time.perf_counter()
        request_id = f"req_{uuid.uuid4().hex[:12]}"

        logger.info(f"Request {request_id} started: {request.method} {request.url.path}")

        response = await call_next(request)

        process_time = time.perf_counter() - start_time
        logger.info(
            f"Request {request_id} completed: "
            f"{response.status_code} in {process_time:.4f}s"
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        return response


__all__ = ["RequestLoggingMiddleware"]
