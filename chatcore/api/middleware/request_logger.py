"""Request logging middleware for latency tracking."""

import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from chatcore.lib.logger import request_id_var

logger = logging.getLogger(__name__)


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Log each request with its latency and the reply tier that served it."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Tag the request with an id, time it and log the outcome.

        Args:
            request: FastAPI request
            call_next: Next middleware/handler

        Returns:
            Response with X-Request-ID and X-Response-Time headers
        """
        start_time = time.monotonic()
        request_id = request.headers.get("X-Request-ID") or f"req-{uuid.uuid4().hex[:12]}"
        token = request_id_var.set(request_id)

        try:
            logger.info(f"→ {request.method} {request.url.path}")
            try:
                response = await call_next(request)
            except Exception as e:
                latency_ms = (time.monotonic() - start_time) * 1000
                logger.error(
                    f"✗ {request.method} {request.url.path} failed in {latency_ms:.0f}ms: {e}"
                )
                raise

            latency_ms = (time.monotonic() - start_time) * 1000
            attempt = response.headers.get("X-Reply-Attempt")
            logger.info(
                f"← {request.method} {request.url.path} {response.status_code} "
                f"in {latency_ms:.0f}ms" + (f" via {attempt} attempt" if attempt else "")
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Response-Time"] = f"{latency_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id
        return response
