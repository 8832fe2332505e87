"""
HTTP middleware utilities.

Propagates request IDs into the logging context so every log line of a
generation run can be traced back to the API call that started it.
"""
import logging
import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.error_handling import request_id_var

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach/propagate request IDs for each incoming request."""

    async def dispatch(self, request: Request, call_next: Callable):
        incoming = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID")
        request_id = incoming or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        start_time = time.time()

        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        logger.debug(
            f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} "
            f"in {time.time() - start_time:.2f}s"
        )
        return response
