"""
Middleware components for the campaign hub.

Assigns a request id to every request, exposes it to log records through the
request context, and logs request timing.
"""

import time
import logging
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .request_context import set_request_context, clear_request_context

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def client_ip_from(request: Request) -> str:
    """Best-effort origin IP, honouring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request id propagation and access logging"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER)
        if not request_id:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
            request_id = f"req_{timestamp}_{uuid4().hex[:8]}"

        set_request_context(request_id, client_ip=client_ip_from(request), path=request.url.path)
        start_time = time.time()

        try:
            response = await call_next(request)
        finally:
            process_time = time.time() - start_time

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        logger.info(
            f"{request.method} {request.url.path} - {response.status_code}",
            extra={
                "status_code": response.status_code,
                "duration_ms": round(process_time * 1000, 2),
                "component": "http",
            }
        )
        clear_request_context()
        return response
