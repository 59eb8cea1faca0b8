"""
Logging setup and request observability.

Every request gets a correlation id (taken from X-Correlation-ID when the
caller sends one) and one log line on the way out. Webhook requests are
tagged with the protocol they arrived on so rejects can be grouped by app.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("crewmap.requests")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

CORRELATION_HEADER = "X-Correlation-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

WEBHOOK_SEGMENT = "/webhooks/"


def configure_logging(level: str = "INFO") -> None:
    """Configure the crewmap logger namespace once at startup."""
    root = logging.getLogger("crewmap")
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def webhook_protocol(path: str) -> str:
    """Protocol name for a webhook path ("osmand", "overland", ...), or "" for other routes."""
    _, found, tail = path.partition(WEBHOOK_SEGMENT)
    if not found:
        return ""
    return tail.strip("/").split("/")[0]


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[PROCESS_TIME_HEADER] = f"{duration_ms:.2f}"

        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "ip": request.client.host if request.client else "unknown",
        }
        protocol = webhook_protocol(request.url.path)
        if protocol:
            log_data["protocol"] = protocol

        message = "%s %s -> %d (%.2fms) cid=%s"
        args = (request.method, request.url.path, response.status_code, duration_ms, correlation_id)

        if response.status_code >= 500:
            logger.error(message, *args, extra=log_data)
        elif response.status_code >= 400:
            logger.warning(message, *args, extra=log_data)
        else:
            logger.info(message, *args, extra=log_data)

        return response
