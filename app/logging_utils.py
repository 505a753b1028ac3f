"""
Structured JSON logging and per-request access logs.

Every record carries ts, level, logger name and, inside a request, the
request_id. The middleware writes one "Request completed" line per request
and feeds the HTTP metrics.
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from pythonjsonlogger import jsonlogger

from app.metrics import record_http_request

REQUEST_ID_HEADER = "X-Request-ID"
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

access_logger = logging.getLogger("app.requests")


def get_request_id() -> Optional[str]:
    return request_id_ctx.get()


class InboxJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding a millisecond UTC ts, level and request_id."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("ts", _utc_millis(record.created))
        log_record["level"] = record.levelname

        request_id = get_request_id()
        if request_id and "request_id" not in log_record:
            log_record["request_id"] = request_id


def _utc_millis(created: float) -> str:
    stamp = datetime.fromtimestamp(created, tz=timezone.utc)
    return stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Route the root logger and uvicorn's loggers to one JSON stdout handler.

    The uvicorn access log is disabled; RequestLoggingMiddleware replaces it.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(InboxJsonFormatter("%(ts)s %(level)s %(name)s %(message)s"))

    root = logging.getLogger()
    root.setLevel(log_level.upper())
    root.handlers = [handler]

    for name in UVICORN_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers = [handler]
        server_logger.propagate = False
    logging.getLogger("uvicorn.access").disabled = True

    return root


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Assign a request id, echo it in X-Request-ID, and log the outcome.

    Log keys: request_id, method, path, status, latency_ms, plus message_id
    and result when a message route attached them via log_message_data.
    Level follows the status: error for 5xx, warning for 4xx, info otherwise.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            elapsed = time.perf_counter() - started

            if request.url.path != "/metrics":
                # Route template keeps the path label bounded
                route = request.scope.get("route")
                record_http_request(
                    method=request.method,
                    path=getattr(route, "path", request.url.path),
                    status=response.status_code,
                    latency_seconds=elapsed,
                )

            extra = {
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": round(elapsed * 1000, 2),
                **getattr(request.state, "message_log_data", {}),
            }
            access_logger.log(_level_for(response.status_code), "Request completed", extra=extra)
            return response
        finally:
            request_id_ctx.reset(token)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


def log_message_data(request: Request, message_id: Optional[int] = None, result: Optional[str] = None) -> None:
    """
    Attach message_id/result to the request so the access log line carries them.
    """
    data = {}
    if message_id is not None:
        data["message_id"] = message_id
    if result is not None:
        data["result"] = result
    request.state.message_log_data = data
