import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Annotated, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.errors import MessageNotFoundError, ValidationError
from app.logging_utils import setup_logging, RequestLoggingMiddleware, log_message_data
from app.metrics import record_message_operation, get_metrics, get_metrics_content_type
from app.schemas import (
    ErrorResponse,
    HealthResponse,
    MessageCreateRequest,
    MessagePageResponse,
    MessageResponse,
)
from app.service import MessageService
from app.storage import SqlMessageStore, check_db_health, get_db, init_db
from app.utils import format_timestamp, utc_now


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    """
    init_db()
    yield


app = FastAPI(
    title="Contact Inbox API",
    description="Contact-message inbox: submit, list, read and delete messages",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


def get_message_service(db: Session = Depends(get_db)) -> MessageService:
    """Build the message service around a per-request SQL store."""
    return MessageService(
        SqlMessageStore(db),
        default_page_size=settings.DEFAULT_PAGE_SIZE,
        max_page_size=settings.MAX_PAGE_SIZE,
    )


ServiceDep = Annotated[MessageService, Depends(get_message_service)]

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    404: {"model": ErrorResponse, "description": "Message not found"},
}


# =============================================================================
# Error Handlers
# =============================================================================

def error_response(
    request: Request,
    status_code: int,
    message: str,
    violations: Optional[List[str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build the structured ErrorResponse payload used by every handler."""
    body = ErrorResponse(
        timestamp=format_timestamp(utc_now()),
        status_code=status_code,
        error_label=HTTPStatus(status_code).phrase,
        message=message,
        request_path=request.url.path,
        violation_messages=violations,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
        headers=headers,
    )


@app.exception_handler(ValidationError)
async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info(f"Validation failed on {request.url.path}: {exc.violations}")
    return error_response(request, status.HTTP_400_BAD_REQUEST, "Validation failed", exc.violations)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    violations = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    logger.info(f"Malformed request on {request.url.path}: {violations}")
    return error_response(request, status.HTTP_400_BAD_REQUEST, "Validation failed", violations)


@app.exception_handler(MessageNotFoundError)
async def handle_not_found(request: Request, exc: MessageNotFoundError) -> JSONResponse:
    logger.info(str(exc))
    return error_response(request, status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(request, exc.status_code, str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    # Cause goes to the logs only, never to the response body
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An internal server error occurred. Please contact the administrator.",
    )


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the DB is reachable and the
    messages table exists, otherwise 503 (Service Unavailable).
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Message Routes
# =============================================================================

@app.post(
    "/api/mensajes",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
def submit_message(
    request: Request,
    payload: MessageCreateRequest,
    service: ServiceDep,
) -> MessageResponse:
    """
    Submit a contact message.

    All field violations are reported together with a 400 response;
    nothing is stored in that case.
    """
    try:
        created = service.submit(payload.sender_name, payload.sender_email, payload.content)
    except ValidationError:
        record_message_operation("submit", "validation_error")
        log_message_data(request, result="validation_error")
        raise

    record_message_operation("submit", "created")
    log_message_data(request, message_id=created.id, result="created")
    return created


@app.get("/api/mensajes", response_model=List[MessageResponse])
def list_messages(service: ServiceDep) -> List[MessageResponse]:
    """List every message, most recent first."""
    return service.list_all()


@app.get("/api/mensajes/no-leidos", response_model=List[MessageResponse])
def list_unread_messages(service: ServiceDep) -> List[MessageResponse]:
    """List unread messages, most recent first."""
    return service.list_unread()


@app.get("/api/mensajes/no-leidos/count", response_model=int)
def count_unread_messages(service: ServiceDep) -> int:
    return service.count_unread()


@app.get("/api/mensajes/email/{email}", response_model=List[MessageResponse])
def list_messages_by_email(email: str, service: ServiceDep) -> List[MessageResponse]:
    """List messages from one sender email, in creation order."""
    return service.list_by_email(email)


# =============================================================================
# Paginated Message Routes
# =============================================================================

PageParam = Annotated[int, Query(description="Zero-based page number")]
SizeParam = Annotated[Optional[int], Query(description="Page size (default from settings)")]
SortParam = Annotated[str, Query(description="Sort field: created_at, id, sender_name, sender_email, is_read")]
DirectionParam = Annotated[str, Query(description="Sort direction: asc or desc")]


@app.get("/api/mensajes/paginado", response_model=MessagePageResponse, responses=ERROR_RESPONSES)
def list_messages_paginated(
    service: ServiceDep,
    page: PageParam = 0,
    size: SizeParam = None,
    sort: SortParam = "created_at",
    direction: DirectionParam = "desc",
) -> MessagePageResponse:
    return service.list_all_paginated(page, size, sort, direction)


@app.get("/api/mensajes/paginado/filtrado", response_model=MessagePageResponse, responses=ERROR_RESPONSES)
def list_messages_by_read_state_paginated(
    service: ServiceDep,
    leido: Annotated[bool, Query(description="Read state to filter by")] = False,
    page: PageParam = 0,
    size: SizeParam = None,
    sort: SortParam = "created_at",
    direction: DirectionParam = "desc",
) -> MessagePageResponse:
    return service.list_by_read_state_paginated(leido, page, size, sort, direction)


@app.get("/api/mensajes/paginado/email/{email}", response_model=MessagePageResponse, responses=ERROR_RESPONSES)
def list_messages_by_email_paginated(
    email: str,
    service: ServiceDep,
    page: PageParam = 0,
    size: SizeParam = None,
    sort: SortParam = "created_at",
    direction: DirectionParam = "desc",
) -> MessagePageResponse:
    return service.list_by_email_paginated(email, page, size, sort, direction)


@app.get("/api/mensajes/paginado/buscar", response_model=MessagePageResponse, responses=ERROR_RESPONSES)
def search_messages_paginated(
    service: ServiceDep,
    q: Annotated[str, Query(description="Text to search for in message content (case-insensitive)")] = "",
    page: PageParam = 0,
    size: SizeParam = None,
    sort: SortParam = "created_at",
    direction: DirectionParam = "desc",
) -> MessagePageResponse:
    return service.search_content_paginated(q, page, size, sort, direction)


# =============================================================================
# Single Message Routes
# =============================================================================

@app.get("/api/mensajes/{message_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
def get_message(message_id: int, service: ServiceDep) -> MessageResponse:
    return service.get_by_id(message_id)


@app.patch("/api/mensajes/{message_id}/leido", response_model=MessageResponse, responses=ERROR_RESPONSES)
def mark_message_read(request: Request, message_id: int, service: ServiceDep) -> MessageResponse:
    """Mark a message as read. Repeating the call returns the same state."""
    try:
        updated = service.mark_read(message_id)
    except MessageNotFoundError:
        record_message_operation("mark_read", "not_found")
        log_message_data(request, message_id=message_id, result="not_found")
        raise

    record_message_operation("mark_read", "updated")
    log_message_data(request, message_id=message_id, result="updated")
    return updated


@app.delete(
    "/api/mensajes/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=ERROR_RESPONSES,
)
def delete_message(request: Request, message_id: int, service: ServiceDep) -> Response:
    try:
        service.delete(message_id)
    except MessageNotFoundError:
        record_message_operation("delete", "not_found")
        log_message_data(request, message_id=message_id, result="not_found")
        raise

    record_message_operation("delete", "deleted")
    log_message_data(request, message_id=message_id, result="deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.

    - http_requests_total: Total HTTP requests by method, path, status
    - message_operations_total: Message operation outcomes
    - request_latency_seconds: Request latency histogram
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
