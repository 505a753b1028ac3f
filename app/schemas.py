"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data
- Response models for API responses, using the inbox wire field names
- The projection from stored messages to response DTOs
"""

from typing import Optional

from pydantic import BaseModel, Field

from app.utils import format_timestamp


# =============================================================================
# Pydantic Request Models
# =============================================================================

class MessageCreateRequest(BaseModel):
    """
    Body of a message submission.

    Only the three user-supplied fields are read; anything else is ignored.
    Field rules are applied by app.validation so that every violation is
    reported together, which is why the fields are loosely typed here.
    Accepts both the wire names (nombre/email/contenido) and the field names.
    """
    sender_name: Optional[str] = Field(None, alias="nombre", description="Sender name")
    sender_email: Optional[str] = Field(None, alias="email", description="Sender email address")
    content: Optional[str] = Field(None, alias="contenido", description="Message body")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
        "json_schema_extra": {
            "examples": [
                {
                    "nombre": "Ana",
                    "email": "ana@x.com",
                    "contenido": "Hello, is this open for business?"
                }
            ]
        }
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class MessageResponse(BaseModel):
    """
    Externally visible projection of a stored message.
    Serialized with the inbox wire names.
    """
    id: int = Field(..., description="Message identifier")
    sender_name: str = Field(..., alias="nombre", description="Sender name")
    sender_email: str = Field(..., alias="email", description="Sender email address")
    content: str = Field(..., alias="contenido", description="Message body")
    created_at: str = Field(
        ...,
        alias="fechaCreacion",
        description="Creation time, ISO-8601 with second precision and no offset"
    )
    is_read: bool = Field(..., alias="leido", description="Whether the message was read")

    model_config = {"populate_by_name": True}


class MessagePageResponse(BaseModel):
    """
    One page of a filtered, sorted message listing.

    - content: messages on this page
    - page_number: zero-based page index
    - page_size: requested page size
    - total_elements: messages matching the filter, across all pages
    - total_pages: number of pages at this page size
    """
    content: list[MessageResponse] = Field(default_factory=list, description="Messages on this page")
    page_number: int = Field(..., ge=0, description="Zero-based page index")
    page_size: int = Field(..., ge=1, description="Maximum messages per page")
    total_elements: int = Field(..., ge=0, description="Total messages matching the filter")
    total_pages: int = Field(..., ge=0, description="Total number of pages")


class ErrorResponse(BaseModel):
    """Structured error payload shared by every error handler."""
    timestamp: str = Field(..., description="When the error occurred (ISO-8601)")
    status_code: int = Field(..., description="HTTP status code")
    error_label: str = Field(..., description="HTTP reason phrase")
    message: str = Field(..., description="Error description")
    request_path: str = Field(..., description="Path of the failed request")
    violation_messages: Optional[list[str]] = Field(
        None,
        description="Every validation violation, in rule order"
    )


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")


# =============================================================================
# DTO Projection
# =============================================================================

def to_message_response(message) -> MessageResponse:
    """Project a stored message onto its response DTO."""
    return MessageResponse(
        id=message.id,
        sender_name=message.sender_name,
        sender_email=message.sender_email,
        content=message.content,
        created_at=format_timestamp(message.created_at),
        is_read=message.is_read,
    )
