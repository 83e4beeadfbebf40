"""
Generic response schemas untuk AuthCore.
Menangani response format yang konsisten.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    """
    Simple message response schema.
    """
    message: str = Field(
        ...,
        description="Response message"
    )
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional details"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "message": "Operation completed successfully",
                "details": {
                    "affected_items": 1
                }
            }
        }
    )


class ErrorResponse(BaseModel):
    """
    Error response schema dengan struktur konsisten.
    """
    error: Dict[str, Any] = Field(
        ...,
        description="Error details"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "message": "Account is locked",
                    "type": "AccountLockedError",
                    "details": {
                        "locked_until": "2024-01-15T10:15:00+00:00"
                    },
                    "request_id": "550e8400-e29b-41d4-a716-446655440000",
                    "timestamp": "2024-01-15T10:00:00Z"
                }
            }
        }
    )


ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Authentication failed"},
    403: {"model": ErrorResponse, "description": "Permission denied"},
    409: {"model": ErrorResponse, "description": "Conflict"},
    422: {"model": ErrorResponse, "description": "Validation failed"},
    423: {"model": ErrorResponse, "description": "Account locked"},
}


class HealthCheckResponse(BaseModel):
    """
    Health check response schema.
    """
    status: str = Field(..., description="Health status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="API version")
    service: str = Field(..., description="Service name")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional health details")
