"""
Response Envelope
=================

Every SLA endpoint answers `{success, data, message?}`; failures answer
`{success: false, message, error?}`.
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Failure envelope."""
    success: bool = False
    message: str
    error: Optional[Any] = None


def ok(data: Any = None, message: Optional[str] = None) -> ApiResponse:
    return ApiResponse(data=data, message=message)


def error_body(message: str, error: Any = None) -> dict:
    return ErrorResponse(message=message, error=error).model_dump(exclude_none=True)
