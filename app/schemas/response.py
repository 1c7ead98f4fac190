"""
app/schemas/response.py

Purpose: Common response envelopes

- ErrorResponse returned by every exception handler
- SuccessResponse wrapping route payloads
- Pagination envelope shared by list endpoints
"""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """
    Standard error response structure.
    """
    error: str
    code: str
    details: Optional[Any] = None


class SuccessResponse(BaseModel, Generic[T]):
    """
    Standard success response structure.
    """
    success: bool = True
    message: str = "OK"
    data: Optional[T] = None


class Page(BaseModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0


class CountResponse(BaseModel):
    """Result of a bulk operation."""
    count: int


class BulkIdsRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1, max_length=500)
