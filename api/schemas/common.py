"""Schemas shared by the order and position endpoints."""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class TimestampMixin(BaseModel):
    """Creation and last-change times of a stored record (Unix ms, UTC)."""

    created_at: Optional[int] = Field(None, description="When the record was created (Unix ms)")
    updated_at: Optional[int] = Field(None, description="When the record last changed (Unix ms)")


class PageInfo(BaseModel):
    """Window of a list response."""

    total: int = Field(description="Number of matching records")
    limit: int = Field(description="Page size used for this request")
    offset: int = Field(description="Records skipped before this page")
    has_more: bool = Field(description="Whether records remain after this page")


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str = Field(description="Error kind, e.g. LimitExceeded, Conflict, ValidationError")
    message: str = Field(description="Human-readable error message")
    detail: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = Field(
        None,
        description="Structured fields (month, limit, used, ...) or per-field request errors",
    )
    retryable: bool = Field(default=False, description="Whether the same request may succeed later")
