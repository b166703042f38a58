"""Common Pydantic schemas."""

from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="Dotted path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class ResourceIdRequest(BaseModel):
    """Request schema addressing a single resource by ID."""

    id: str = Field(..., min_length=1, description="Resource ID")


def stringify_id(value: Any) -> Any:
    """Coerce database UUIDs to their string form for response schemas."""
    if isinstance(value, UUID):
        return str(value)
    return value
