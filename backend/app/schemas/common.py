"""
Common API Response Schemas

Standardized error responses and pagination models shared by all routers.
"""
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Error Response Models
# ============================================================================

class ErrorResponse(BaseModel):
    """
    Standardized error response for all API errors.

    Error Codes:
        - VALIDATION_ERROR: Request validation failed (400)
        - INVALID_STATE: Operation not allowed in the work order's status (400)
        - NOT_FOUND: Resource not found (404)
        - DUPLICATE_ERROR: Duplicate resource (409)
        - CONCURRENCY_ERROR: Stock changed under us, re-fetch and retry (409)
        - CAPACITY_ERROR: Not enough stock for the requested quantity (422)
        - INCOMPLETE_PLANNING: Unallocated materials / unassigned operations (422)
        - DATABASE_ERROR: Database operation failed (500)
        - PERSISTENCE_ERROR: Store rejected a stock write, re-fetch and retry (503)

    Example:
        {
            "error": "CAPACITY_ERROR",
            "message": "Cannot produce 5 units. Maximum producible is 3 units with current stock.",
            "details": {"requested": 5, "max_producible": 3, "shortfall": 2},
            "timestamp": "2026-03-02T10:30:00Z"
        }
    """
    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        None,
        description="Additional error context"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the error occurred (UTC)"
    )


# ============================================================================
# Pagination Models
# ============================================================================

class PaginationParams(BaseModel):
    """
    Standardized pagination parameters for list endpoints.

    Uses offset-based pagination which is simple and predictable.
    """
    offset: int = Field(
        default=0,
        ge=0,
        description="Number of records to skip (for pagination)"
    )
    limit: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Maximum number of records to return (1-500)"
    )

    @field_validator('limit')
    @classmethod
    def validate_limit(cls, v: int) -> int:
        """Ensure limit is within acceptable range."""
        return min(max(v, 1), 500)


class PaginationMeta(BaseModel):
    """Pagination metadata included in list responses."""
    total: int = Field(..., description="Total number of records matching the query")
    offset: int = Field(..., description="Current offset (number of records skipped)")
    limit: int = Field(..., description="Maximum records per page")
    returned: int = Field(..., description="Number of records in this response")


T = TypeVar('T')


class ListResponse(BaseModel, Generic[T]):
    """Standardized list response wrapper with pagination."""
    items: List[T] = Field(..., description="List of items")
    pagination: PaginationMeta = Field(..., description="Pagination metadata")

