"""
API Dependencies

Acting-user and common query parameter dependencies.
"""
from typing import Optional

from fastapi import Header, Query

from app.schemas.common import PaginationParams

DEFAULT_ACTOR = "system"


def get_current_actor(
    x_actor: Optional[str] = Header(
        default=None,
        description="Acting user, set by the authenticating gateway",
    )
) -> str:
    """
    Dependency for the acting user recorded on ledger entries and stamps.

    Authentication happens upstream; this only reads the identity it forwards.
    """
    actor = (x_actor or "").strip()
    return actor[:100] or DEFAULT_ACTOR


def get_pagination_params(
    offset: int = Query(
        default=0,
        ge=0,
        description="Number of records to skip (for pagination)"
    ),
    limit: int = Query(
        default=50,
        ge=1,
        le=500,
        description="Maximum number of records to return (1-500)"
    )
) -> PaginationParams:
    """Dependency for standardized pagination parameters."""
    return PaginationParams(offset=offset, limit=limit)
