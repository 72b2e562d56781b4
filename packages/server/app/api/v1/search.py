"""
Search endpoint.

GET /api/v1/search?q=<text>
- 200: JSON array of results (issues, then projects, then teams)
- 401: {"error": "Unauthorized"} without a valid session
- 500: {"error": "Failed to search"} on storage failure
Empty or whitespace-only ``q`` returns [] without querying storage.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_optional_identity
from app.core.database import get_session
from app.services import search as search_service
from trackline_shared.schemas.common import ErrorResponse
from trackline_shared.schemas.search import SearchResult
from trackline_shared.schemas.users import Identity

router = APIRouter()


@router.get(
    "",
    response_model=List[SearchResult],
    responses={401: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def search_endpoint(
    q: Optional[str] = Query(None, description="Free-text search query"),
    identity: Optional[Identity] = Depends(get_optional_identity),
    session: AsyncSession = Depends(get_session),
):
    """Search issues, projects and teams visible to the caller."""
    return await search_service.search(session, identity, q)
