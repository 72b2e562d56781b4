"""
API v1 Router

Search plus the durable mutations consumed by optimistic clients.
"""

from fastapi import APIRouter
from . import issues, projects, search

router = APIRouter()

router.include_router(search.router, prefix="/search", tags=["Search"])
router.include_router(projects.router, tags=["Projects"])
router.include_router(issues.router, tags=["Issues"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/search",
            "/projects",
            "/projects/{projectId}/favorite",
            "/projects/{projectId}/labels",
            "/labels/{labelId}",
            "/issues/{issueId}",
            "/issues/{issueId}/status",
            "/issues/{issueId}/comments",
            "/comments/{commentId}",
        ],
    }
