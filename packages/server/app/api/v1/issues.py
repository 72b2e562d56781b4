"""
Issues: the issue page, edits, status changes and comments.

GET    /api/v1/issues/{issueId}            Issue with its comments
PATCH  /api/v1/issues/{issueId}            Edit title/description/priority
POST   /api/v1/issues/{issueId}/status     Change status
POST   /api/v1/issues/{issueId}/comments   Add a comment
PATCH  /api/v1/comments/{commentId}        Edit own comment
DELETE /api/v1/comments/{commentId}        Soft-delete own comment
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_identity
from app.core.database import get_session
from app.services import issues as issue_service
from trackline_shared.schemas.common import ErrorResponse, MutationResult
from trackline_shared.schemas.issues import (
    CommentCreate,
    CommentUpdate,
    IssueDetail,
    IssueStatusChange,
    IssueUpdate,
)
from trackline_shared.schemas.users import Identity

router = APIRouter()


@router.get(
    "/issues/{issueId}",
    response_model=IssueDetail,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def get_issue(
    issueId: uuid.UUID,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await issue_service.get_issue_detail(session, identity, issueId)


@router.patch("/issues/{issueId}", response_model=MutationResult, response_model_exclude_none=True)
async def update_issue(
    issueId: uuid.UUID,
    body: IssueUpdate,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await issue_service.update_issue(session, identity, issueId, body)


@router.post("/issues/{issueId}/status", response_model=MutationResult, response_model_exclude_none=True)
async def change_status(
    issueId: uuid.UUID,
    body: IssueStatusChange,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await issue_service.change_status(session, identity, issueId, body)


@router.post("/issues/{issueId}/comments", response_model=MutationResult, response_model_exclude_none=True, status_code=201)
async def add_comment(
    issueId: uuid.UUID,
    body: CommentCreate,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await issue_service.add_comment(session, identity, issueId, body.content)


@router.patch("/comments/{commentId}", response_model=MutationResult, response_model_exclude_none=True)
async def update_comment(
    commentId: uuid.UUID,
    body: CommentUpdate,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await issue_service.update_comment(session, identity, commentId, body.content)


@router.delete("/comments/{commentId}", response_model=MutationResult, response_model_exclude_none=True)
async def delete_comment(
    commentId: uuid.UUID,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await issue_service.delete_comment(session, identity, commentId)
