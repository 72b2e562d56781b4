"""
Projects: the caller's project list, labels and favorites.

GET    /api/v1/projects                       Projects of the caller's teams
GET    /api/v1/projects/{projectId}/labels    Labels of a project
POST   /api/v1/projects/{projectId}/favorite  Toggle favorite for the caller
POST   /api/v1/projects/{projectId}/labels    Create a label
DELETE /api/v1/labels/{labelId}               Delete a label
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import require_identity
from app.core.database import get_session
from app.services import projects as project_service
from trackline_shared.schemas.common import ErrorResponse, MutationResult
from trackline_shared.schemas.projects import LabelCreate, LabelRead, ProjectSummary
from trackline_shared.schemas.users import Identity

router = APIRouter()


@router.get("/projects", response_model=List[ProjectSummary], responses={401: {"model": ErrorResponse}})
async def list_projects(
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.list_projects(session, identity)


@router.get(
    "/projects/{projectId}/labels",
    response_model=List[LabelRead],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def list_labels(
    projectId: uuid.UUID,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.list_labels(session, identity, projectId)


@router.post("/projects/{projectId}/favorite", response_model=MutationResult, response_model_exclude_none=True)
async def toggle_favorite(
    projectId: uuid.UUID,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.toggle_favorite(session, identity, projectId)


@router.post("/projects/{projectId}/labels", response_model=MutationResult, response_model_exclude_none=True, status_code=201)
async def create_label(
    projectId: uuid.UUID,
    body: LabelCreate,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.create_label(session, identity, projectId, body)


@router.delete("/labels/{labelId}", response_model=MutationResult, response_model_exclude_none=True)
async def delete_label(
    labelId: uuid.UUID,
    identity: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await project_service.delete_label(session, identity, labelId)
