"""
Projects: the caller's project list, labels, favorite toggle and label management.

Reads return only what the caller's teams can see and report anything else as
not found. Mutations check team membership, apply the write and commit; their
failures raise MutationFailed subclasses so that clients roll back their
optimistic state.
"""

from __future__ import annotations

import re
import uuid

import structlog
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import (
    Conflict,
    EntityNotFound,
    InvalidInput,
    MutationFailed,
    NotFound,
    PermissionDenied,
    QueryFailed,
)
from app.models.issue import Issue
from app.models.project import Label, Project, UserFavoriteProject
from app.services.teams import get_team_ids, is_team_member
from trackline_shared.schemas.common import MutationResult
from trackline_shared.schemas.projects import (
    LABEL_COLOR_PATTERN,
    LABEL_NAME_MAX,
    LabelCreate,
    LabelRead,
    ProjectSummary,
)
from trackline_shared.schemas.users import Identity

log = structlog.get_logger()

_COLOR_RE = re.compile(LABEL_COLOR_PATTERN)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_project_or_404(session: AsyncSession, project_id: uuid.UUID) -> Project:
    project = await session.get(Project, project_id)
    if not project or project.deleted_at is not None:
        raise EntityNotFound("Project not found")
    return project


async def _require_member(session: AsyncSession, identity: Identity, team_id: uuid.UUID) -> None:
    if not await is_team_member(session, identity.id, team_id):
        raise PermissionDenied("You are not a member of this team")


def validate_label(label_in: LabelCreate) -> None:
    if not label_in.name or len(label_in.name) > LABEL_NAME_MAX:
        raise InvalidInput(f"Label name must be between 1 and {LABEL_NAME_MAX} characters")
    if not label_in.color or not _COLOR_RE.match(label_in.color):
        raise InvalidInput("Invalid color format. Use hex format (#RRGGBB)")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_projects(session: AsyncSession, identity: Identity) -> list[ProjectSummary]:
    """Non-archived projects of the caller's teams, most recently updated first."""
    try:
        team_ids = await get_team_ids(session, identity.id)
        result = await session.execute(
            select(Project)
            .where(
                Project.team_id.in_(team_ids),
                Project.deleted_at.is_(None),
                Project.is_archived == False,  # noqa: E712
            )
            .order_by(Project.updated_at.desc())
        )
        projects = result.scalars().all()

        counts = await session.execute(
            select(Issue.project_id, func.count(Issue.id))
            .where(
                Issue.project_id.in_([p.id for p in projects]),
                Issue.deleted_at.is_(None),
            )
            .group_by(Issue.project_id)
        )
        issue_counts = {project_id: count for project_id, count in counts.all()}

        favorites = await session.execute(
            select(UserFavoriteProject.project_id).where(
                UserFavoriteProject.user_id == identity.id
            )
        )
        favorite_ids = set(favorites.scalars().all())
    except SQLAlchemyError as exc:
        log.error("query.projects_failed", user_id=str(identity.id), error=str(exc))
        raise QueryFailed("Failed to load projects") from exc

    return [
        ProjectSummary(
            id=p.id,
            name=p.name,
            description=p.description,
            team_id=p.team_id,
            is_archived=p.is_archived,
            is_favorite=p.id in favorite_ids,
            issue_count=issue_counts.get(p.id, 0),
        )
        for p in projects
    ]


async def list_labels(
    session: AsyncSession, identity: Identity, project_id: uuid.UUID
) -> list[LabelRead]:
    """Labels of a visible project, by name."""
    try:
        project = await session.get(Project, project_id)
        if (
            not project
            or project.deleted_at is not None
            or not await is_team_member(session, identity.id, project.team_id)
        ):
            raise NotFound("Project not found")
        result = await session.execute(
            select(Label).where(Label.project_id == project_id).order_by(Label.name.asc())
        )
        labels = result.scalars().all()
    except SQLAlchemyError as exc:
        log.error("query.labels_failed", project_id=str(project_id), error=str(exc))
        raise QueryFailed("Failed to load labels") from exc

    return [LabelRead.model_validate(label) for label in labels]


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


async def toggle_favorite(
    session: AsyncSession, identity: Identity, project_id: uuid.UUID
) -> MutationResult:
    """Favorite the project if it is not yet a favorite, otherwise unfavorite it."""
    project = await get_project_or_404(session, project_id)
    await _require_member(session, identity, project.team_id)

    try:
        result = await session.execute(
            select(UserFavoriteProject).where(
                UserFavoriteProject.user_id == identity.id,
                UserFavoriteProject.project_id == project_id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            await session.delete(existing)
            is_favorite = False
        else:
            session.add(UserFavoriteProject(user_id=identity.id, project_id=project_id))
            is_favorite = True
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("mutation.favorite_failed", project_id=str(project_id), error=str(exc))
        raise MutationFailed("Failed to toggle favorite") from exc

    log.info(
        "mutation.favorite_toggled",
        project_id=str(project_id),
        user_id=str(identity.id),
        is_favorite=is_favorite,
    )
    return MutationResult(success=True, data={"isFavorite": is_favorite})


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


async def create_label(
    session: AsyncSession,
    identity: Identity,
    project_id: uuid.UUID,
    label_in: LabelCreate,
) -> MutationResult:
    validate_label(label_in)
    project = await get_project_or_404(session, project_id)
    await _require_member(session, identity, project.team_id)

    result = await session.execute(
        select(Label).where(Label.project_id == project_id, Label.name == label_in.name)
    )
    if result.scalar_one_or_none():
        raise Conflict("A label with this name already exists")

    label = Label(project_id=project_id, name=label_in.name, color=label_in.color)
    try:
        session.add(label)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("mutation.label_create_failed", project_id=str(project_id), error=str(exc))
        raise MutationFailed("Failed to create label") from exc

    log.info("mutation.label_created", project_id=str(project_id), label_id=str(label.id))
    return MutationResult(success=True, data={"labelId": str(label.id)})


async def delete_label(
    session: AsyncSession, identity: Identity, label_id: uuid.UUID
) -> MutationResult:
    label = await session.get(Label, label_id)
    if not label:
        raise EntityNotFound("Label not found")
    project = await get_project_or_404(session, label.project_id)
    await _require_member(session, identity, project.team_id)

    try:
        await session.delete(label)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("mutation.label_delete_failed", label_id=str(label_id), error=str(exc))
        raise MutationFailed("Failed to delete label") from exc

    log.info("mutation.label_deleted", label_id=str(label_id))
    return MutationResult(success=True)
