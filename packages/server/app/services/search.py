"""
Search service: authorization-scoped search across issues, projects and teams.

- Only entities of teams the identity belongs to are visible
  (issues through their project, projects directly, teams by id)
- Soft-deleted rows never match
- Case-insensitive substring match; LIKE wildcards in the query match literally
- Each kind is bounded and ordered by most recently updated
- Results are concatenated issues, then projects, then teams
"""

from __future__ import annotations

from typing import Optional, Sequence
import uuid

import structlog
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import SearchFailed, Unauthenticated
from app.models.issue import Issue
from app.models.project import Project
from app.models.team import Team
from app.services.teams import get_team_ids
from trackline_shared.schemas.search import (
    IssueSearchResult,
    ProjectSearchResult,
    SearchResultBase,
    TeamSearchResult,
)
from trackline_shared.schemas.users import Identity

log = structlog.get_logger()

ISSUE_LIMIT = 10
PROJECT_LIMIT = 5
TEAM_LIMIT = 5


def normalize_query(raw_query: Optional[str]) -> str:
    """Trimmed search term; empty string means "do not search"."""
    if raw_query is None:
        return ""
    return raw_query.strip()


# ---------------------------------------------------------------------------
# Per-kind lookups
# ---------------------------------------------------------------------------


async def _search_issues(
    session: AsyncSession, term: str, team_ids: frozenset[uuid.UUID]
) -> Sequence[Issue]:
    stmt = (
        select(Issue)
        .join(Project, Project.id == Issue.project_id)
        .where(
            Issue.deleted_at.is_(None),
            Project.deleted_at.is_(None),
            Project.team_id.in_(team_ids),
            or_(
                Issue.title.icontains(term, autoescape=True),
                Issue.description.icontains(term, autoescape=True),
            ),
        )
        .order_by(Issue.updated_at.desc())
        .limit(ISSUE_LIMIT)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


async def _search_projects(
    session: AsyncSession, term: str, team_ids: frozenset[uuid.UUID]
) -> Sequence[Project]:
    stmt = (
        select(Project)
        .where(
            Project.deleted_at.is_(None),
            Project.team_id.in_(team_ids),
            or_(
                Project.name.icontains(term, autoescape=True),
                Project.description.icontains(term, autoescape=True),
            ),
        )
        .order_by(Project.updated_at.desc())
        .limit(PROJECT_LIMIT)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


async def _search_teams(
    session: AsyncSession, term: str, team_ids: frozenset[uuid.UUID]
) -> Sequence[Team]:
    stmt = (
        select(Team)
        .where(
            Team.deleted_at.is_(None),
            Team.id.in_(team_ids),
            Team.name.icontains(term, autoescape=True),
        )
        .order_by(Team.updated_at.desc())
        .limit(TEAM_LIMIT)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


async def search(
    session: AsyncSession,
    identity: Optional[Identity],
    raw_query: Optional[str],
) -> list[SearchResultBase]:
    """Search everything the identity may see.

    Raises Unauthenticated before touching storage when there is no identity,
    and SearchFailed if any lookup fails. No partial results are returned.
    """
    if identity is None:
        raise Unauthenticated()

    term = normalize_query(raw_query)
    if not term:
        return []

    log.info("search.query", query=term, user_id=str(identity.id))

    try:
        team_ids = await get_team_ids(session, identity.id)
        issues = await _search_issues(session, term, team_ids)
        projects = await _search_projects(session, term, team_ids)
        teams = await _search_teams(session, term, team_ids)
    except SQLAlchemyError as exc:
        log.error("search.failed", query=term, user_id=str(identity.id), error=str(exc))
        raise SearchFailed() from exc

    results: list[SearchResultBase] = []
    results.extend(
        IssueSearchResult(
            id=i.id, title=i.title, project_id=i.project_id, status=i.status
        )
        for i in issues
    )
    results.extend(ProjectSearchResult(id=p.id, title=p.name) for p in projects)
    results.extend(TeamSearchResult(id=t.id, title=t.name) for t in teams)
    return results
