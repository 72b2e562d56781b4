"""
Issue service layer: the issue page read, issue edits, status changes and comments.

Handles:
- Membership checks through issue -> project -> team
- Author-only edits and deletes of comments
- The issue change log (one IssueChange row per changed field)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import (
    EntityNotFound,
    InvalidInput,
    MutationFailed,
    NotFound,
    PermissionDenied,
    QueryFailed,
)
from app.models.issue import Comment, Issue, IssueChange
from app.models.project import Project
from app.models.user import User
from app.services.teams import is_team_member
from trackline_shared.schemas.common import MutationResult
from trackline_shared.schemas.issues import (
    COMMENT_CONTENT_MAX,
    ISSUE_DESCRIPTION_MAX,
    ISSUE_TITLE_MAX,
    CommentAuthor,
    CommentRead,
    IssueDetail,
    IssueStatusChange,
    IssueUpdate,
)
from trackline_shared.schemas.users import Identity

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_issue_or_404(session: AsyncSession, issue_id: uuid.UUID) -> Issue:
    issue = await session.get(Issue, issue_id)
    if not issue or issue.deleted_at is not None:
        raise EntityNotFound("Issue not found")
    return issue


async def get_comment_or_404(session: AsyncSession, comment_id: uuid.UUID) -> Comment:
    comment = await session.get(Comment, comment_id)
    if not comment or comment.deleted_at is not None:
        raise EntityNotFound("Comment not found")
    return comment


async def _require_issue_access(
    session: AsyncSession, identity: Identity, issue: Issue
) -> None:
    project = await session.get(Project, issue.project_id)
    if not project or not await is_team_member(session, identity.id, project.team_id):
        raise PermissionDenied("You don't have access to this issue")


def log_issue_change(
    session: AsyncSession,
    issue_id: uuid.UUID,
    user_id: uuid.UUID,
    field: str,
    old_value: Optional[str],
    new_value: Optional[str],
) -> None:
    session.add(
        IssueChange(
            issue_id=issue_id,
            user_id=user_id,
            field=field,
            old_value=old_value,
            new_value=new_value,
        )
    )


def _validate_content(content: Optional[str]) -> None:
    if not content or len(content) > COMMENT_CONTENT_MAX:
        raise InvalidInput(
            f"Comment must be between 1 and {COMMENT_CONTENT_MAX} characters"
        )


async def _commit(session: AsyncSession, action: str, **context) -> None:
    """Commit, turning storage errors into a generic "Failed to <action>"."""
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("mutation.commit_failed", action=action, error=str(exc), **context)
        raise MutationFailed(f"Failed to {action}") from exc


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------


async def get_issue_detail(
    session: AsyncSession, identity: Identity, issue_id: uuid.UUID
) -> IssueDetail:
    """The issue with its live comments, oldest first.

    Missing, deleted and foreign issues are all reported as not found.
    """
    try:
        issue = await session.get(Issue, issue_id)
        project = None
        if issue and issue.deleted_at is None:
            project = await session.get(Project, issue.project_id)
        if (
            not project
            or project.deleted_at is not None
            or not await is_team_member(session, identity.id, project.team_id)
        ):
            raise NotFound("Issue not found")

        result = await session.execute(
            select(Comment, User)
            .join(User, User.id == Comment.author_id)
            .where(Comment.issue_id == issue_id, Comment.deleted_at.is_(None))
            .order_by(Comment.created_at.asc())
        )
        rows = result.all()
    except SQLAlchemyError as exc:
        log.error("query.issue_failed", issue_id=str(issue_id), error=str(exc))
        raise QueryFailed("Failed to load issue") from exc

    return IssueDetail(
        id=issue.id,
        project_id=issue.project_id,
        title=issue.title,
        description=issue.description,
        status=issue.status,
        priority=issue.priority,
        comments=[
            CommentRead(
                id=comment.id,
                content=comment.content,
                author=CommentAuthor(id=author.id, name=author.name, image=author.image),
                created_at=comment.created_at,
                updated_at=comment.updated_at,
            )
            for comment, author in rows
        ],
    )


async def update_issue(
    session: AsyncSession,
    identity: Identity,
    issue_id: uuid.UUID,
    issue_in: IssueUpdate,
) -> MutationResult:
    data = issue_in.model_dump(exclude_unset=True, mode="json")

    if "title" in data:
        title = data["title"]
        if not title or len(title) > ISSUE_TITLE_MAX:
            raise InvalidInput(
                f"Issue title must be between 1 and {ISSUE_TITLE_MAX} characters"
            )
    if "priority" in data and data["priority"] is None:
        raise InvalidInput("Priority cannot be empty")
    if data.get("description") and len(data["description"]) > ISSUE_DESCRIPTION_MAX:
        raise InvalidInput(
            f"Description must be less than {ISSUE_DESCRIPTION_MAX} characters"
        )

    issue = await get_issue_or_404(session, issue_id)
    await _require_issue_access(session, identity, issue)

    changed = []
    for key, value in data.items():
        old = getattr(issue, key)
        if old == value:
            continue
        setattr(issue, key, value)
        log_issue_change(session, issue.id, identity.id, key, old, value)
        changed.append(key)

    session.add(issue)
    await _commit(session, "update issue", issue_id=str(issue_id))

    log.info("mutation.issue_updated", issue_id=str(issue_id), fields=changed)
    return MutationResult(success=True, data={"issueId": str(issue.id)})


async def change_status(
    session: AsyncSession,
    identity: Identity,
    issue_id: uuid.UUID,
    body: IssueStatusChange,
) -> MutationResult:
    issue = await get_issue_or_404(session, issue_id)
    await _require_issue_access(session, identity, issue)

    old_status = issue.status
    issue.status = body.status.value
    session.add(issue)
    log_issue_change(session, issue.id, identity.id, "status", old_status, issue.status)
    await _commit(session, "change status", issue_id=str(issue_id))

    log.info(
        "mutation.issue_status_changed",
        issue_id=str(issue_id),
        from_status=old_status,
        to_status=issue.status,
    )
    return MutationResult(success=True, data={"issueId": str(issue.id)})


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def add_comment(
    session: AsyncSession,
    identity: Identity,
    issue_id: uuid.UUID,
    content: str,
) -> MutationResult:
    _validate_content(content)
    issue = await get_issue_or_404(session, issue_id)
    await _require_issue_access(session, identity, issue)

    comment = Comment(issue_id=issue.id, author_id=identity.id, content=content)
    session.add(comment)
    log_issue_change(session, issue.id, identity.id, "comment_added", None, str(comment.id))
    await _commit(session, "add comment", issue_id=str(issue_id))

    log.info("mutation.comment_added", issue_id=str(issue_id), comment_id=str(comment.id))
    return MutationResult(success=True, data={"commentId": str(comment.id)})


async def update_comment(
    session: AsyncSession,
    identity: Identity,
    comment_id: uuid.UUID,
    content: str,
) -> MutationResult:
    _validate_content(content)
    comment = await get_comment_or_404(session, comment_id)
    if comment.author_id != identity.id:
        raise PermissionDenied("You can only edit your own comments")

    comment.content = content
    session.add(comment)
    await _commit(session, "update comment", comment_id=str(comment_id))
    return MutationResult(success=True)


async def delete_comment(
    session: AsyncSession,
    identity: Identity,
    comment_id: uuid.UUID,
) -> MutationResult:
    comment = await get_comment_or_404(session, comment_id)
    if comment.author_id != identity.id:
        raise PermissionDenied("You can only delete your own comments")

    comment.deleted_at = datetime.now(timezone.utc)
    session.add(comment)
    await _commit(session, "delete comment", comment_id=str(comment_id))
    return MutationResult(success=True)
