"""Issue, comment and issue change-log models."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import SoftDeleteMixin, TimestampMixin, UUIDMixin


class Issue(UUIDMixin, TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "issues"

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    creator_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    assignee_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    title: str = Field(nullable=False)
    description: Optional[str] = None
    status: str = Field(nullable=False, default="BACKLOG")  # BACKLOG | TODO | IN_PROGRESS | IN_REVIEW | DONE | CANCELLED
    priority: str = Field(nullable=False, default="MEDIUM")  # LOW | MEDIUM | HIGH | URGENT
    position: int = Field(default=0, nullable=False)


class Comment(UUIDMixin, TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "comments"

    issue_id: uuid.UUID = Field(foreign_key="issues.id", nullable=False, index=True)
    author_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    content: str = Field(nullable=False)


class IssueChange(UUIDMixin, TimestampMixin, SQLModel, table=True):
    """Append-only audit trail of issue edits."""

    __tablename__ = "issue_changes"

    issue_id: uuid.UUID = Field(foreign_key="issues.id", nullable=False, index=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    field: str = Field(nullable=False)
    old_value: Optional[str] = None
    new_value: Optional[str] = None
