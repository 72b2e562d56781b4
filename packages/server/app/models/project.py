"""Project, favorite and label models."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import SoftDeleteMixin, TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "projects"

    team_id: uuid.UUID = Field(foreign_key="teams.id", nullable=False, index=True)
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    name: str = Field(nullable=False)
    description: Optional[str] = None
    is_archived: bool = Field(default=False, nullable=False)


class UserFavoriteProject(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "user_favorite_projects"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "project_id", name="uq_favorite_user_project"),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False)


class Label(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "labels"
    __table_args__ = (
        sa.UniqueConstraint("project_id", "name", name="uq_label_project_name"),
    )

    project_id: uuid.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    name: str = Field(nullable=False)
    color: str = Field(nullable=False)  # #RRGGBB
