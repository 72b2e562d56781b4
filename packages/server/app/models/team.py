"""Team and team membership models."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import SoftDeleteMixin, TimestampMixin, UUIDMixin


class Team(UUIDMixin, TimestampMixin, SoftDeleteMixin, SQLModel, table=True):
    __tablename__ = "teams"

    name: str = Field(nullable=False, index=True)
    description: Optional[str] = None


class TeamMember(TimestampMixin, SQLModel, table=True):
    """Authorization relation: a user sees only entities of teams they belong to."""

    __tablename__ = "team_members"

    team_id: uuid.UUID = Field(foreign_key="teams.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True, index=True)
    role: str = Field(nullable=False, default="MEMBER")  # OWNER | ADMIN | MEMBER
