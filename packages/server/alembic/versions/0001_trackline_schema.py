"""Trackline schema: users, teams, projects, issues, comments, labels.

Revision ID: 0001_trackline_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_trackline_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

# (table, column) pairs matched by search with ILIKE '%term%'.
TRIGRAM_COLUMNS = [
    ("issues", "title"),
    ("issues", "description"),
    ("projects", "name"),
    ("projects", "description"),
    ("teams", "name"),
]


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def _uuid_pk() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True)


def _deleted_at() -> sa.Column:
    return sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("image", sa.Text(), nullable=True),
        *_timestamps(),
        _deleted_at(),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=True)

    op.create_table(
        "teams",
        _uuid_pk(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        _deleted_at(),
    )
    op.create_index("idx_teams_updated", "teams", [sa.text("updated_at DESC")])

    op.create_table(
        "team_members",
        sa.Column("team_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("teams.id"), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="MEMBER"),
        *_timestamps(),
        sa.CheckConstraint("role IN ('OWNER', 'ADMIN', 'MEMBER')", name="ck_team_members_role"),
    )
    op.create_index("idx_team_members_user", "team_members", ["user_id"])

    op.create_table(
        "projects",
        _uuid_pk(),
        sa.Column("team_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("teams.id"), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        _deleted_at(),
    )
    op.create_index("idx_projects_team", "projects", ["team_id"])
    op.create_index("idx_projects_updated", "projects", [sa.text("updated_at DESC")])

    op.create_table(
        "user_favorite_projects",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "project_id", name="uq_favorite_user_project"),
    )
    op.create_index("idx_favorites_user", "user_favorite_projects", ["user_id"])

    op.create_table(
        "labels",
        _uuid_pk(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("color", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "name", name="uq_label_project_name"),
        sa.CheckConstraint("color ~ '^#[0-9A-Fa-f]{6}$'", name="ck_labels_color"),
    )
    op.create_index("idx_labels_project", "labels", ["project_id"])

    op.create_table(
        "issues",
        _uuid_pk(),
        sa.Column("project_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("creator_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assignee_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="BACKLOG"),
        sa.Column("priority", sa.Text(), nullable=False, server_default="MEDIUM"),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        _deleted_at(),
        sa.CheckConstraint(
            "status IN ('BACKLOG', 'TODO', 'IN_PROGRESS', 'IN_REVIEW', 'DONE', 'CANCELLED')",
            name="ck_issues_status",
        ),
        sa.CheckConstraint(
            "priority IN ('LOW', 'MEDIUM', 'HIGH', 'URGENT')", name="ck_issues_priority"
        ),
    )
    op.create_index("idx_issues_project", "issues", ["project_id"])
    op.create_index("idx_issues_updated", "issues", [sa.text("updated_at DESC")])

    op.create_table(
        "comments",
        _uuid_pk(),
        sa.Column("issue_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("issues.id"), nullable=False),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
        _deleted_at(),
    )
    op.create_index("idx_comments_issue", "comments", ["issue_id", "created_at"])

    op.create_table(
        "issue_changes",
        _uuid_pk(),
        sa.Column("issue_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("issues.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("field", sa.Text(), nullable=False),
        sa.Column("old_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("idx_issue_changes_issue", "issue_changes", ["issue_id", "created_at"])

    # -----------------------------------------------------------------------
    # Trigram indexes for case-insensitive substring search
    # -----------------------------------------------------------------------

    op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
    for table, column in TRIGRAM_COLUMNS:
        op.execute(
            f"CREATE INDEX idx_{table}_{column}_trgm ON {table} "
            f"USING GIN (lower({column}) gin_trgm_ops)"
        )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    for table, column in TRIGRAM_COLUMNS:
        op.execute(f"DROP INDEX IF EXISTS idx_{table}_{column}_trgm")

    op.drop_table("issue_changes")
    op.drop_table("comments")
    op.drop_table("issues")
    op.drop_table("labels")
    op.drop_table("user_favorite_projects")
    op.drop_table("projects")
    op.drop_table("team_members")
    op.drop_table("teams")
    op.drop_table("users")
