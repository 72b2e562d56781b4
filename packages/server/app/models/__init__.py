# SQLModel definitions, imported here so Alembic sees the full metadata.
from .base import UUIDMixin, TimestampMixin, SoftDeleteMixin  # noqa: F401
from .user import User  # noqa: F401
from .team import Team, TeamMember  # noqa: F401
from .project import Project, UserFavoriteProject, Label  # noqa: F401
from .issue import Issue, Comment, IssueChange  # noqa: F401
