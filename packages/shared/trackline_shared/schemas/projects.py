from typing import Optional
from pydantic import BaseModel, Field
from uuid import UUID

LABEL_NAME_MAX = 50
LABEL_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


class ProjectSummary(BaseModel):
    """A project as shown in a project list."""

    id: UUID
    name: str
    description: Optional[str] = None
    team_id: UUID
    is_archived: bool = False
    is_favorite: bool = False
    issue_count: int = 0


class LabelCreate(BaseModel):
    name: str
    color: str


class LabelRead(BaseModel):
    id: UUID
    project_id: UUID
    name: str
    color: str = Field(pattern=LABEL_COLOR_PATTERN)

    model_config = {"from_attributes": True}
