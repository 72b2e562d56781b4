from typing import List, Optional
from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from .common import IssuePriority, IssueStatus

ISSUE_TITLE_MAX = 200
ISSUE_DESCRIPTION_MAX = 5000
COMMENT_CONTENT_MAX = 10000


class IssueUpdate(BaseModel):
    """Fields an issue edit may replace. Unset fields are left alone."""

    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[IssuePriority] = None


class IssueStatusChange(BaseModel):
    status: IssueStatus


class CommentCreate(BaseModel):
    content: str


class CommentUpdate(BaseModel):
    content: str


class CommentAuthor(BaseModel):
    id: UUID
    name: str
    image: Optional[str] = None


class CommentRead(BaseModel):
    id: UUID
    content: str
    author: CommentAuthor
    created_at: datetime
    updated_at: datetime


class IssueDetail(BaseModel):
    """An issue with its comment thread, as edited on the issue page."""

    id: UUID
    project_id: UUID
    title: str
    description: Optional[str] = None
    status: IssueStatus = IssueStatus.BACKLOG
    priority: IssuePriority = IssuePriority.MEDIUM
    comments: List[CommentRead] = Field(default_factory=list)
