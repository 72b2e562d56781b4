from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel

class IssueStatus(str, Enum):
    BACKLOG = "BACKLOG"
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"
    CANCELLED = "CANCELLED"

class IssuePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

class MutationResult(BaseModel):
    """Outcome of a durable mutation. ``success: false`` is a failure regardless of status code."""
    success: bool
    error: Optional[str] = None
    data: Optional[dict[str, Any]] = None

class ErrorResponse(BaseModel):
    error: str
