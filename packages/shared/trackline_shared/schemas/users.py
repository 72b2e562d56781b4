"""Identity schemas."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Identity(BaseModel):
    """The authenticated principal making a request.

    Core operations only ever read ``id``; the rest is carried for display.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    email: str
    image: Optional[str] = None
