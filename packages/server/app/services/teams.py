"""
Team membership lookups used as authorization filters.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.models.team import TeamMember


async def get_team_ids(session: AsyncSession, user_id: uuid.UUID) -> frozenset[uuid.UUID]:
    """All team ids the user belongs to, as an immutable set for the request."""
    result = await session.execute(
        select(TeamMember.team_id).where(TeamMember.user_id == user_id)
    )
    return frozenset(row[0] for row in result.all())


async def get_membership(
    session: AsyncSession, user_id: uuid.UUID, team_id: uuid.UUID
) -> Optional[TeamMember]:
    return await session.get(TeamMember, (team_id, user_id))


async def is_team_member(
    session: AsyncSession, user_id: uuid.UUID, team_id: uuid.UUID
) -> bool:
    return await get_membership(session, user_id, team_id) is not None
