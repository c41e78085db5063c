"""Video session repository helpers."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.video_session import VideoSession


async def insert_video_session(
    session: AsyncSession,
    *,
    room_name: str,
    room_sid: str,
    user_id: str,
) -> VideoSession:
    """Record a newly created room for the owning user."""

    record = VideoSession(
        id=str(uuid4()),
        room_name=room_name,
        room_sid=room_sid,
        user_id=user_id,
    )
    session.add(record)
    await session.flush()
    return record
