"""Video room endpoints backed by Twilio."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import get_bearer_token
from ..db.session import get_session
from ..schemas.video import CompositionResult, ResponseEnvelope, RoomCreationResult, RoomDetails
from ..services import video as video_service

router = APIRouter(prefix="/api/twilio", tags=["twilio"])


def _respond(envelope: ResponseEnvelope) -> JSONResponse:
    """Serialize the envelope ourselves so the HTTP status follows ``status_code``."""

    return JSONResponse(
        status_code=envelope.status_code,
        content=envelope.model_dump(mode="json", by_alias=True),
    )


@router.get("/token", responses={201: {"model": ResponseEnvelope[str]}})
async def get_token(
    user_name: str | None = Query(default=None, alias="userName"),
    room_name: str | None = Query(default=None, alias="roomName"),
    bearer_token: str | None = Depends(get_bearer_token),
) -> JSONResponse:
    """Return a signed access token for joining a room."""

    envelope = await video_service.issue_token(user_name, room_name, bearer_token=bearer_token)
    return _respond(envelope)


@router.get("/rooms", responses={200: {"model": ResponseEnvelope[list[RoomDetails]]}})
async def get_rooms() -> JSONResponse:
    """List in-progress rooms with live participant counts."""

    return _respond(await video_service.get_all_rooms())


@router.get("/createrooms", responses={201: {"model": ResponseEnvelope[RoomCreationResult]}})
async def create_room(
    user_id: str | None = Query(default=None, alias="userId"),
    bearer_token: str | None = Depends(get_bearer_token),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    """Create a group room owned by ``user_id``."""

    envelope = await video_service.create_room(user_id, bearer_token=bearer_token, session=session)
    return _respond(envelope)


@router.post("/closeroom", responses={200: {"model": ResponseEnvelope[None]}})
async def close_room(room_sid: str | None = Query(default=None, alias="roomSid")) -> JSONResponse:
    """Complete an in-progress room."""

    return _respond(await video_service.close_room(room_sid))


@router.post("/completeroom", responses={200: {"model": ResponseEnvelope[CompositionResult]}})
async def complete_room(room_name: str | None = Query(default=None, alias="roomName")) -> JSONResponse:
    """Complete a room by name and start its recording composition."""

    return _respond(await video_service.complete_room(room_name))
