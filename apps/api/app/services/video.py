"""Video room orchestration on top of Twilio Programmable Video.

Every operation returns a ``ResponseEnvelope`` and never raises: provider,
token and persistence failures are logged in full here and reported to the
caller with a generic message only.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.base.exceptions import TwilioException
from twilio.jwt.access_token import AccessToken
from twilio.jwt.access_token.grants import VideoGrant
from twilio.rest import Client

from ..core.config import settings
from ..core.security import InvalidBearerTokenError, decode_display_name
from ..repositories import video_sessions as video_sessions_repo
from ..schemas.video import CompositionResult, ResponseEnvelope, RoomCreationResult, RoomDetails
from .twilio_client import ProviderNotConfiguredError, get_twilio_client

logger = logging.getLogger(__name__)

ROOM_IN_PROGRESS = "in-progress"
ROOM_COMPLETED = "completed"
PARTICIPANT_CONNECTED = "connected"
ROOM_TYPE_GROUP = "group"

ROOM_NAME_SEPARATOR = "__"
ROOM_NAME_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

COMPOSITION_FORMAT = "mp4"
COMPOSITION_LAYOUT = {"grid": {"video_sources": ["*"]}}

MSG_IDENTITY_FAILED = "Unable to resolve user identity"


def _envelope(status_code: int, message: str, data: Any = None) -> ResponseEnvelope:
    return ResponseEnvelope(status_code=status_code, message=message, data=data)


def _internal_error(message: str) -> ResponseEnvelope:
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


async def _call_provider(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    """Run a blocking Twilio SDK call off the event loop."""

    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


def build_room_name(user_id: str, now: datetime) -> str:
    """Compose a unique room name from the owner and a second-precision timestamp."""

    return f"{user_id}{ROOM_NAME_SEPARATOR}{now.strftime(ROOM_NAME_TIMESTAMP_FORMAT)}"


def _sign_access_token(identity: str, room_name: str | None) -> str:
    if not settings.twilio_configured:
        raise ProviderNotConfiguredError("Twilio credentials are not configured")

    token = AccessToken(
        settings.twilio_account_sid,
        settings.twilio_api_key,
        settings.twilio_api_secret,
        identity=identity,
        ttl=settings.twilio_token_ttl,
    )
    token.add_grant(VideoGrant(room=room_name or None))
    jwt_value = token.to_jwt()
    if isinstance(jwt_value, bytes):
        return jwt_value.decode("utf-8")
    return jwt_value


async def issue_token(
    identity: str | None,
    room_name: str | None,
    *,
    bearer_token: str | None,
) -> ResponseEnvelope:
    """Return a Twilio access token that lets ``identity`` join ``room_name``."""

    try:
        resolved_identity = identity or decode_display_name(bearer_token)
    except InvalidBearerTokenError:
        logger.exception("Could not derive token identity from bearer token")
        return _internal_error(MSG_IDENTITY_FAILED)

    try:
        token = _sign_access_token(resolved_identity, room_name)
    except Exception:  # noqa: BLE001 - reported through the envelope
        logger.exception("Failed to sign access token for %s (room=%s)", resolved_identity, room_name)
        return _internal_error("Unable to issue access token")

    return _envelope(status.HTTP_201_CREATED, "Token issued", token)


async def create_room(
    user_id: str | None,
    *,
    bearer_token: str | None,
    session: AsyncSession,
    client: Client | None = None,
    now: datetime | None = None,
) -> ResponseEnvelope:
    """Create a group room for the user and record it."""

    if not user_id:
        return _envelope(status.HTTP_400_BAD_REQUEST, "userId is required")

    try:
        display_name = decode_display_name(bearer_token)
    except InvalidBearerTokenError:
        logger.exception("Could not derive display name for room owner %s", user_id)
        return _internal_error(MSG_IDENTITY_FAILED)

    room_name = build_room_name(user_id, now or datetime.now(timezone.utc))

    try:
        provider = client or get_twilio_client()
        room = await _call_provider(
            provider.video.v1.rooms.create,
            unique_name=room_name,
            type=ROOM_TYPE_GROUP,
            record_participants_on_connect=False,
        )
    except TwilioException:
        logger.exception("Twilio rejected room creation for %s (%s)", room_name, display_name)
        return _internal_error("Unable to create room")
    except Exception:  # noqa: BLE001 - reported through the envelope
        logger.exception("Room creation failed for %s (%s)", room_name, display_name)
        return _internal_error("Unable to create room")

    result = RoomCreationResult(room_name=room.unique_name or room_name, room_sid=room.sid, user_id=user_id)

    try:
        async with session.begin():
            await video_sessions_repo.insert_video_session(
                session,
                room_name=result.room_name,
                room_sid=result.room_sid,
                user_id=result.user_id,
            )
    except Exception:  # noqa: BLE001 - reported through the envelope
        logger.exception("Could not record room %s (%s); completing it at Twilio", result.room_name, result.room_sid)
        await _discard_room(provider, result.room_sid)
        return _internal_error("Unable to create room")

    logger.info("Room %s (%s) created for %s", result.room_name, result.room_sid, display_name)
    return _envelope(status.HTTP_201_CREATED, "Room created", result)


async def _discard_room(provider: Client, room_sid: str) -> None:
    """Complete a room that has no session record so it does not linger at Twilio."""

    try:
        await _call_provider(provider.video.v1.rooms(room_sid).update, status=ROOM_COMPLETED)
    except Exception:  # noqa: BLE001 - cleanup failure is logged, the caller already gets an error
        logger.exception("Failed to complete unrecorded room %s", room_sid)


async def _count_connected(provider: Client, room_sid: str) -> int:
    participants = await _call_provider(
        provider.video.v1.rooms(room_sid).participants.list,
        status=PARTICIPANT_CONNECTED,
    )
    return len(participants)


async def get_all_rooms(*, client: Client | None = None) -> ResponseEnvelope:
    """List in-progress rooms with their connected participant counts."""

    try:
        provider = client or get_twilio_client()
        rooms = await _call_provider(
            provider.video.v1.rooms.list,
            status=ROOM_IN_PROGRESS,
            limit=settings.twilio_room_list_limit,
        )
        counts = await asyncio.gather(*(_count_connected(provider, room.sid) for room in rooms))
        details = [
            RoomDetails(
                room_sid=room.sid,
                room_name=room.unique_name,
                participant_count=count,
                max_participants=room.max_participants or 0,
            )
            for room, count in zip(rooms, counts)
        ]
    except Exception:  # noqa: BLE001 - reported through the envelope
        logger.exception("Failed to list in-progress rooms")
        return _internal_error("Unable to retrieve rooms")

    return _envelope(status.HTTP_200_OK, "Rooms retrieved", details)


async def close_room(room_sid: str | None, *, client: Client | None = None) -> ResponseEnvelope:
    """Move an in-progress room to completed."""

    if not room_sid:
        return _envelope(status.HTTP_400_BAD_REQUEST, "roomSid is required")

    try:
        provider = client or get_twilio_client()
        room_context = provider.video.v1.rooms(room_sid)
        room = await _call_provider(room_context.fetch)
        if room.status != ROOM_IN_PROGRESS:
            logger.info("Refusing to close room %s with status %s", room_sid, room.status)
            return _internal_error("Room cannot be canceled because it is not in progress")

        await _call_provider(room_context.update, status=ROOM_COMPLETED)
    except Exception:  # noqa: BLE001 - reported through the envelope
        logger.exception("Failed to close room %s", room_sid)
        return _internal_error("Unable to close room")

    logger.info("Room %s closed", room_sid)
    return _envelope(status.HTTP_200_OK, "Room closed")


async def complete_room(room_name: str | None, *, client: Client | None = None) -> ResponseEnvelope:
    """Complete a room by unique name and request an MP4 grid composition of it.

    A room that is already completed but has no composition yet, for example
    after a failed composition request, gets its composition on retry.
    """

    if not room_name:
        return _envelope(status.HTTP_400_BAD_REQUEST, "roomName is required")

    try:
        provider = client or get_twilio_client()
        candidates = await _call_provider(
            provider.video.v1.rooms.list,
            unique_name=room_name,
            limit=settings.twilio_room_list_limit,
        )
        room = next((candidate for candidate in candidates if candidate.unique_name == room_name), None)
        if room is None:
            return _envelope(status.HTTP_404_NOT_FOUND, "Room not found")
        if room.status == ROOM_COMPLETED:
            existing = await _call_provider(provider.video.v1.compositions.list, room_sid=room.sid, limit=1)
            if existing:
                return _envelope(status.HTTP_409_CONFLICT, "Room already completed")
            logger.info("Room %s is completed without a composition; requesting one", room.sid)
        else:
            await _call_provider(provider.video.v1.rooms(room.sid).update, status=ROOM_COMPLETED)

        composition_params: dict[str, Any] = {
            "room_sid": room.sid,
            "audio_sources": ["*"],
            "video_layout": COMPOSITION_LAYOUT,
            "format": COMPOSITION_FORMAT,
        }
        if settings.twilio_composition_callback_url:
            composition_params["status_callback"] = settings.twilio_composition_callback_url
        composition = await _call_provider(provider.video.v1.compositions.create, **composition_params)
    except Exception:  # noqa: BLE001 - reported through the envelope
        logger.exception("Failed to complete room %s", room_name)
        return _internal_error("Unable to complete room")

    logger.info("Composition %s requested for room %s", composition.sid, room.sid)
    result = CompositionResult(
        composition_sid=composition.sid,
        room_sid=room.sid,
        room_name=room_name,
        status=composition.status,
    )
    return _envelope(status.HTTP_200_OK, "Room completed and composition requested", result)
