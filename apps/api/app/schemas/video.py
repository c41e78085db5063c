"""Data contracts for the video room endpoints."""
from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ResponseEnvelope(BaseModel, Generic[T]):
    """Uniform wrapper returned by every video operation."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode", description="HTTP status code of the result")
    message: str = Field(..., description="Human readable outcome")
    data: T | None = None


class RoomCreationResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_name: str = Field(..., alias="roomName")
    room_sid: str = Field(..., alias="roomSid")
    user_id: str = Field(..., alias="userId")


class RoomDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_sid: str = Field(..., alias="roomSid")
    room_name: str = Field(..., alias="roomName")
    participant_count: int = Field(..., ge=0, alias="participantCount")
    max_participants: int = Field(..., ge=0, alias="maxParticipants")


class CompositionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    composition_sid: str = Field(..., alias="compositionSid")
    room_sid: str = Field(..., alias="roomSid")
    room_name: str = Field(..., alias="roomName")
    status: str | None = Field(default=None, description="Provider composition status")
