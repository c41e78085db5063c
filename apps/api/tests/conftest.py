"""Shared stubs for the Twilio client and the async database session."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.core.config import settings

TEST_SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256"


def make_room(
    sid: str,
    unique_name: str,
    status: str = "in-progress",
    max_participants: int | None = 50,
) -> SimpleNamespace:
    return SimpleNamespace(sid=sid, unique_name=unique_name, status=status, max_participants=max_participants)


class FakeParticipants:
    def __init__(self, rooms: "FakeRooms", room_sid: str) -> None:
        self._rooms = rooms
        self._room_sid = room_sid

    def list(self, **kwargs):
        self._rooms.participant_queries.append((self._room_sid, kwargs))
        return [SimpleNamespace(sid=f"PA{i}") for i in range(self._rooms.connected.get(self._room_sid, 0))]


class FakeRoomContext:
    def __init__(self, rooms: "FakeRooms", room_sid: str) -> None:
        self._rooms = rooms
        self._room_sid = room_sid
        self.participants = FakeParticipants(rooms, room_sid)

    def fetch(self):
        return self._rooms.by_sid[self._room_sid]

    def update(self, **kwargs):
        self._rooms.updates.append((self._room_sid, kwargs))
        room = self._rooms.by_sid[self._room_sid]
        room.status = kwargs.get("status", room.status)
        return room


class FakeRooms:
    """Mimics ``client.video.v1.rooms`` for list/create and per-room contexts."""

    def __init__(self, rooms: list[SimpleNamespace] | None = None) -> None:
        self.by_sid = {room.sid: room for room in rooms or []}
        self.connected: dict[str, int] = {}
        self.created: list[dict] = []
        self.list_calls: list[dict] = []
        self.updates: list[tuple[str, dict]] = []
        self.participant_queries: list[tuple[str, dict]] = []

    def __call__(self, room_sid: str) -> FakeRoomContext:
        return FakeRoomContext(self, room_sid)

    def list(self, status=None, unique_name=None, limit=None):
        self.list_calls.append({"status": status, "unique_name": unique_name, "limit": limit})
        rooms = [
            room
            for room in self.by_sid.values()
            if (status is None or room.status == status)
            and (unique_name is None or room.unique_name == unique_name)
        ]
        return rooms[:limit] if limit else rooms

    def create(self, **kwargs):
        self.created.append(kwargs)
        room = make_room(f"RM{len(self.created):032d}", kwargs["unique_name"])
        self.by_sid[room.sid] = room
        return room


class FakeCompositions:
    def __init__(self) -> None:
        self.created: list[dict] = []

    def list(self, room_sid=None, limit=None):
        matches = [
            SimpleNamespace(sid=f"CJ{index:032d}", room_sid=params["room_sid"], status="enqueued")
            for index, params in enumerate(self.created, start=1)
            if room_sid is None or params["room_sid"] == room_sid
        ]
        return matches[:limit] if limit else matches

    def create(self, **kwargs):
        self.created.append(kwargs)
        return SimpleNamespace(sid=f"CJ{len(self.created):032d}", status="enqueued")


class FakeTwilioClient:
    def __init__(self, rooms: list[SimpleNamespace] | None = None) -> None:
        self.rooms = FakeRooms(rooms)
        self.compositions = FakeCompositions()
        self.video = SimpleNamespace(v1=SimpleNamespace(rooms=self.rooms, compositions=self.compositions))


class DummySession:
    """Minimal session stub supporting async transaction context."""

    def __init__(self) -> None:
        self.added: list[object] = []
        self.flushed = 0
        self.begin_called = False

    def add(self, obj: object) -> None:
        self.added.append(obj)

    async def flush(self) -> None:
        self.flushed += 1

    def begin(self):  # noqa: D401 - mimic SQLAlchemy's async begin
        session = self

        class _Tx:
            async def __aenter__(self_inner):
                session.begin_called = True
                return session

            async def __aexit__(self_inner, exc_type, exc, tb):
                return False

        return _Tx()


class FailingFlushSession(DummySession):
    """Session stub whose flush fails, as when the database is unreachable."""

    async def flush(self) -> None:
        raise RuntimeError("db down")


@pytest.fixture
def twilio_settings(monkeypatch):
    monkeypatch.setattr(settings, "twilio_account_sid", "AC" + "0" * 32)
    monkeypatch.setattr(settings, "twilio_api_key", "SK" + "1" * 32)
    monkeypatch.setattr(settings, "twilio_api_secret", "super-secret-api-key-value-for-tests-0123")
    monkeypatch.setattr(settings, "jwt_signing_key", TEST_SIGNING_KEY)
    return settings
