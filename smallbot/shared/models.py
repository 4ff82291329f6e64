"""
MODULE OVERVIEW:
Typed views of the Matrix client-server API payloads smallbot sends and
receives, powered by Pydantic v2.

WHAT IS HAPPENING HERE:
The homeserver owns the schema, so every model tolerates fields it doesn't know
about (`extra="allow"`). Only what the bot actually reads is declared.
The one piece of real shaping is `SyncResponse`: a sync with nothing to report
may omit `rooms` or `rooms.join` entirely, and we normalise both to an empty
mapping so the dispatch loop never has to special-case it.
"""
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, field_validator

HTML_FORMAT = "org.matrix.custom.html"

class MatrixModel(BaseModel):
    model_config = ConfigDict(extra="allow")

# WHAT IS HAPPENING HERE:
# `m.room.message` events fill body/msgtype/format/formatted_body,
# `m.room.member` state events fill membership/displayname/avatar_url.
# Content is whatever the sending client put there, so these fields are not
# type-checked: an odd value is handed to the event handler as-is instead of
# failing the whole sync batch.
class EventContent(MatrixModel):
    body: Any = None
    msgtype: Any = None
    format: Any = None
    formatted_body: Any = None
    membership: Any = None
    displayname: Any = None
    avatar_url: Any = None

class TimelineEvent(MatrixModel):
    content: EventContent = Field(default_factory=EventContent)
    type: str
    event_id: str | None = None
    sender: str
    origin_server_ts: int | None = None

    @field_validator("content", mode="before")
    @classmethod
    def _non_object_is_empty(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

class Timeline(MatrixModel):
    events: list[TimelineEvent] = Field(default_factory=list)

    @field_validator("events", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

class JoinedRoom(MatrixModel):
    timeline: Timeline = Field(default_factory=Timeline)

    @field_validator("timeline", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

# WHAT IS HAPPENING HERE:
# `join` is keyed by room id, which is dynamic, so it is a plain dict rather
# than a fixed record. Dicts keep insertion order, i.e. the order the server
# listed the rooms in.
class Rooms(MatrixModel):
    join: dict[str, JoinedRoom] = Field(default_factory=dict)

    @field_validator("join", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

class SyncResponse(MatrixModel):
    next_batch: str
    rooms: Rooms = Field(default_factory=Rooms)

    @field_validator("rooms", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value

class WhoAmIResponse(MatrixModel):
    user_id: str

class JoinedRoomsResponse(MatrixModel):
    joined_rooms: list[str] = Field(default_factory=list)

class UserProfileResponse(MatrixModel):
    avatar_url: str | None = None
    displayname: str | None = None

class RoomStateNameResponse(MatrixModel):
    name: str

class SendEventResponse(MatrixModel):
    event_id: str

# Outbound body for `m.room.message`; both renditions always travel together.
class MessagePayload(BaseModel):
    msgtype: str
    format: str = HTML_FORMAT
    body: str
    formatted_body: str
