"""Pytest configuration and shared fixtures for smallbot tests."""

import json
import sys
from pathlib import Path
from urllib.parse import unquote

import httpx
import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


# ============================================================================
# Collaborator Fakes
# ============================================================================


class RecordingLogger:
    def __init__(self):
        self.infos: list[str] = []
        self.errors: list[str] = []

    def info(self, message: str) -> None:
        self.infos.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)


class MemoryStore:
    def __init__(self, since: str | None = None):
        self.since = since
        self.reads = 0
        self.writes: list[str] = []

    def read(self) -> str | None:
        self.reads += 1
        return self.since

    def write(self, since: str) -> None:
        self.writes.append(since)
        self.since = since


# ============================================================================
# Fake Homeserver
# ============================================================================


class FakeHomeserver:
    """
    Answers the handful of client API endpoints smallbot uses.

    Sync responses are served from `sync_responses` in order; once they run
    out the next /sync raises a ConnectError, which ends the bot's loop.
    """

    API = "/_matrix/client/r0/"

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.sync_responses: list[dict] = []
        self.user_id = "@bot:example.org"
        self.joined = ["!one:example.org"]
        self.room_names = {"!one:example.org": "Room One"}
        self.room_name_errors: dict[str, int] = {}
        self.profiles = {"@alice:example.org": {"displayname": "Alice", "avatar_url": "mxc://example.org/a"}}
        self._next_event = 0

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    def endpoint(self, request: httpx.Request) -> str:
        raw_path = request.url.raw_path.split(b"?")[0].decode("ascii")
        assert raw_path.startswith(self.API), raw_path
        return raw_path[len(self.API):]

    def paths(self) -> list[str]:
        return [self.endpoint(r) for r in self.requests]

    def sync_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if self.endpoint(r) == "sync"]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = self.endpoint(request)

        if endpoint == "sync":
            if not self.sync_responses:
                raise httpx.ConnectError("homeserver went away", request=request)
            return httpx.Response(200, json=self.sync_responses.pop(0))
        if endpoint == "account/whoami":
            return httpx.Response(200, json={"user_id": self.user_id})
        if endpoint == "joined_rooms":
            return httpx.Response(200, json={"joined_rooms": self.joined})
        if endpoint.startswith("profile/"):
            profile = self.profiles.get(endpoint[len("profile/"):])
            if profile is None:
                return httpx.Response(404, json={"errcode": "M_NOT_FOUND", "error": "Profile not found"})
            return httpx.Response(200, json=profile)
        if endpoint.startswith("rooms/") and "/state/m.room.name/" in endpoint:
            room_id = unquote(endpoint.split("/")[1])
            if room_id in self.room_name_errors:
                return httpx.Response(self.room_name_errors[room_id], json={"errcode": "M_FORBIDDEN", "error": "Denied"})
            if room_id not in self.room_names:
                return httpx.Response(404, json={"errcode": "M_NOT_FOUND", "error": "Event not found."})
            return httpx.Response(200, json={"name": self.room_names[room_id]})
        if endpoint.startswith("rooms/") and "/send/" in endpoint and request.method == "PUT":
            self._next_event += 1
            return httpx.Response(200, json={"event_id": f"$event{self._next_event}"})
        return httpx.Response(404, json={"errcode": "M_UNRECOGNIZED", "error": "Unrecognized request"})

    def sent_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.method == "PUT"]


def message_event(body: str, sender: str = "@alice:example.org", event_id: str = "$1") -> dict:
    return {
        "type": "m.room.message",
        "sender": sender,
        "event_id": event_id,
        "content": {"msgtype": "m.text", "body": body},
    }


def sync_body(next_batch: str, rooms: dict[str, list[dict]] | None = None) -> dict:
    if rooms is None:
        return {"next_batch": next_batch}
    return {
        "next_batch": next_batch,
        "rooms": {"join": {room_id: {"timeline": {"events": events}} for room_id, events in rooms.items()}},
    }


@pytest.fixture
def homeserver():
    return FakeHomeserver()


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def make_bot(homeserver, recording_logger, memory_store):
    """Build a SmallBot wired to the fake homeserver and in-memory collaborators."""
    from smallbot.client.small_bot import SmallBot

    async def _noop(bot, room_id, event):
        pass

    def _make(handler=_noop, **kwargs):
        kwargs.setdefault("access_token", "secret")
        kwargs.setdefault("homeserver_url", "https://hs.example.org")
        kwargs.setdefault("logger", recording_logger)
        kwargs.setdefault("store", memory_store)
        kwargs.setdefault("http_client", homeserver.client())
        return SmallBot(handler, **kwargs)

    return _make
