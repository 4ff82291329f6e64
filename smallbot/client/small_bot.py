"""
MODULE OVERVIEW:
The Matrix long-polling bot client.

WHAT IS HAPPENING HERE:
`start()` resolves who we are, reads the last sync cursor and then sits in a
`/sync` loop forever. The homeserver holds each request open for up to
`sync_timeout` ms and answers as soon as something happens. Every timeline event
is awaited through the user's handler one at a time, room by room, in the order
the server delivered them. Only once the whole batch is handled does the new
cursor get written, so a crash mid-batch replays that batch on the next start.

There is no retry: the first exception anywhere in the loop is logged once and
the bot stops syncing until the process is restarted.

Usage:
    async def echo(bot, room_id, event):
        if event.sender != bot.own_user_id:
            await bot.send_room_notice(room_id, "You said: <b>" + event.content.body + "</b>")

    bot = SmallBot(echo, access_token="mysecretaccesstoken")
    await bot.start()
"""
import itertools
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel

from smallbot.client.collaborators import (
    BotLogger,
    BotStore,
    EventHandler,
    FileStore,
    HtmlFormatter,
    LoguruLogger,
)
from smallbot.shared.client_utils import (
    build_api_url,
    build_query,
    escape_room_id,
    make_txn_id,
    strip_html,
)
from smallbot.shared.config import Settings, settings as default_settings
from smallbot.shared.models import (
    JoinedRoomsResponse,
    MessagePayload,
    RoomStateNameResponse,
    SendEventResponse,
    SyncResponse,
    UserProfileResponse,
    WhoAmIResponse,
)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

class SmallBot:
    def __init__(
        self,
        event_handler: EventHandler,
        access_token: str,
        homeserver_url: str | None = None,
        sync_timeout: int | None = None,
        user_id: str | None = None,
        logger: BotLogger | None = None,
        store_name: str | None = None,
        store: BotStore | None = None,
        format_html_to_plain: HtmlFormatter | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.event_handler = event_handler
        self.access_token = access_token
        self.homeserver_url = homeserver_url or default_settings.MATRIX_HOMESERVER_URL
        self.sync_timeout = sync_timeout or default_settings.MATRIX_SYNC_TIMEOUT_MS
        self.user_id = user_id
        self.logger: BotLogger = logger or LoguruLogger()
        self.store: BotStore = store or FileStore(store_name or default_settings.SMALLBOT_STORE_PATH)
        self.format_html_to_plain: HtmlFormatter = format_html_to_plain or strip_html

        # No client-side timeout: the server-side long-poll timeout bounds /sync.
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=None)

        self._request_ids = itertools.count(1)

    @classmethod
    def from_settings(cls, event_handler: EventHandler, config: Settings | None = None, **overrides: Any) -> "SmallBot":
        config = config or default_settings
        kwargs: dict[str, Any] = {
            "access_token": config.MATRIX_ACCESS_TOKEN,
            "homeserver_url": config.MATRIX_HOMESERVER_URL,
            "sync_timeout": config.MATRIX_SYNC_TIMEOUT_MS,
            "user_id": config.MATRIX_USER_ID,
            "store_name": config.SMALLBOT_STORE_PATH,
        }
        kwargs.update(overrides)
        return cls(event_handler, **kwargs)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SmallBot":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def own_user_id(self) -> str | None:
        return self.user_id

    # =========================================================================
    # Request executor
    # =========================================================================

    async def _request(
        self,
        path: str,
        response_model: type[ResponseT],
        params: dict[str, str | int | None] | None = None,
        method: str | None = None,
        body: BaseModel | dict[str, Any] | None = None,
    ) -> ResponseT:
        """
        One authenticated call against the client API.

        Nothing is caught here: transport errors, non-2xx statuses and bodies
        that don't match `response_model` all surface to the caller.
        """
        url = build_api_url(self.homeserver_url, path)
        query = build_query(self.access_token, params)

        json_body = None
        if method and body is not None:
            json_body = body.model_dump() if isinstance(body, BaseModel) else body

        # The query string carries the token, so only the bare URL is logged.
        self.logger.info(f"Fetching '{url}'")
        response = await self.client.request(method or "GET", url, params=query, json=json_body)
        response.raise_for_status()
        return response_model.model_validate(response.json())

    async def _send_event(self, room_id: str, event_type: str, content: BaseModel) -> SendEventResponse:
        txn_id = make_txn_id(next(self._request_ids))
        path = f"rooms/{escape_room_id(room_id)}/send/{event_type}/{txn_id}"
        return await self._request(path, SendEventResponse, method="PUT", body=content)

    # =========================================================================
    # Sync loop
    # =========================================================================

    async def get_sync(self, since: str | None = None) -> SyncResponse:
        """
        A single long-poll against `/sync`.

        Returns immediately when events are queued, otherwise after up to
        `sync_timeout` ms with an empty batch. `rooms.join` is always a dict.
        """
        return await self._request(
            "sync",
            SyncResponse,
            params={
                "full_state": "false",
                "timeout": self.sync_timeout,
                "since": since,
            },
        )

    async def _dispatch(self, sync: SyncResponse) -> None:
        for room_id, room in sync.rooms.join.items():
            for event in room.timeline.events:
                await self.event_handler(self, room_id, event)

    async def _sync_loop(self, since: str | None) -> None:
        while True:
            sync = await self.get_sync(since)
            await self._dispatch(sync)
            self.store.write(sync.next_batch)
            since = sync.next_batch

    async def start(self) -> None:
        """
        Resolve our user id if needed, then sync until something fails.

        Any exception from the loop, including one raised by the event handler,
        is logged through `logger.error` and ends the loop for good.
        """
        try:
            if not self.user_id:
                self.user_id = (await self.who_am_i()).user_id
            await self._sync_loop(self.store.read())
        except Exception as e:
            self.logger.error(f"Sync loop stopped: {e!r}")

    # =========================================================================
    # Metadata
    # =========================================================================

    async def who_am_i(self) -> WhoAmIResponse:
        return await self._request("account/whoami", WhoAmIResponse)

    async def joined_rooms(self) -> JoinedRoomsResponse:
        return await self._request("joined_rooms", JoinedRoomsResponse)

    async def get_user_profile(self, user_id: str) -> UserProfileResponse:
        return await self._request(f"profile/{user_id}", UserProfileResponse)

    async def get_room_state_name(self, room_id: str) -> RoomStateNameResponse:
        return await self._request(f"rooms/{escape_room_id(room_id)}/state/m.room.name/", RoomStateNameResponse)

    # =========================================================================
    # Messages
    # =========================================================================

    async def send_message(self, room_id: str, msgtype: str, formatted_body: str) -> SendEventResponse:
        """
        Send an HTML message. The plain `body` is derived with
        `format_html_to_plain`, e.g. "<b>hi</b>" -> "hi".
        """
        payload = MessagePayload(
            msgtype=msgtype,
            body=self.format_html_to_plain(formatted_body),
            formatted_body=formatted_body,
        )
        return await self._send_event(room_id, "m.room.message", payload)

    async def send_room_notice(self, room_id: str, msg: str) -> SendEventResponse:
        return await self.send_message(room_id, "m.notice", msg)

    async def send_room_text(self, room_id: str, msg: str) -> SendEventResponse:
        return await self.send_message(room_id, "m.text", msg)
