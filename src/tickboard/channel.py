"""Live ticket events over socket.io."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import socketio
import socketio.exceptions

from tickboard.errors import GatewayError, PayloadError
from tickboard.events import TICKET_EVENTS, RemoteEvent, parse_event

logger = logging.getLogger(__name__)

Sink = Callable[[RemoteEvent], Awaitable[None]]


class EventChannel:
    """Subscribes to a project (and optionally a user) and forwards ticket events.

    Events are validated at the boundary: payloads that do not parse are
    logged and dropped. Reconnection is left to socket.io; after each
    (re)connect the rooms are joined again.
    """

    def __init__(
        self,
        url: str,
        sink: Sink,
        *,
        project_id: str | None = None,
        user_id: str | None = None,
        token: str | None = None,
        client: Any = None,
    ) -> None:
        self.url = url
        self.sink = sink
        self.project_id = project_id
        self.user_id = user_id
        self.token = token
        self.client = client if client is not None else socketio.AsyncClient(reconnection=True)
        self.client.on("connect", self._on_connect)
        self.client.on("disconnect", self._on_disconnect)
        for name in TICKET_EVENTS:
            self.client.on(name, self._handler(name))

    def _handler(self, name: str) -> Callable[[Any], Awaitable[None]]:
        async def handler(payload: Any) -> None:
            await self.dispatch(name, payload)

        return handler

    async def _on_connect(self) -> None:
        logger.info("connected to %s", self.url)
        if self.project_id:
            await self.client.emit("join_project", self.project_id)
        if self.user_id:
            await self.client.emit("join_user", self.user_id)

    async def _on_disconnect(self, *args) -> None:
        logger.info("disconnected from %s", self.url)

    async def dispatch(self, name: str, payload: Any) -> None:
        """Parse one raw event and hand it to the sink."""
        try:
            event = parse_event(name, payload)
        except PayloadError as exc:
            logger.warning("dropping %s: %s", name, exc)
            return
        await self.sink(event)

    async def connect(self) -> None:
        auth = {"token": self.token} if self.token else None
        try:
            await self.client.connect(self.url, auth=auth)
        except socketio.exceptions.ConnectionError as exc:
            raise GatewayError(f"cannot connect to {self.url}: {exc}") from exc

    async def wait(self) -> None:
        """Block until the connection is closed for good."""
        await self.client.wait()

    async def disconnect(self) -> None:
        await self.client.disconnect()
