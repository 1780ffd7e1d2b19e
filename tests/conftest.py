"""Shared fixtures: an in-memory transport and clients wired to it."""

import asyncio
from typing import Any

import pytest

from pypusher import ConnectionState, PusherClient, PusherOptions
from pypusher.exceptions import ConnectionError as PusherConnectionError

SOCKET_ID = "123.456"


class FakeTransport:
    """Transport that records frames instead of talking to a service."""

    def __init__(self, dispatcher, url: str):
        self.dispatcher = dispatcher
        self.url = url
        self.state = ConnectionState.UNINITIALIZED
        self.socket_id: str | None = None
        self.sent: list[dict[str, Any]] = []
        self.connect_calls = 0

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    async def connect(self) -> None:
        self.connect_calls += 1
        await self._change_state(ConnectionState.CONNECTING)
        # Yield so concurrent callers get a chance to race
        await asyncio.sleep(0)
        self.socket_id = SOCKET_ID
        await self._change_state(ConnectionState.CONNECTED)

    async def disconnect(self) -> None:
        await self._change_state(ConnectionState.DISCONNECTING)
        await self._change_state(ConnectionState.DISCONNECTED)

    async def drop(self) -> None:
        """Simulate the network going away."""
        await self._change_state(ConnectionState.DISCONNECTED)

    async def send(self, frame: dict[str, Any]) -> None:
        if not self.is_connected:
            raise PusherConnectionError("Socket not connected")
        self.sent.append(frame)

    async def _change_state(self, state: ConnectionState) -> None:
        self.state = state
        await self.dispatcher.change_connection_state(state)


class RecordingAuthorizer:
    """Authorizer returning a fixed token and recording its calls."""

    def __init__(self, channel_data: str | None = None):
        self.channel_data = channel_data
        self.calls: list[tuple[str, str]] = []

    def authorize(self, channel_name: str, socket_id: str) -> dict[str, Any]:
        self.calls.append((channel_name, socket_id))
        return {"auth": f"app-key:{channel_name}", "channel_data": self.channel_data}


@pytest.fixture
def transports() -> list[FakeTransport]:
    return []


@pytest.fixture
def transport_factory(transports):
    def factory(dispatcher, url, options):
        transport = FakeTransport(dispatcher, url)
        transports.append(transport)
        return transport

    return factory


@pytest.fixture
def client(transport_factory) -> PusherClient:
    return PusherClient("app-key", transport_factory=transport_factory)


@pytest.fixture
def authorizer() -> RecordingAuthorizer:
    return RecordingAuthorizer(channel_data='{"user_id": "1", "user_info": {"name": "Ann"}}')


@pytest.fixture
def auth_client(transport_factory, authorizer) -> PusherClient:
    return PusherClient(
        "app-key", PusherOptions(authorizer=authorizer), transport_factory=transport_factory
    )


@pytest.fixture
def reported_errors(client, auth_client) -> list[Exception]:
    """Errors reported by either client."""
    errors: list[Exception] = []
    client.on_error(errors.append)
    auth_client.on_error(errors.append)
    return errors


def sent_frames(transports: list[FakeTransport]) -> list[dict[str, Any]]:
    return [frame for transport in transports for frame in transport.sent]
