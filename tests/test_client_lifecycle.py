"""Tests for the client's connection state machine."""

import asyncio

import pytest
from conftest import SOCKET_ID, sent_frames

from pypusher import (
    ConfigurationError,
    ConnectedError,
    ConnectionState,
    ConnectionStateChangedError,
    DisconnectedError,
    ErrorCode,
    PusherClient,
    PusherOptions,
)
from pypusher.protocol import subscribe_frame


class TestClientCreation:
    """Test client construction."""

    def test_initial_state(self, client):
        assert client.state == ConnectionState.UNINITIALIZED
        assert client.socket_id is None
        assert client.channels == {}

    @pytest.mark.parametrize("app_key", ["", "   ", None])
    def test_empty_app_key_rejected(self, app_key):
        with pytest.raises(ConfigurationError) as exc_info:
            PusherClient(app_key)

        assert exc_info.value.code == ErrorCode.APPLICATION_KEY_NOT_SET

    def test_invalid_options_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            PusherClient("app-key", PusherOptions(connect_timeout=0))

        assert exc_info.value.code == ErrorCode.INVALID_OPTIONS

    def test_url(self):
        client = PusherClient("app-key", PusherOptions(cluster="eu"))

        assert client.url == (
            "wss://ws-eu.pusher.com/app/app-key?protocol=5&client=pypusher&version=0.1.0"
        )


class TestConnect:
    """Test connecting and disconnecting."""

    @pytest.mark.asyncio
    async def test_connect(self, client, transports):
        await client.connect()

        assert client.state == ConnectionState.CONNECTED
        assert client.socket_id == SOCKET_ID
        assert len(transports) == 1
        assert transports[0].url == client.url

    @pytest.mark.asyncio
    async def test_connect_when_connected_is_noop(self, client, transports):
        await client.connect()
        await client.connect()

        assert len(transports) == 1

    @pytest.mark.asyncio
    async def test_concurrent_connects_make_one_attempt(self, client, transports):
        await asyncio.gather(*(client.connect() for _ in range(10)))

        assert len(transports) == 1
        assert transports[0].connect_calls == 1
        assert client.is_connected

    @pytest.mark.asyncio
    async def test_connect_error_propagates(self, transports):
        class FailingTransport:
            state = ConnectionState.UNINITIALIZED
            socket_id = None
            is_connected = False

            async def connect(self):
                raise OSError("connection refused")

        client = PusherClient("app-key", transport_factory=lambda *args: FailingTransport())

        with pytest.raises(OSError, match="connection refused"):
            await client.connect()

        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_disconnect_without_connection_is_noop(self, client, transports):
        await client.disconnect()

        assert client.state == ConnectionState.UNINITIALIZED
        assert transports == []

    @pytest.mark.asyncio
    async def test_disconnect(self, client):
        await client.connect()
        await client.disconnect()

        assert client.state == ConnectionState.DISCONNECTED

        # A second disconnect does nothing
        await client.disconnect()
        assert client.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_reconnect_replaces_connection(self, client, transports):
        await client.connect()
        first = client.connection
        await client.disconnect()
        await client.connect()

        assert client.connection is not first
        assert len(transports) == 2
        assert client.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_async_context_manager(self, client):
        async with client:
            assert client.is_connected

        assert client.state == ConnectionState.DISCONNECTED


class TestNotifications:
    """Test connected, disconnected and state changed handlers."""

    @pytest.mark.asyncio
    async def test_state_changed_sees_every_transition(self, client):
        states = []
        client.on_state_changed(states.append)

        await client.connect()
        await client.disconnect()

        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTING,
            ConnectionState.DISCONNECTED,
        ]

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self, client):
        calls = []

        @client.on_connected
        def on_connected():
            calls.append("connected")

        @client.on_disconnected
        async def on_disconnected():
            calls.append("disconnected")

        await client.connect()
        await client.disconnect()

        assert calls == ["connected", "disconnected"]

    @pytest.mark.asyncio
    async def test_connected_handler_can_subscribe(self, client, transports):
        @client.on_connected
        async def on_connected():
            await client.subscribe("orders")

        await asyncio.wait_for(client.connect(), timeout=1.0)

        assert transports[0].sent == [subscribe_frame("orders")]

    @pytest.mark.asyncio
    async def test_failing_connected_handler_is_isolated(self, client, transports):
        states = []
        errors = []

        @client.on_connected
        def broken():
            raise RuntimeError("boom")

        client.on_state_changed(states.append)
        client.on_error(errors.append)

        await client.connect()

        assert client.is_connected
        assert ConnectionState.CONNECTED in states
        assert len(errors) == 1
        assert isinstance(errors[0], ConnectedError)
        assert isinstance(errors[0].original, RuntimeError)
        assert errors[0].code == ErrorCode.CALLBACK_FAILED

        # Subscribing still works afterwards
        await client.subscribe("orders")
        assert sent_frames(transports) == [subscribe_frame("orders")]

    @pytest.mark.asyncio
    async def test_failing_disconnected_handler_is_isolated(self, client):
        errors = []

        @client.on_disconnected
        def broken():
            raise ValueError("boom")

        client.on_error(errors.append)

        await client.connect()
        await client.disconnect()

        assert client.state == ConnectionState.DISCONNECTED
        assert [type(e) for e in errors] == [DisconnectedError]

    @pytest.mark.asyncio
    async def test_failing_state_changed_handler_is_isolated(self, client):
        errors = []

        @client.on_state_changed
        def broken(state):
            raise RuntimeError(state.value)

        client.on_error(errors.append)

        await client.connect()

        assert client.is_connected
        assert all(isinstance(e, ConnectionStateChangedError) for e in errors)
        assert [e.state for e in errors] == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]

    @pytest.mark.asyncio
    async def test_failing_error_handler_is_swallowed(self, client):
        @client.on_connected
        def broken():
            raise RuntimeError("first")

        @client.on_error
        def broken_error_handler(error):
            raise RuntimeError("second")

        await client.connect()

        assert client.is_connected
