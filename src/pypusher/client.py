"""
Pusher client for PyPusher.

The client owns the connection to the service and every channel the
application has subscribed to. It is also the dispatcher its connection
reports to: state changes, acknowledgements, membership changes and events
all come back through the ``Dispatcher`` methods at the bottom of the class.

Example:
    Subscribing to a public and a presence channel::

        from dataclasses import dataclass
        from pypusher import PusherClient, PusherOptions

        @dataclass
        class Member:
            name: str

        options = PusherOptions(cluster="eu", authorizer=MyAuthorizer())

        async with PusherClient("app-key", options) as client:
            orders = await client.subscribe("orders")
            orders.bind("order-created", handle_order)

            room = await client.subscribe_presence("presence-room", Member)
            room.on_member_added(handle_join)
"""

import asyncio
from collections.abc import Callable
from typing import Any

import structlog

from .auth import AuthorizationGate
from .channel import Channel, PrivateChannel
from .connection import Connection, Transport
from .config import PusherOptions
from .events import EventEmitter, invoke
from .exceptions import (
    CallbackError,
    ConfigurationError,
    ConnectedError,
    ConnectionStateChangedError,
    DisconnectedError,
    ErrorCode,
    ProtocolError,
    PusherError,
)
from .exceptions import ConnectionError as PusherConnectionError
from .presence import MemberTypeRegistry, PresenceChannel
from .protocol import (
    LIBRARY_VERSION,
    build_url,
    channel_type_for,
    client_event_frame,
    subscribe_frame,
    unsubscribe_frame,
)
from .registry import ChannelRegistry
from .types import ChannelType, ConnectionState, PusherEvent

logger = structlog.get_logger(__name__)

TransportFactory = Callable[[Any, str, PusherOptions], Transport]


def default_transport_factory(dispatcher: Any, url: str, options: PusherOptions) -> Transport:
    return Connection(dispatcher, url, connect_timeout=options.connect_timeout)


class PusherClient:
    """Client for a Pusher protocol service."""

    def __init__(
        self,
        app_key: str,
        options: PusherOptions | None = None,
        transport_factory: TransportFactory | None = None,
    ):
        """
        Initialize a client. Nothing is connected until ``connect`` is called.

        Args:
            app_key: The application key
            options: Client options, defaults to ``PusherOptions()``
            transport_factory: Builds the transport for each connect, called
                with ``(dispatcher, url, options)``

        Raises:
            ConfigurationError: If the application key is empty or the
                options are invalid
        """
        if not isinstance(app_key, str) or not app_key.strip():
            raise ConfigurationError(
                "The application key cannot be empty", ErrorCode.APPLICATION_KEY_NOT_SET
            )

        self.app_key = app_key
        self.options = options or PusherOptions()

        errors = self.options.validate()
        if errors:
            raise ConfigurationError(
                f"Invalid options: {', '.join(errors)}", ErrorCode.INVALID_OPTIONS
            )

        self.transport_factory = transport_factory or default_transport_factory
        self.connection: Transport | None = None
        self.registry = ChannelRegistry()
        self.member_types = MemberTypeRegistry()
        self.auth_gate = AuthorizationGate(self.options.authorizer)
        self.events = EventEmitter()

        # Serializes connect and disconnect
        self._lock = asyncio.Lock()

        self.connected_handlers: list[Callable] = []
        self.disconnected_handlers: list[Callable] = []
        self.state_changed_handlers: list[Callable] = []
        self.error_handlers: list[Callable] = []

        logger.info("client.created", app_key=app_key, host=self.options.resolved_host)

    @property
    def url(self) -> str:
        return build_url(
            self.app_key,
            self.options.resolved_host,
            self.options.encrypted,
            self.options.client_name,
            LIBRARY_VERSION,
        )

    @property
    def socket_id(self) -> str | None:
        return self.connection.socket_id if self.connection else None

    @property
    def state(self) -> ConnectionState:
        return self.connection.state if self.connection else ConnectionState.UNINITIALIZED

    @property
    def is_connected(self) -> bool:
        return self.connection is not None and self.connection.is_connected

    @property
    def channels(self) -> dict[str, Channel]:
        """Snapshot of the channels in use, by name."""
        return self.registry.snapshot()

    def channel(self, name: str) -> Channel | None:
        return self.registry.get(name)

    async def connect(self) -> None:
        """
        Connect to the service.

        Concurrent calls share a single connection attempt. Channels
        subscribed before connecting are subscribed on the service once the
        connection is established.

        Raises:
            Whatever the transport raises when it cannot connect
        """
        if self.is_connected:
            return

        async with self._lock:
            if self.is_connected:
                return

            url = self.url
            logger.info("client.connecting", url=url)

            self.connection = self.transport_factory(self, url, self.options)
            await self.connection.connect()

    async def disconnect(self) -> None:
        """Disconnect from the service. Channels stay registered, unsubscribed."""
        if self.connection is None or self.state == ConnectionState.DISCONNECTED:
            return

        async with self._lock:
            if self.connection is not None and self.state != ConnectionState.DISCONNECTED:
                logger.info("client.disconnecting", socket_id=self.socket_id)
                self.registry.mark_all_unsubscribed()
                await self.connection.disconnect()

    async def subscribe(self, channel_name: str) -> Channel:
        """
        Subscribe to a channel, or return the channel already subscribing.

        The returned channel is subscribed once the service acknowledges it;
        use ``channel.wait_subscribed()`` to wait for that.

        Raises:
            ConfigurationError: If the name is empty, or the channel needs an
                authorizer and none is configured
            AuthorizationError: If the authorizer fails
        """
        if not isinstance(channel_name, str) or not channel_name.strip():
            raise ConfigurationError(
                "The channel name cannot be empty or whitespace", ErrorCode.INVALID_CHANNEL_NAME
            )

        channel_type = channel_type_for(channel_name)
        if channel_type.requires_authorization:
            await self._check_authorizer()

        channel, must_send = self.registry.reserve(
            channel_name, lambda: self._create_channel(channel_name, channel_type)
        )
        if not must_send:
            return channel

        if self.is_connected:
            try:
                await self._send_subscribe(channel)
            except Exception:
                self.registry.release(channel_name)
                raise
        else:
            logger.debug("client.subscribe_deferred", channel=channel_name)

        return channel

    async def subscribe_presence(
        self, channel_name: str, member_type: type = dict
    ) -> PresenceChannel:
        """
        Subscribe to a presence channel whose member info has a fixed type.

        The member type is bound to the channel name on the first call and
        cannot change afterwards.

        Args:
            channel_name: A ``presence-`` channel name
            member_type: Member info is converted to this type

        Raises:
            ConfigurationError: If the name is not a presence channel name, or
                a different member type is already bound to it
            ProtocolError: If the channel was already created without this
                member type
        """
        if (
            not isinstance(channel_name, str)
            or channel_type_for(channel_name) != ChannelType.PRESENCE
        ):
            raise ConfigurationError(
                "The channel name must refer to a presence channel",
                ErrorCode.INVALID_CHANNEL_NAME,
            )

        binding = self.member_types.bind(channel_name, member_type)
        if binding.is_conflict:
            raise ConfigurationError(
                "Cannot change channel member type; was previously defined as "
                f"{binding.member_type.__name__}",
                ErrorCode.MEMBER_TYPE_CONFLICT,
            )

        channel = await self.subscribe(channel_name)

        if not channel.is_presence:
            raise ProtocolError(
                f"The presence channel found is an unexpected type: {type(channel).__name__}",
                ErrorCode.PRESENCE_CHANNEL_MISMATCH,
            )
        if channel.member_type is not member_type:
            raise ProtocolError(
                "This presence channel has already been created without specifying "
                f"the member info type {member_type.__name__}",
                ErrorCode.PRESENCE_CHANNEL_MISMATCH,
            )

        return channel

    async def unsubscribe(self, channel_name: str) -> None:
        """
        Unsubscribe from a channel.

        The frame is only sent when connected. The channel stays registered.
        """
        channel = self.registry.get(channel_name)
        if channel is not None:
            channel.mark_unsubscribed()
        self.registry.release(channel_name)

        if self.is_connected:
            await self.connection.send(unsubscribe_frame(channel_name))
            logger.info("client.unsubscribed", channel=channel_name)

    async def trigger(self, channel_name: str, event_name: str, data: Any) -> None:
        """
        Send a client event frame. Prefer ``Channel.trigger``, which validates it.

        Raises:
            ConnectionError: If not connected
        """
        if not self.is_connected:
            raise PusherConnectionError("Socket not connected", ErrorCode.NOT_CONNECTED)

        await self.connection.send(client_event_frame(channel_name, event_name, data))
        logger.debug("client.triggered", channel=channel_name, event_name=event_name)

    def bind(self, event: str, callback: Callable | None = None):
        """Register a handler for connection-level and channel events by name."""
        return self.events.bind(event, callback)

    def bind_all(self, callback: Callable) -> Callable:
        """Register a handler that receives every event."""
        return self.events.bind_all(callback)

    def unbind(self, event: str, callback: Callable | None = None) -> None:
        self.events.unbind(event, callback)

    def on_connected(self, handler: Callable) -> Callable:
        """
        Register a connected handler, called with no arguments.

        Connected handlers run before ``connect`` returns, while it still
        holds the connect lock. A handler may subscribe and trigger, but
        awaiting ``connect``, ``disconnect`` or ``wait_subscribed`` there
        blocks until the connect timeout. Start a task for that instead.
        """
        self.connected_handlers.append(handler)
        return handler

    def on_disconnected(self, handler: Callable) -> Callable:
        """Register a disconnected handler, called with no arguments."""
        self.disconnected_handlers.append(handler)
        return handler

    def on_state_changed(self, handler: Callable) -> Callable:
        """Register a handler called with the new ``ConnectionState``."""
        self.state_changed_handlers.append(handler)
        return handler

    def on_error(self, handler: Callable) -> Callable:
        """Register a handler called with every reported ``PusherError``."""
        self.error_handlers.append(handler)
        return handler

    async def __aenter__(self) -> "PusherClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    def _create_channel(self, channel_name: str, channel_type: ChannelType) -> Channel:
        if channel_type == ChannelType.PRESENCE:
            return self.member_types.create_channel(channel_name, self)
        if channel_type == ChannelType.PRIVATE:
            return PrivateChannel(channel_name, self)
        return Channel(channel_name, self)

    async def _check_authorizer(self) -> None:
        try:
            self.auth_gate.ensure_configured()
        except ConfigurationError as e:
            await self._raise_error(e)
            raise

    async def _send_subscribe(self, channel: Channel) -> None:
        if channel.channel_type.requires_authorization:
            authorization = await self.auth_gate.authorize(channel.name, self.socket_id)
            if channel.is_presence:
                channel.set_channel_data(authorization.channel_data)
            frame = subscribe_frame(channel.name, authorization)
        else:
            frame = subscribe_frame(channel.name)

        await self.connection.send(frame)
        logger.debug("client.subscribe_sent", channel=channel.name)

    async def _subscribe_existing_channels(self) -> None:
        for channel in self.registry.channels():
            self.registry.mark_pending(channel.name)
            try:
                await self._send_subscribe(channel)
            except Exception as e:
                self.registry.release(channel.name)
                logger.error("client.resubscribe_error", channel=channel.name, error=str(e))
                if not isinstance(e, PusherError):
                    e = PusherError(f"Failed to subscribe to {channel.name}: {e}")
                await self._raise_error(e)

    async def _notify(self, handlers: list[Callable], error_class: type[CallbackError]) -> None:
        for handler in list(handlers):
            try:
                await invoke(handler)
            except Exception as e:
                await self._raise_error(error_class(e))

    async def _raise_error(self, error: PusherError) -> None:
        """Report an error to the error handlers. Handler failures are swallowed."""
        logger.error(
            "client.error",
            error_type=type(error).__name__,
            error=str(error),
            code=int(getattr(error, "code", ErrorCode.UNKNOWN)),
        )

        for handler in list(self.error_handlers):
            try:
                await invoke(handler, error)
            except Exception as e:
                if self.options.tracing_enabled:
                    logger.debug("client.error_handler_error", error=str(e))

    # Dispatcher

    async def change_connection_state(self, state: ConnectionState) -> None:
        logger.info("client.state_changed", state=state.value, socket_id=self.socket_id)

        if state == ConnectionState.CONNECTED:
            await self._subscribe_existing_channels()
            await self._notify(self.connected_handlers, ConnectedError)
        elif state == ConnectionState.DISCONNECTED:
            self.registry.mark_all_unsubscribed()
            await self._notify(self.disconnected_handlers, DisconnectedError)

        for handler in list(self.state_changed_handlers):
            try:
                await invoke(handler, state)
            except Exception as e:
                await self._raise_error(ConnectionStateChangedError(state, e))

    async def error_occurred(self, error: Exception) -> None:
        if not isinstance(error, PusherError):
            error = PusherError(str(error))
        await self._raise_error(error)

    async def emit_pusher_event(self, event: PusherEvent) -> None:
        await self.events.emit_event(event)

    async def emit_channel_event(self, channel_name: str, event: PusherEvent) -> None:
        channel = self.registry.get(channel_name)
        if channel:
            await channel.emit_event(event)
        await self.events.emit_event(event)

    async def add_member(self, channel_name: str, data: Any) -> None:
        channel = self.registry.get(channel_name)
        if channel is None or not channel.is_presence:
            return

        try:
            await channel.add_member(data)
        except (ProtocolError, KeyError, TypeError) as e:
            await self._raise_error(self._membership_error(channel_name, e))

    async def remove_member(self, channel_name: str, data: Any) -> None:
        channel = self.registry.get(channel_name)
        if channel is None or not channel.is_presence:
            return

        try:
            await channel.remove_member(data)
        except (KeyError, TypeError) as e:
            await self._raise_error(self._membership_error(channel_name, e))

    async def subscription_succeeded(self, channel_name: str, data: Any) -> None:
        channel = self.registry.acknowledge(channel_name)
        if channel is None:
            await self._raise_error(
                ProtocolError(
                    f"Subscription acknowledged for unknown channel {channel_name}",
                    ErrorCode.MALFORMED_MESSAGE,
                )
            )
            return

        try:
            await channel.subscription_succeeded(data)
        except (ProtocolError, KeyError, TypeError, AttributeError) as e:
            await self._raise_error(self._membership_error(channel_name, e))

    @staticmethod
    def _membership_error(channel_name: str, error: Exception) -> ProtocolError:
        if isinstance(error, ProtocolError):
            return error
        return ProtocolError(
            f"Malformed membership event on {channel_name}: {error!r}",
            ErrorCode.MALFORMED_MESSAGE,
        )
