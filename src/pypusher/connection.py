"""WebSocket connection to the Pusher service."""

import asyncio
from typing import Any, Protocol

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from . import protocol
from .exceptions import ConnectionError as PusherConnectionError
from .exceptions import ErrorCode, ProtocolError
from .serializers import JSONSerializer, Serializer
from .types import ConnectionState, PusherEvent

logger = structlog.get_logger(__name__)


class Dispatcher(Protocol):
    """Receives everything a connection learns from the service."""

    async def change_connection_state(self, state: ConnectionState) -> None: ...

    async def error_occurred(self, error: Exception) -> None: ...

    async def emit_pusher_event(self, event: PusherEvent) -> None: ...

    async def emit_channel_event(self, channel_name: str, event: PusherEvent) -> None: ...

    async def add_member(self, channel_name: str, data: Any) -> None: ...

    async def remove_member(self, channel_name: str, data: Any) -> None: ...

    async def subscription_succeeded(self, channel_name: str, data: Any) -> None: ...


class Transport(Protocol):
    """What the client needs from a connection."""

    socket_id: str | None
    state: ConnectionState

    @property
    def is_connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def send(self, frame: dict[str, Any]) -> None: ...


class Connection:
    """
    A single websocket session with the service.

    ``connect`` returns once the service has sent
    ``pusher:connection_established`` and the connected transition has been
    dispatched. A closed socket is reported as a transition to DISCONNECTED;
    reconnecting is up to the owner.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        url: str,
        connect_timeout: float = 10.0,
        serializer: Serializer | None = None,
    ):
        self.dispatcher = dispatcher
        self.url = url
        self.connect_timeout = connect_timeout
        self.serializer = serializer or JSONSerializer()
        self.state = ConnectionState.UNINITIALIZED
        self.socket_id: str | None = None
        self.activity_timeout: float | None = None
        self.websocket: ClientConnection | None = None
        self.receive_task: asyncio.Task | None = None
        self._established: asyncio.Future | None = None

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    async def connect(self) -> None:
        """
        Open the websocket and wait for the service to establish the session.

        Raises:
            ConnectionError: If the service does not establish the session in time
        """
        if self.is_connected:
            return

        self._established = asyncio.get_running_loop().create_future()
        await self._change_state(ConnectionState.CONNECTING)

        try:
            self.websocket = await asyncio.wait_for(connect(self.url), timeout=self.connect_timeout)
            self.receive_task = asyncio.create_task(self._receive_loop())
            await asyncio.wait_for(asyncio.shield(self._established), timeout=self.connect_timeout)

        except TimeoutError as e:
            logger.error("connection.connect_timeout", url=self.url)
            await self._abort()
            raise PusherConnectionError(
                f"Connection not established after {self.connect_timeout}s",
                ErrorCode.CONNECT_TIMEOUT,
            ) from e

        except Exception as e:
            logger.error("connection.connect_error", url=self.url, error=str(e))
            await self._abort()
            raise

        logger.info("connection.connected", url=self.url, socket_id=self.socket_id)

    async def disconnect(self) -> None:
        """Close the websocket."""
        if self.state in [
            ConnectionState.UNINITIALIZED,
            ConnectionState.DISCONNECTING,
            ConnectionState.DISCONNECTED,
        ]:
            return

        await self._change_state(ConnectionState.DISCONNECTING)

        if self.websocket:
            try:
                await self.websocket.close()
            except Exception as e:
                logger.error("connection.close_error", error=str(e))

        if self.receive_task and self.receive_task is not asyncio.current_task():
            await self.receive_task

        await self._change_state(ConnectionState.DISCONNECTED)
        logger.info("connection.disconnected", socket_id=self.socket_id)

    async def send(self, frame: dict[str, Any]) -> None:
        """
        Send a frame to the service.

        Raises:
            ConnectionError: If the connection is not established
        """
        if not self.is_connected or not self.websocket:
            raise PusherConnectionError("Socket not connected", ErrorCode.NOT_CONNECTED)

        await self.websocket.send(self.serializer.serialize(frame))
        logger.debug("connection.frame_sent", event_name=frame.get("event"))

    async def _change_state(self, state: ConnectionState) -> None:
        self.state = state
        logger.debug("connection.state_changed", state=state.value)
        await self.dispatcher.change_connection_state(state)

    async def _abort(self) -> None:
        """Tear down a connection attempt that failed."""
        if self.receive_task and not self.receive_task.done():
            self.receive_task.cancel()

        if self.websocket:
            try:
                await self.websocket.close()
            except Exception as e:
                logger.debug("connection.abort_close_error", error=str(e))

        await self._change_state(ConnectionState.DISCONNECTED)

    async def _receive_loop(self) -> None:
        """Main message receiving loop."""
        logger.debug("connection.receive_loop_started")

        try:
            async for raw_message in self.websocket:
                try:
                    message = self.serializer.deserialize(raw_message)
                    await self._handle_message(message)
                except ProtocolError as e:
                    logger.error("connection.invalid_message", error=str(e))
                    await self.dispatcher.error_occurred(e)
                except Exception as e:
                    logger.error("connection.message_processing_error", error=str(e))

        except ConnectionClosed as e:
            logger.info("connection.closed", code=e.rcvd.code if e.rcvd else None)

        await self._handle_closed()

    async def _handle_closed(self) -> None:
        """Report a socket closed by the service or the network."""
        if self.state in [ConnectionState.DISCONNECTING, ConnectionState.DISCONNECTED]:
            return

        logger.warning("connection.disconnected_unexpectedly", socket_id=self.socket_id)

        if self._established and not self._established.done():
            self._established.set_exception(
                PusherConnectionError("Socket closed before the connection was established")
            )

        if self.state == ConnectionState.CONNECTED:
            await self._change_state(ConnectionState.DISCONNECTED)

    async def _handle_message(self, message: dict[str, Any]) -> None:
        event_name = message["event"]
        channel_name = message.get("channel")
        data = protocol.decode_data(message.get("data"))

        logger.debug("connection.message_received", event_name=event_name, channel=channel_name)

        if event_name == protocol.CONNECTION_ESTABLISHED:
            await self._handle_established(data)
        elif event_name == protocol.ERROR:
            await self._handle_error(data)
        elif event_name == protocol.PING:
            await self.send(protocol.pong_frame())
        elif event_name == protocol.SUBSCRIPTION_SUCCEEDED:
            await self.dispatcher.subscription_succeeded(channel_name, data)
        elif event_name == protocol.MEMBER_ADDED:
            await self.dispatcher.add_member(channel_name, data)
        elif event_name == protocol.MEMBER_REMOVED:
            await self.dispatcher.remove_member(channel_name, data)
        else:
            event = PusherEvent.from_dict({**message, "data": data})
            if channel_name:
                await self.dispatcher.emit_channel_event(channel_name, event)
            else:
                await self.dispatcher.emit_pusher_event(event)

    async def _handle_established(self, data: Any) -> None:
        if not isinstance(data, dict) or "socket_id" not in data:
            raise ProtocolError(
                "connection_established without a socket id", ErrorCode.MALFORMED_MESSAGE
            )

        self.socket_id = data["socket_id"]
        self.activity_timeout = data.get("activity_timeout")

        await self._change_state(ConnectionState.CONNECTED)

        if self._established and not self._established.done():
            self._established.set_result(self.socket_id)

    async def _handle_error(self, data: Any) -> None:
        data = data if isinstance(data, dict) else {}
        message = data.get("message") or "Unknown error"
        error = ProtocolError(
            f"Service error {data.get('code')}: {message}", ErrorCode.SERVER_ERROR
        )

        logger.error("connection.service_error", code=data.get("code"), message=message)

        if self._established and not self._established.done():
            self._established.set_exception(PusherConnectionError(str(error), error.code))

        await self.dispatcher.error_occurred(error)
