"""
Channel implementation for PyPusher.

A Channel is the client-side view of one named topic on the service. The
client creates channels on ``subscribe`` and keeps them in its registry for
its whole lifetime; a channel that loses its subscription on disconnect is
re-subscribed with the same object when the connection comes back.

Example:
    Binding to channel events::

        channel = await client.subscribe("orders")

        @channel.bind("order-created")
        async def on_order(event):
            print(event.data)

        await channel.wait_subscribed(timeout=5.0)
"""

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from .events import EventEmitter
from .exceptions import ChannelError, ErrorCode
from .exceptions import ConnectionError as PusherConnectionError
from .protocol import CLIENT_EVENT_PREFIX, PUBLIC_SUBSCRIPTION_SUCCEEDED
from .types import ChannelType, PusherEvent

if TYPE_CHECKING:
    from .client import PusherClient

logger = structlog.get_logger(__name__)


class Channel(EventEmitter):
    """
    A subscribed (or subscribing) topic.

    Attributes:
        name (str): The channel name, fixed for the channel's lifetime
        channel_type (ChannelType): Decided from the name prefix at creation
        subscribed (bool): True between the service's acknowledgement and the
            next disconnect or unsubscribe
    """

    channel_type = ChannelType.PUBLIC

    def __init__(self, name: str, client: "PusherClient"):
        super().__init__()
        self.name = name
        self.client = client
        self.subscribed = False
        self._subscribed_event = asyncio.Event()

        logger.debug("channel.created", channel=name, channel_type=self.channel_type.value)

    @property
    def is_presence(self) -> bool:
        return False

    async def wait_subscribed(self, timeout: float | None = None) -> None:
        """
        Wait until the service acknowledges the subscription.

        Raises:
            asyncio.TimeoutError: If no acknowledgement arrives within timeout
        """
        await asyncio.wait_for(self._subscribed_event.wait(), timeout=timeout)

    async def subscription_succeeded(self, data: Any) -> None:
        """Handle the service's subscription acknowledgement."""
        self.subscribed = True
        self._subscribed_event.set()

        logger.info("channel.subscribed", channel=self.name)

        await self.emit_event(
            PusherEvent(event=PUBLIC_SUBSCRIPTION_SUCCEEDED, data=data, channel=self.name)
        )

    def mark_unsubscribed(self) -> None:
        """Drop the local subscription flag without telling the service."""
        self.subscribed = False
        self._subscribed_event.clear()

    async def unsubscribe(self) -> None:
        """Unsubscribe from the channel on the service."""
        await self.client.unsubscribe(self.name)

    async def trigger(self, event_name: str, data: Any) -> None:
        """
        Send a client event to the other subscribers of this channel.

        Args:
            event_name: The event name, which must start with ``client-``
            data: The event payload

        Raises:
            ChannelError: If the event name, channel type or subscription
                state does not allow client events
        """
        if not event_name.startswith(CLIENT_EVENT_PREFIX):
            raise ChannelError(
                f"Client event names must start with '{CLIENT_EVENT_PREFIX}': {event_name}",
                self.name,
                ErrorCode.INVALID_CLIENT_EVENT,
            )

        if not self.channel_type.requires_authorization:
            raise ChannelError(
                "Client events can only be triggered on private or presence channels",
                self.name,
                ErrorCode.INVALID_CLIENT_EVENT,
            )

        if not self.subscribed:
            raise ChannelError(
                "Channel must be subscribed before triggering events",
                self.name,
                ErrorCode.CHANNEL_NOT_SUBSCRIBED,
            )

        try:
            await self.client.trigger(self.name, event_name, data)
        except PusherConnectionError:
            logger.error("channel.trigger_error", channel=self.name, event_name=event_name)
            raise

    def __str__(self) -> str:
        return f"Channel(name={self.name}, subscribed={self.subscribed})"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"channel_type={self.channel_type.value!r}, subscribed={self.subscribed!r})"
        )


class PrivateChannel(Channel):
    """A channel that requires authorization to subscribe."""

    channel_type = ChannelType.PRIVATE
