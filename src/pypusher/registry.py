"""Channel registry for PyPusher."""

import threading
from collections.abc import Callable, Iterator

import structlog

from .channel import Channel

logger = structlog.get_logger(__name__)


class ChannelRegistry:
    """
    Channels by name, plus the names with a subscribe awaiting acknowledgement.

    Every operation runs under one lock and never awaits, so get-or-create
    and test-and-mark-pending are atomic for both threads and tasks.
    """

    def __init__(self):
        self._channels: dict[str, Channel] = {}
        self._pending: set[str] = set()
        self._lock = threading.RLock()

    def reserve(self, name: str, factory: Callable[[], Channel]) -> tuple[Channel, bool]:
        """
        Get or create a channel and mark it pending.

        Args:
            name: The channel name
            factory: Called to create the channel if none is registered

        Returns:
            The channel, and True if the caller must send the subscribe frame.
            False means the channel is already subscribed or pending.
        """
        with self._lock:
            channel = self._channels.get(name)

            if channel is not None and (channel.subscribed or name in self._pending):
                return channel, False

            if channel is None:
                channel = factory()
                self._channels[name] = channel
                logger.debug("registry.channel_added", channel=name)

            self._pending.add(name)
            return channel, True

    def mark_pending(self, name: str) -> None:
        with self._lock:
            if name in self._channels:
                self._pending.add(name)

    def release(self, name: str) -> None:
        """Take a name off the pending set without acknowledging it."""
        with self._lock:
            self._pending.discard(name)

    def acknowledge(self, name: str) -> Channel | None:
        """Take a name off the pending set and return its channel."""
        with self._lock:
            self._pending.discard(name)
            return self._channels.get(name)

    def is_pending(self, name: str) -> bool:
        with self._lock:
            return name in self._pending

    def get(self, name: str) -> Channel | None:
        with self._lock:
            return self._channels.get(name)

    def mark_all_unsubscribed(self) -> None:
        for channel in self.channels():
            channel.mark_unsubscribed()

    def channels(self) -> list[Channel]:
        """Snapshot of the registered channels."""
        with self._lock:
            return list(self._channels.values())

    def snapshot(self) -> dict[str, Channel]:
        with self._lock:
            return dict(self._channels)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._channels

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())
