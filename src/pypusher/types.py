"""Core types and data structures for PyPusher."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class ConnectionState(Enum):
    """Connection states."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"
    DISCONNECTED = "disconnected"


class ChannelType(Enum):
    """Channel types, decided by the channel name prefix."""

    PUBLIC = "public"
    PRIVATE = "private"
    PRESENCE = "presence"

    @property
    def requires_authorization(self) -> bool:
        return self is not ChannelType.PUBLIC


@dataclass
class PusherEvent:
    """An inbound event received from the service."""

    event: str
    data: Any = None
    channel: str | None = None
    user_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, message: dict[str, Any]) -> "PusherEvent":
        """Create an event from a decoded frame."""
        return cls(
            event=message["event"],
            data=message.get("data"),
            channel=message.get("channel"),
            user_id=message.get("user_id"),
            raw=message,
        )


@dataclass
class AuthorizationResult:
    """Result of authorizing a private or presence channel."""

    auth: str
    channel_data: str | None = None


@dataclass
class BindResult:
    """Result of binding a member type to a presence channel name."""

    status: Literal["ok", "conflict"]
    member_type: type

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @property
    def is_conflict(self) -> bool:
        return self.status == "conflict"
