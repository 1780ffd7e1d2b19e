"""PyPusher: asyncio client for Pusher protocol real-time services."""

# Core components
from .channel import Channel, PrivateChannel
from .client import PusherClient, default_transport_factory

# Configuration
from .config import LoggingConfig, PusherOptions, configure_logging
from .connection import Connection, Dispatcher, Transport

# Authorization
from .auth import AuthorizationGate, Authorizer
from .events import EventEmitter

# Types and exceptions
from .exceptions import (
    AuthorizationError,
    CallbackError,
    ChannelError,
    ConfigurationError,
    ConnectedError,
    ConnectionError,
    ConnectionStateChangedError,
    DisconnectedError,
    ErrorCode,
    ProtocolError,
    PusherError,
)
from .presence import MemberTypeRegistry, PresenceChannel
from .protocol import LIBRARY_VERSION as __version__
from .registry import ChannelRegistry
from .serializers import JSONSerializer, Serializer
from .types import (
    AuthorizationResult,
    BindResult,
    ChannelType,
    ConnectionState,
    PusherEvent,
)

__all__ = [
    # Core API
    "PusherClient",
    "default_transport_factory",
    "Channel",
    "PrivateChannel",
    "PresenceChannel",
    "ChannelRegistry",
    "MemberTypeRegistry",
    "EventEmitter",
    # Transport
    "Connection",
    "Dispatcher",
    "Transport",
    # Authorization
    "Authorizer",
    "AuthorizationGate",
    # Configuration
    "PusherOptions",
    "LoggingConfig",
    "configure_logging",
    # Serialization
    "Serializer",
    "JSONSerializer",
    # Types
    "AuthorizationResult",
    "BindResult",
    "ChannelType",
    "ConnectionState",
    "PusherEvent",
    # Exceptions
    "PusherError",
    "ConfigurationError",
    "ProtocolError",
    "AuthorizationError",
    "ChannelError",
    "ConnectionError",
    "CallbackError",
    "ConnectedError",
    "DisconnectedError",
    "ConnectionStateChangedError",
    "ErrorCode",
]
