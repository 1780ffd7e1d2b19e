"""Exception classes for PyPusher."""

from enum import IntEnum

from .types import ConnectionState


class ErrorCode(IntEnum):
    """Error codes attached to every PyPusher error."""

    UNKNOWN = 0
    APPLICATION_KEY_NOT_SET = 1
    CHANNEL_AUTHORIZER_NOT_SET = 2
    INVALID_CHANNEL_NAME = 3
    MEMBER_TYPE_CONFLICT = 4
    PRESENCE_CHANNEL_MISMATCH = 5
    CHANNEL_AUTHORIZATION_FAILED = 6
    INVALID_OPTIONS = 7
    CALLBACK_FAILED = 8
    CHANNEL_NOT_SUBSCRIBED = 9
    INVALID_CLIENT_EVENT = 10
    MALFORMED_MESSAGE = 11
    SERVER_ERROR = 12
    NOT_CONNECTED = 13
    CONNECT_TIMEOUT = 14


class PusherError(Exception):
    """Base exception class for PyPusher errors."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN):
        super().__init__(message)
        self.code = code


class ConfigurationError(PusherError):
    """Exception raised for invalid configuration or arguments."""

    pass


class ProtocolError(PusherError):
    """Exception raised when the service or local state breaks the protocol."""

    pass


class AuthorizationError(PusherError):
    """Exception raised when a channel cannot be authorized."""

    def __init__(self, message: str, channel_name: str | None = None):
        super().__init__(message, ErrorCode.CHANNEL_AUTHORIZATION_FAILED)
        self.channel_name = channel_name


class ChannelError(PusherError):
    """Exception raised for channel misuse."""

    def __init__(
        self, message: str, channel_name: str | None = None, code: ErrorCode = ErrorCode.UNKNOWN
    ):
        super().__init__(message, code)
        self.channel_name = channel_name


class ConnectionError(PusherError):
    """Exception raised for connection-related errors."""

    pass


class CallbackError(PusherError):
    """Raised on the error path when an application handler fails."""

    callback_name = "callback"

    def __init__(self, original: Exception):
        super().__init__(
            f"Error invoking the {self.callback_name} handler: {original}",
            ErrorCode.CALLBACK_FAILED,
        )
        self.original = original
        self.__cause__ = original


class ConnectedError(CallbackError):
    """Wraps an exception raised by a connected handler."""

    callback_name = "connected"


class DisconnectedError(CallbackError):
    """Wraps an exception raised by a disconnected handler."""

    callback_name = "disconnected"


class ConnectionStateChangedError(CallbackError):
    """Wraps an exception raised by a state changed handler."""

    callback_name = "state changed"

    def __init__(self, state: ConnectionState, original: Exception):
        super().__init__(original)
        self.state = state
