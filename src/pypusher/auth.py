"""Channel authorization for PyPusher."""

import inspect
import json
from collections.abc import Awaitable, Mapping
from typing import Any, Protocol

import structlog

from .exceptions import AuthorizationError, ConfigurationError, ErrorCode
from .types import AuthorizationResult

logger = structlog.get_logger(__name__)


class Authorizer(Protocol):
    """
    Authorizes private and presence channel subscriptions.

    ``authorize`` may be a plain method or a coroutine. It returns an
    ``AuthorizationResult``, a mapping or JSON string with ``auth`` and
    optional ``channel_data`` members, or an ``(auth, channel_data)`` tuple.
    """

    def authorize(self, channel_name: str, socket_id: str) -> Any | Awaitable[Any]: ...


def parse_authorization(result: Any) -> AuthorizationResult:
    """Normalize an authorizer's return value."""
    if isinstance(result, AuthorizationResult):
        return result

    if isinstance(result, (str, bytes)):
        try:
            result = json.loads(result)
        except json.JSONDecodeError as e:
            raise AuthorizationError(f"Authorizer returned invalid JSON: {e}") from e

    if isinstance(result, tuple) and len(result) == 2:
        auth, channel_data = result
        return AuthorizationResult(auth=auth, channel_data=channel_data)

    if isinstance(result, Mapping) and result.get("auth"):
        return AuthorizationResult(auth=result["auth"], channel_data=result.get("channel_data"))

    raise AuthorizationError(f"Authorizer returned an unusable value: {result!r}")


class AuthorizationGate:
    """Runs the authorizer before a protected channel's subscribe frame is sent."""

    def __init__(self, authorizer: Authorizer | None):
        self.authorizer = authorizer

    def ensure_configured(self) -> None:
        """
        Raises:
            ConfigurationError: If no authorizer is configured
        """
        if self.authorizer is None:
            raise ConfigurationError(
                "An authorizer must be configured to use private or presence channels",
                ErrorCode.CHANNEL_AUTHORIZER_NOT_SET,
            )

    async def authorize(self, channel_name: str, socket_id: str | None) -> AuthorizationResult:
        """
        Authorize a channel for the current socket.

        Raises:
            ConfigurationError: If no authorizer is configured
            AuthorizationError: If the authorizer fails or returns garbage
        """
        self.ensure_configured()

        try:
            result = self.authorizer.authorize(channel_name, socket_id)
            if inspect.isawaitable(result):
                result = await result
            authorization = parse_authorization(result)
        except AuthorizationError as e:
            e.channel_name = channel_name
            logger.error("auth.invalid_result", channel=channel_name, error=str(e))
            raise
        except Exception as e:
            logger.error("auth.authorizer_error", channel=channel_name, error=str(e))
            raise AuthorizationError(
                f"Failed to authorize channel {channel_name}: {e}", channel_name
            ) from e

        logger.debug("auth.authorized", channel=channel_name, socket_id=socket_id)
        return authorization
