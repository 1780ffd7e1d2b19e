"""Pusher protocol constants and frame builders."""

import json
from typing import Any

from .types import AuthorizationResult, ChannelType

LIBRARY_VERSION = "0.1.0"
PROTOCOL_VERSION = 5

SECURE_SCHEME = "wss"
INSECURE_SCHEME = "ws"

PRIVATE_CHANNEL_PREFIX = "private-"
PRESENCE_CHANNEL_PREFIX = "presence-"
CLIENT_EVENT_PREFIX = "client-"

# Client to service
CHANNEL_SUBSCRIBE = "pusher:subscribe"
CHANNEL_UNSUBSCRIBE = "pusher:unsubscribe"
PONG = "pusher:pong"

# Service to client
CONNECTION_ESTABLISHED = "pusher:connection_established"
ERROR = "pusher:error"
PING = "pusher:ping"
SUBSCRIPTION_SUCCEEDED = "pusher_internal:subscription_succeeded"
MEMBER_ADDED = "pusher_internal:member_added"
MEMBER_REMOVED = "pusher_internal:member_removed"

# Re-emitted to application handlers
PUBLIC_SUBSCRIPTION_SUCCEEDED = "pusher:subscription_succeeded"
PUBLIC_MEMBER_ADDED = "pusher:member_added"
PUBLIC_MEMBER_REMOVED = "pusher:member_removed"


def channel_type_for(channel_name: str) -> ChannelType:
    """Resolve a channel type from its name prefix, ignoring case."""
    lowered = channel_name.lower()

    if lowered.startswith(PRIVATE_CHANNEL_PREFIX):
        return ChannelType.PRIVATE
    if lowered.startswith(PRESENCE_CHANNEL_PREFIX):
        return ChannelType.PRESENCE
    return ChannelType.PUBLIC


def build_url(
    app_key: str, host: str, encrypted: bool, client_name: str, version: str
) -> str:
    """Build the websocket URL for an application."""
    scheme = SECURE_SCHEME if encrypted else INSECURE_SCHEME
    return (
        f"{scheme}://{host}/app/{app_key}"
        f"?protocol={PROTOCOL_VERSION}&client={client_name}&version={version}"
    )


def subscribe_frame(
    channel_name: str, authorization: AuthorizationResult | None = None
) -> dict[str, Any]:
    """Build a subscribe frame, with auth fields for protected channels."""
    data: dict[str, Any] = {"channel": channel_name}

    if authorization is not None:
        data["auth"] = authorization.auth
        data["channel_data"] = authorization.channel_data

    return {"event": CHANNEL_SUBSCRIBE, "data": data}


def unsubscribe_frame(channel_name: str) -> dict[str, Any]:
    """Build an unsubscribe frame."""
    return {"event": CHANNEL_UNSUBSCRIBE, "data": {"channel": channel_name}}


def client_event_frame(channel_name: str, event_name: str, data: Any) -> dict[str, Any]:
    """Build a client-triggered event frame."""
    return {"event": event_name, "channel": channel_name, "data": data}


def pong_frame() -> dict[str, Any]:
    return {"event": PONG, "data": {}}


def decode_data(data: Any) -> Any:
    """
    Decode the ``data`` member of an inbound frame.

    The service sends ``data`` as a JSON encoded string for most events.
    Strings that are not JSON are returned unchanged.
    """
    if not isinstance(data, str):
        return data

    try:
        return json.loads(data)
    except json.JSONDecodeError:
        return data
