"""Presence channel membership tracking for PyPusher."""

import dataclasses
import json
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from .channel import Channel
from .exceptions import ErrorCode, ProtocolError
from .protocol import PUBLIC_MEMBER_ADDED, PUBLIC_MEMBER_REMOVED, PUBLIC_SUBSCRIPTION_SUCCEEDED
from .types import BindResult, ChannelType, PusherEvent

if TYPE_CHECKING:
    from .client import PusherClient

logger = structlog.get_logger(__name__)


class PresenceChannel(Channel):
    """
    A channel that tracks which members are currently subscribed.

    Member info is converted to ``member_type`` when one is bound. A channel
    created by a plain ``subscribe`` call has no member type and keeps member
    info exactly as the service sent it.

    Attributes:
        members (dict): Member id to member info
        member_type (type, optional): The member info shape of this channel
        me_id (str, optional): The local member id, taken from the channel
            data the authorizer returned
    """

    channel_type = ChannelType.PRESENCE

    def __init__(self, name: str, client: "PusherClient", member_type: type | None = None):
        super().__init__(name, client)
        self.member_type = member_type
        self.members: dict[str, Any] = {}
        self.me_id: str | None = None

    @property
    def is_presence(self) -> bool:
        return True

    @property
    def me(self) -> Any:
        """The local member's info, once the subscription is acknowledged."""
        if self.me_id is None:
            return None
        return self.members.get(self.me_id)

    @property
    def member_count(self) -> int:
        return len(self.members)

    def set_channel_data(self, channel_data: str | None) -> None:
        """Remember the local member id from the authorizer's channel data."""
        if not channel_data:
            return

        try:
            self.me_id = str(json.loads(channel_data)["user_id"])
        except (json.JSONDecodeError, KeyError, TypeError):
            logger.warning("presence.invalid_channel_data", channel=self.name)

    def parse_member(self, info: Any) -> Any:
        """
        Convert member info to this channel's member type.

        Keys a dataclass member type does not declare are dropped.

        Raises:
            ProtocolError: If the info does not fit the member type
        """
        member_type = self.member_type
        if member_type is None or isinstance(info, member_type):
            return info

        try:
            if isinstance(info, dict):
                if dataclasses.is_dataclass(member_type):
                    names = {f.name for f in dataclasses.fields(member_type) if f.init}
                    info = {key: value for key, value in info.items() if key in names}
                return member_type(**info)
            return member_type(info)
        except (TypeError, ValueError) as e:
            raise ProtocolError(
                f"Member info does not match {member_type.__name__} on {self.name}: {e}",
                ErrorCode.MALFORMED_MESSAGE,
            ) from e

    def _presence_payload(self, data: Any) -> tuple[dict, list]:
        if not isinstance(data, dict) or data.get("presence") is None:
            return {}, []

        presence = data["presence"]
        members = presence.get("hash", {}) if isinstance(presence, dict) else None
        ids = presence.get("ids", []) if isinstance(presence, dict) else None
        if not isinstance(members, dict) or not isinstance(ids, list):
            raise ProtocolError(
                f"Malformed presence data on {self.name}", ErrorCode.MALFORMED_MESSAGE
            )
        return members, ids

    async def subscription_succeeded(self, data: Any) -> None:
        """
        Mark the channel subscribed and replace the member map with the one
        in the acknowledgement.

        Members whose info does not convert are reported and left out.

        Raises:
            ProtocolError: If the presence data itself is malformed
        """
        self.subscribed = True
        self._subscribed_event.set()
        self.members = {}

        members, ids = self._presence_payload(data)
        for member_id, info in members.items():
            try:
                self.members[str(member_id)] = self.parse_member(info)
            except ProtocolError as e:
                await self.client.error_occurred(e)
        # Members listed in "ids" without info still count as present
        for member_id in ids:
            self.members.setdefault(str(member_id), None)

        logger.info("presence.subscribed", channel=self.name, member_count=len(self.members))

        await self.emit_event(
            PusherEvent(event=PUBLIC_SUBSCRIPTION_SUCCEEDED, data=self.members, channel=self.name)
        )

    async def add_member(self, data: Any) -> Any:
        """
        Add a member from a member added payload.

        Returns:
            The converted member info
        """
        member_id = str(data["user_id"])
        member = self.parse_member(data.get("user_info"))
        self.members[member_id] = member

        logger.debug("presence.member_added", channel=self.name, member_id=member_id)

        await self.emit_event(
            PusherEvent(
                event=PUBLIC_MEMBER_ADDED, data=member, channel=self.name, user_id=member_id
            )
        )
        return member

    async def remove_member(self, data: Any) -> Any:
        """
        Remove a member from a member removed payload.

        Returns:
            The removed member info, or None if the member was unknown
        """
        member_id = str(data["user_id"])
        if member_id not in self.members:
            return None

        member = self.members.pop(member_id)

        logger.debug("presence.member_removed", channel=self.name, member_id=member_id)

        await self.emit_event(
            PusherEvent(
                event=PUBLIC_MEMBER_REMOVED, data=member, channel=self.name, user_id=member_id
            )
        )
        return member

    def on_member_added(self, callback: Callable) -> Callable:
        """Register a handler called with a ``PusherEvent`` when a member joins."""
        return self.bind(PUBLIC_MEMBER_ADDED, callback)

    def on_member_removed(self, callback: Callable) -> Callable:
        """Register a handler called with a ``PusherEvent`` when a member leaves."""
        return self.bind(PUBLIC_MEMBER_REMOVED, callback)

    def mark_unsubscribed(self) -> None:
        super().mark_unsubscribed()
        self.members.clear()


class MemberTypeRegistry:
    """
    Member types bound to presence channel names.

    A binding is made on the first ``subscribe_presence`` call for a name and
    never changes afterwards, so a channel re-created later gets the same
    member type.
    """

    def __init__(self):
        self._types: dict[str, type] = {}
        self._lock = threading.Lock()

    def bind(self, channel_name: str, member_type: type) -> BindResult:
        """Bind a member type unless a different one is already bound."""
        with self._lock:
            existing = self._types.setdefault(channel_name, member_type)

        if existing is not member_type:
            logger.warning(
                "presence.member_type_conflict",
                channel=channel_name,
                bound=existing.__name__,
                requested=member_type.__name__,
            )
            return BindResult("conflict", existing)

        return BindResult("ok", existing)

    def get(self, channel_name: str) -> type | None:
        with self._lock:
            return self._types.get(channel_name)

    def create_channel(self, channel_name: str, client: "PusherClient") -> PresenceChannel:
        """Create a presence channel with the member type bound to its name, if any."""
        return PresenceChannel(channel_name, client, self.get(channel_name))
