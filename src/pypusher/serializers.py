"""Frame serialization for PyPusher."""

import json
from abc import ABC, abstractmethod
from typing import Any

from .exceptions import ErrorCode, ProtocolError


class Serializer(ABC):
    """Base class for frame serializers."""

    @abstractmethod
    def serialize(self, data: dict[str, Any]) -> str:
        """Serialize a frame to text."""
        pass

    @abstractmethod
    def deserialize(self, data: str | bytes) -> dict[str, Any]:
        """Deserialize text to a frame."""
        pass


class JSONSerializer(Serializer):
    """JSON frame serializer, the only encoding protocol 5 speaks."""

    def serialize(self, data: dict[str, Any]) -> str:
        """Serialize a frame to a JSON string."""
        try:
            return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise ProtocolError(
                f"Failed to serialize frame to JSON: {e}", ErrorCode.MALFORMED_MESSAGE
            ) from e

    def deserialize(self, data: str | bytes) -> dict[str, Any]:
        """Deserialize a JSON frame; it must be an object with an ``event`` member."""
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            message = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(
                f"Failed to deserialize JSON frame: {e}", ErrorCode.MALFORMED_MESSAGE
            ) from e

        if not isinstance(message, dict) or "event" not in message:
            raise ProtocolError(
                "Frame is not an object with an event member", ErrorCode.MALFORMED_MESSAGE
            )

        return message
