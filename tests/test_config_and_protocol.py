"""Tests for options, frame builders and authorization parsing."""

import pytest

from pypusher import (
    AuthorizationError,
    AuthorizationResult,
    ChannelType,
    JSONSerializer,
    ProtocolError,
    PusherOptions,
)
from pypusher.auth import AuthorizationGate, parse_authorization
from pypusher.protocol import build_url, channel_type_for, decode_data, subscribe_frame


class TestPusherOptions:
    """Test option loading and validation."""

    def test_defaults_are_valid(self):
        options = PusherOptions()

        assert options.validate() == []
        assert options.resolved_host == "ws.pusherapp.com"
        assert options.encrypted

    def test_cluster_host(self):
        assert PusherOptions(cluster="eu").resolved_host == "ws-eu.pusher.com"
        assert PusherOptions(host="example.com", cluster="eu").resolved_host == "example.com"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PYPUSHER_HOST", "pusher.internal")
        monkeypatch.setenv("PYPUSHER_ENCRYPTED", "false")
        monkeypatch.setenv("PYPUSHER_CONNECT_TIMEOUT", "2.5")
        monkeypatch.setenv("PYPUSHER_LOG_LEVEL", "debug")

        options = PusherOptions.from_env()

        assert options.host == "pusher.internal"
        assert not options.encrypted
        assert options.connect_timeout == 2.5
        assert options.logging.level == "DEBUG"

    def test_from_dict_round_trip(self):
        data = {
            "host": "pusher.internal",
            "encrypted": False,
            "client_name": "worker",
            "logging": {"level": "WARNING", "structured": False},
        }

        options = PusherOptions.from_dict(data)

        assert options.to_dict()["host"] == "pusher.internal"
        assert options.to_dict()["logging"] == {"level": "WARNING", "structured": False}
        assert options.client_name == "worker"

    def test_validate_collects_errors(self):
        options = PusherOptions(host="", connect_timeout=-1, authorizer=object())
        options.logging.level = "LOUD"

        errors = options.validate()

        assert len(errors) == 4


class TestProtocol:
    """Test channel type resolution, URLs and frames."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("orders", ChannelType.PUBLIC),
            ("private-orders", ChannelType.PRIVATE),
            ("PRIVATE-orders", ChannelType.PRIVATE),
            ("presence-room", ChannelType.PRESENCE),
            ("Presence-Room", ChannelType.PRESENCE),
            ("privateorders", ChannelType.PUBLIC),
        ],
    )
    def test_channel_type_for(self, name, expected):
        assert channel_type_for(name) == expected

    def test_build_url(self):
        assert build_url("key", "localhost:6001", False, "pypusher", "0.1.0") == (
            "ws://localhost:6001/app/key?protocol=5&client=pypusher&version=0.1.0"
        )

    def test_subscribe_frame_with_auth(self):
        frame = subscribe_frame("presence-room", AuthorizationResult("key:sig", '{"user_id":1}'))

        assert frame == {
            "event": "pusher:subscribe",
            "data": {"channel": "presence-room", "auth": "key:sig", "channel_data": '{"user_id":1}'},
        }

    def test_decode_data(self):
        assert decode_data('{"a": 1}') == {"a": 1}
        assert decode_data("not json") == "not json"
        assert decode_data({"a": 1}) == {"a": 1}
        assert decode_data(None) is None

    def test_serializer_rejects_non_frames(self):
        serializer = JSONSerializer()

        with pytest.raises(ProtocolError):
            serializer.deserialize("[1, 2]")
        with pytest.raises(ProtocolError):
            serializer.deserialize("{broken")

        assert serializer.deserialize(b'{"event": "x"}') == {"event": "x"}


class TestAuthorizationParsing:
    """Test the accepted authorizer result forms."""

    @pytest.mark.parametrize(
        "result",
        [
            AuthorizationResult("key:sig", "data"),
            {"auth": "key:sig", "channel_data": "data"},
            '{"auth": "key:sig", "channel_data": "data"}',
            ("key:sig", "data"),
        ],
    )
    def test_accepted_forms(self, result):
        assert parse_authorization(result) == AuthorizationResult("key:sig", "data")

    @pytest.mark.parametrize("result", [None, {}, "not json", 42, {"channel_data": "x"}])
    def test_rejected_forms(self, result):
        with pytest.raises(AuthorizationError):
            parse_authorization(result)

    @pytest.mark.asyncio
    async def test_gate_names_channel_on_bad_result(self):
        class BadAuthorizer:
            def authorize(self, channel_name, socket_id):
                return {"nothing": "useful"}

        with pytest.raises(AuthorizationError) as exc_info:
            await AuthorizationGate(BadAuthorizer()).authorize("private-x", "1.2")

        assert exc_info.value.channel_name == "private-x"
