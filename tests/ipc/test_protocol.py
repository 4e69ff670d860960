"""Tests for the wire message encoding."""

import json

import pytest

from pmu.core.exceptions import ProtocolError
from pmu.ipc.protocol import MAX_MESSAGE_SIZE, Next, Pause, Play, Skip, Stop, decode, encode


class TestEncode:
    def test_one_json_line(self) -> None:
        """Test a message encodes to a single newline-terminated JSON object."""
        data = encode(Play(path="/music/a.ogg", now=True))

        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1
        assert json.loads(data) == {"command": "play", "path": "/music/a.ogg", "now": True}

    def test_empty_generation_is_omitted(self) -> None:
        """Test messages without a generation carry only the command."""
        assert json.loads(encode(Skip())) == {"command": "skip"}
        assert json.loads(encode(Next(generation=3))) == {"command": "next", "generation": 3}

    def test_non_message_rejected(self) -> None:
        with pytest.raises(ProtocolError):
            encode("play")

    @pytest.mark.parametrize(
        "message",
        [Stop(), Pause(), Play(path="/x.mp3"), Play(path="/ü ñ.flac", now=True), Skip(1), Next()],
    )
    def test_decode_inverts_encode(self, message) -> None:
        """Test every message kind survives the wire."""
        assert decode(encode(message)) == message


class TestDecode:
    def test_missing_now_defaults_false(self) -> None:
        assert decode(b'{"command": "play", "path": "/a.ogg"}') == Play(path="/a.ogg")

    def test_trailing_newline_optional(self) -> None:
        """Test a message terminated by EOF instead of newline decodes."""
        assert decode(b'{"command": "pause"}') == Pause()

    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"not json",
            b"[1, 2]",
            b'{"path": "/a.ogg"}',
            b'{"command": "rewind"}',
            b'{"command": "play"}',
            b'{"command": "play", "path": ""}',
            b'{"command": "play", "path": 7}',
            b'{"command": "play", "path": "/a.ogg", "now": "yes"}',
            b'{"command": "skip", "generation": "1"}',
            b'{"command": "next", "generation": true}',
            b"\xff\xfe",
        ],
    )
    def test_malformed_messages_rejected(self, data) -> None:
        """Test malformed input raises ProtocolError."""
        with pytest.raises(ProtocolError):
            decode(data)

    def test_oversized_message_rejected(self) -> None:
        path = "/" + "a" * MAX_MESSAGE_SIZE
        with pytest.raises(ProtocolError, match="too large"):
            decode(json.dumps({"command": "play", "path": path}).encode())

    def test_protocol_error_is_value_error(self) -> None:
        """Test callers catching ValueError also catch decode failures."""
        with pytest.raises(ValueError):
            decode(b"{")
