"""Tests for the Last.fm scrobbler."""

import hashlib
from unittest.mock import MagicMock

import pytest
import requests

from pmu.core.exceptions import LastfmError
from pmu.domain.notifiers.lastfm import (
    API_ROOT,
    LastfmScrobbler,
    NullScrobbler,
    lastfm_client,
    sign,
)


def response(body) -> MagicMock:
    mock = MagicMock()
    mock.json.return_value = body
    return mock


@pytest.fixture
def session() -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.post.return_value = response({"session": {"name": "user", "key": "SK"}})
    return session


@pytest.fixture
def scrobbler(session) -> LastfmScrobbler:
    return LastfmScrobbler("KEY", "SECRET", session=session)


def posted(session) -> dict:
    return session.post.call_args.kwargs["data"]


class TestSign:
    def test_signature_orders_params_and_appends_secret(self) -> None:
        params = {"method": "auth.getMobileSession", "api_key": "KEY", "password": "pw"}
        expected = hashlib.md5(
            b"api_keyKEYmethodauth.getMobileSessionpasswordpwSECRET"
        ).hexdigest()

        assert sign(params, "SECRET") == expected

    def test_format_not_signed(self) -> None:
        params = {"method": "x"}
        assert sign({**params, "format": "json"}, "s") == sign(params, "s")


class TestLastfmScrobbler:
    """Tests for signed API calls."""

    def test_authenticate_stores_session_key(self, scrobbler, session) -> None:
        scrobbler.authenticate("user", "pw")

        assert scrobbler.session_key == "SK"
        data = posted(session)
        assert session.post.call_args.args[0] == API_ROOT
        assert data["method"] == "auth.getMobileSession"
        assert data["format"] == "json"
        assert "sk" not in data

    def test_calls_after_login_are_signed_with_session(self, scrobbler, session) -> None:
        """Test now playing carries the session key and a valid signature."""
        scrobbler.authenticate("user", "pw")
        session.post.return_value = response({"nowplaying": {}})

        scrobbler.now_playing("xi", "Blue Zenith")

        data = posted(session)
        assert data["sk"] == "SK"
        assert data["artist"] == "xi"
        assert data["track"] == "Blue Zenith"
        assert "album" not in data
        unsigned = {k: v for k, v in data.items() if k not in ("api_sig", "format")}
        assert data["api_sig"] == sign(unsigned, "SECRET")

    def test_scrobble_sends_start_timestamp(self, scrobbler, session) -> None:
        scrobbler.authenticate("user", "pw")
        session.post.return_value = response({"scrobbles": {}})

        scrobbler.scrobble("xi", "Blue Zenith", "FOUR DIMENSIONS", timestamp=1700000000.7)

        data = posted(session)
        assert data["method"] == "track.scrobble"
        assert data["timestamp"] == "1700000000"
        assert data["album"] == "FOUR DIMENSIONS"

    def test_api_error_raises(self, scrobbler, session) -> None:
        session.post.return_value = response({"error": 4, "message": "Authentication Failed"})

        with pytest.raises(LastfmError, match="Authentication Failed") as exc_info:
            scrobbler.authenticate("user", "wrong")

        assert exc_info.value.code == 4
        assert scrobbler.session_key is None

    def test_network_error_raises(self, scrobbler, session) -> None:
        session.post.side_effect = requests.ConnectionError("offline")

        with pytest.raises(LastfmError, match="offline"):
            scrobbler.now_playing("a", "b")

    def test_invalid_json_raises(self, scrobbler, session) -> None:
        session.post.return_value.json.side_effect = ValueError("Expecting value")

        with pytest.raises(LastfmError, match="invalid JSON"):
            scrobbler.now_playing("a", "b")


class TestLastfmClient:
    """Tests for building the scrobbler from configuration."""

    def test_missing_credentials_disable_scrobbling(self, config) -> None:
        assert isinstance(lastfm_client(config), NullScrobbler)

    def test_failed_login_disables_scrobbling(self, config, monkeypatch) -> None:
        config.lastfm.username = "user"
        config.lastfm.password = "pw"
        config.lastfm.api_key = "KEY"
        config.lastfm.shared_secret = "SECRET"

        def fail(self, username, password):
            raise LastfmError("Invalid credentials", code=4)

        monkeypatch.setattr(LastfmScrobbler, "authenticate", fail)

        assert isinstance(lastfm_client(config), NullScrobbler)

    def test_successful_login(self, config, monkeypatch) -> None:
        config.lastfm.username = "user"
        config.lastfm.password = "pw"
        config.lastfm.api_key = "KEY"
        config.lastfm.shared_secret = "SECRET"
        monkeypatch.setattr(LastfmScrobbler, "authenticate", lambda self, u, p: None)

        client = lastfm_client(config)

        assert isinstance(client, LastfmScrobbler)
        assert client.api_key == "KEY"
