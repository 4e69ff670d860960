"""
Last.fm scrobbling.

Uses the mobile-session flow: username and password are exchanged once for a
session key, which then signs every "now playing" and "scrobble" call.
"""

import hashlib
import time
from typing import Any, Optional

import requests
from loguru import logger

from pmu.core.config import Config
from pmu.core.exceptions import LastfmError

API_ROOT = "https://ws.audioscrobbler.com/2.0/"


def sign(params: dict[str, str], shared_secret: str) -> str:
    """Compute the api_sig for a set of call parameters.

    Parameters are concatenated as name+value in name order, followed by the
    shared secret, and MD5-hashed. ``format`` and ``callback`` are excluded.
    """
    signed = "".join(
        f"{key}{params[key]}"
        for key in sorted(params)
        if key not in ("format", "callback")
    )
    return hashlib.md5((signed + shared_secret).encode("utf-8")).hexdigest()


class LastfmScrobbler:
    """Authenticated Last.fm client."""

    def __init__(
        self,
        api_key: str,
        shared_secret: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.shared_secret = shared_secret
        self.session = session or requests.Session()
        self.timeout = timeout
        self.session_key: Optional[str] = None

    def _call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        """POST a signed API call and return the decoded response.

        Raises:
            LastfmError: On network failures and API errors
        """
        data = {k: str(v) for k, v in params.items() if v is not None}
        data["method"] = method
        data["api_key"] = self.api_key
        if self.session_key:
            data["sk"] = self.session_key
        data["api_sig"] = sign(data, self.shared_secret)
        data["format"] = "json"

        try:
            response = self.session.post(API_ROOT, data=data, timeout=self.timeout)
            body = response.json()
        except requests.RequestException as e:
            raise LastfmError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise LastfmError(f"{method} returned invalid JSON: {e}") from e

        if "error" in body:
            raise LastfmError(
                f"{method} failed: {body.get('message', 'unknown error')}",
                code=body.get("error"),
            )
        return body

    def authenticate(self, username: str, password: str) -> None:
        """Exchange credentials for a session key."""
        self.session_key = None
        body = self._call(
            "auth.getMobileSession", {"username": username, "password": password}
        )
        try:
            self.session_key = body["session"]["key"]
        except (KeyError, TypeError):
            raise LastfmError("auth.getMobileSession returned no session key") from None
        logger.info(f"Authenticated to Last.fm as {username}")

    def now_playing(self, artist: str, title: str, album: Optional[str] = None) -> None:
        self._call(
            "track.updateNowPlaying",
            {"artist": artist, "track": title, "album": album or None},
        )

    def scrobble(
        self,
        artist: str,
        title: str,
        album: Optional[str] = None,
        timestamp: Optional[float] = None,
    ) -> None:
        """Submit a listen.

        Args:
            timestamp: Unix time the song started playing (default: now)
        """
        self._call(
            "track.scrobble",
            {
                "artist": artist,
                "track": title,
                "album": album or None,
                "timestamp": int(timestamp if timestamp is not None else time.time()),
            },
        )
        logger.info(f"Scrobbled {artist} - {title}")


class NullScrobbler:
    """Stand-in used when Last.fm is not configured or login failed."""

    def now_playing(self, artist, title, album=None) -> None:
        pass

    def scrobble(self, artist, title, album=None, timestamp=None) -> None:
        pass


def lastfm_client(config: Config):
    """Log in to Last.fm if credentials are configured, otherwise return a no-op scrobbler."""
    lastfm = config.lastfm
    if not lastfm.enabled:
        logger.debug("Last.fm scrobbling disabled (credentials not configured)")
        return NullScrobbler()

    scrobbler = LastfmScrobbler(lastfm.api_key, lastfm.shared_secret)
    try:
        scrobbler.authenticate(lastfm.username, lastfm.password)
    except LastfmError as e:
        logger.warning(f"Last.fm login failed, scrobbling disabled: {e}")
        return NullScrobbler()
    return scrobbler
