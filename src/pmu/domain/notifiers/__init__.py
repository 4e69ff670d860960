"""Notifiers - Discord Rich Presence and Last.fm scrobbling.

Both are optional: when unconfigured or unreachable a null object with the
same methods is used instead.
"""

from .discord import DiscordPresence, NullPresence, presence_client
from .lastfm import LastfmScrobbler, NullScrobbler, lastfm_client

__all__ = [
    "DiscordPresence",
    "NullPresence",
    "presence_client",
    "LastfmScrobbler",
    "NullScrobbler",
    "lastfm_client",
]
