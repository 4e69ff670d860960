"""
Library domain models.

Contains data structures describing what is known about an audio file.
"""

from typing import NamedTuple, Optional


class Origin(NamedTuple):
    """Where a song comes from, shown as a link button in presence."""

    name: str
    link: str


class Metadata(NamedTuple):
    """Song metadata attached to the current song once it starts playing."""

    artist: Optional[str] = None
    title: Optional[str] = None
    album: Optional[str] = None
    origin: Optional[Origin] = None
