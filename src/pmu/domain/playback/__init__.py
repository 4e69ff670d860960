"""Playback domain - audio backend, song timer and the playback state machine.

This domain handles:
- mpv processes controlled via JSON IPC, one per song
- Elapsed time accounting across pause/resume
- The queue, current song and completion watchers
"""

from .backend import MpvBackend, MpvHandle
from .daemon import CurrentSong, PlaybackDaemon, PlaybackState
from .timer import SongTimer

__all__ = [
    "MpvBackend",
    "MpvHandle",
    "CurrentSong",
    "PlaybackDaemon",
    "PlaybackState",
    "SongTimer",
]
