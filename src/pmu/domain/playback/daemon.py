"""
Playback queue and state machine.

The daemon's core loop is the only consumer of a single event channel. The
connection listener, one completion watcher per song, signal handlers and the
loop itself all produce into it, so every transition runs on one thread and
the queue and current song need no locking.

Each started song gets the next generation number. Completion watchers and
the Skip/Next messages the loop synthesizes carry the generation they were
meant for; once another song has started they are stale and dropped.
"""

import queue
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from pmu.core.config import Config
from pmu.core.exceptions import DecodeError
from pmu.domain.library.metadata import find_metadata
from pmu.domain.library.models import Metadata
from pmu.domain.notifiers.discord import NullPresence
from pmu.domain.notifiers.lastfm import NullScrobbler
from pmu.ipc.protocol import Message, Next, Pause, Play, Skip, Stop

from .timer import Clock, SongTimer


class PlaybackState(str, Enum):
    IDLE = "idle"  # No song has been started yet
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass
class CurrentSong:
    """The song being played. At most one exists at a time."""

    path: Path
    handle: Any  # Backend playback handle
    metadata: Metadata
    generation: int
    timer: SongTimer
    started_at: float = field(default_factory=time.time)  # Unix time, for scrobbles

    def display_name(self) -> str:
        if self.metadata.artist and self.metadata.title:
            return f"{self.metadata.artist} - {self.metadata.title}"
        return self.metadata.title or self.path.name


class PlaybackDaemon:
    """Owns the pending queue and the current song and applies messages to them."""

    def __init__(
        self,
        config: Config,
        backend,
        presence=None,
        scrobbler=None,
        resolve_metadata: Callable[[Path], Metadata] = find_metadata,
        clock: Clock = time.monotonic,
        wall_clock: Clock = time.time,
        events: Optional[queue.Queue] = None,
    ):
        """
        Args:
            config: Loaded configuration (player and lastfm sections are used)
            backend: Audio backend with ``load(path) -> handle``
            presence: Presence notifier (default: no-op)
            scrobbler: Scrobble notifier (default: no-op)
            resolve_metadata: Metadata lookup for a file path
            clock: Monotonic clock used for elapsed time
            wall_clock: Unix clock used for presence start and scrobble timestamps
            events: Channel to consume (default: a new queue)
        """
        self.config = config
        self.backend = backend
        self.presence = presence or NullPresence()
        self.scrobbler = scrobbler or NullScrobbler()
        self.resolve_metadata = resolve_metadata
        self.clock = clock
        self.wall_clock = wall_clock
        self.events: queue.Queue = events if events is not None else queue.Queue()

        self.queue: deque[Path] = deque()
        self.song: Optional[CurrentSong] = None
        self.generation = 0
        self.stopped = False

    @property
    def state(self) -> PlaybackState:
        if self.stopped:
            return PlaybackState.STOPPED
        if self.song is None:
            return PlaybackState.IDLE
        if self.song.timer.paused:
            return PlaybackState.PAUSED
        return PlaybackState.PLAYING

    def send(self, message: Message) -> None:
        """Put a message on the event channel."""
        self.events.put(message)

    def run(self, on_exit: Optional[Callable[[], None]] = None) -> None:
        """Process messages until Stop or until the queue runs out.

        Args:
            on_exit: Called as soon as the loop ends, before the current song
                is finalized (the daemon uses it to stop accepting commands)
        """
        logger.info("Playback loop started")
        try:
            while True:
                message = self.events.get()
                logger.info(f"{message}")
                if not self.handle(message):
                    break
        finally:
            if on_exit is not None:
                on_exit()
            self.shutdown()
            self._log_dropped()

    def _log_dropped(self) -> None:
        """Report client commands that arrived after the loop ended."""
        while True:
            try:
                message = self.events.get_nowait()
            except queue.Empty:
                return
            if not isinstance(message, Next):
                logger.warning(f"Dropping {message}: daemon is shutting down")

    def handle(self, message: Message) -> bool:
        """Apply one message. Returns False when the daemon should exit."""
        if isinstance(message, Stop):
            return False
        if isinstance(message, Pause):
            self._toggle_pause()
        elif isinstance(message, Play):
            self._enqueue(message)
        elif isinstance(message, Skip):
            self._skip(message)
        elif isinstance(message, Next):
            if self._is_stale(message):
                logger.debug(f"Ignoring stale {message} (current generation {self.generation})")
                return True
            return self._advance()
        else:
            logger.warning(f"Unhandled message: {message!r}")
        return True

    def shutdown(self) -> None:
        """Retire the current song and release collaborators."""
        if self.stopped:
            return
        self.stopped = True
        self._retire()
        self._notify(self.presence.clear)
        self._notify(self.presence.close)
        logger.info("Playback loop stopped")

    # Transitions

    def _is_stale(self, message: Message) -> bool:
        return message.generation is not None and message.generation != self.generation

    def _toggle_pause(self) -> None:
        song = self.song
        if song is None:
            return

        if song.handle.is_paused():
            song.handle.play()
            song.timer.resume()
            self._show_presence(song)
            logger.info(f"Resumed {song.display_name()}")
        else:
            song.handle.pause()
            song.timer.pause()
            self._notify(self.presence.clear)
            logger.info(f"Paused {song.display_name()} at {song.timer.elapsed():.1f}s")

    def _enqueue(self, message: Play) -> None:
        path = Path(message.path)
        if message.now:
            self.queue.clear()
            self.queue.append(path)
            if self.song is not None:
                self.send(Skip(generation=self.generation))
        else:
            self.queue.append(path)

        if self.song is None:
            # Bootstrap playback; repeated bootstraps share the same generation
            self.send(Next(generation=self.generation))

    def _skip(self, message: Skip) -> None:
        song = self.song
        if song is None or self._is_stale(message):
            return
        # Freeze elapsed time at the interrupt; the watcher's Next retires the song
        song.timer.pause()
        song.handle.stop()

    def _advance(self) -> bool:
        """Retire the current song and start the next one.

        Returns False when there is nothing left to play.
        """
        retired = self._retire()

        while True:
            replaying = not self.queue
            if self.queue:
                path = self.queue.popleft()
            elif self.config.player.loop_last and retired is not None:
                path = retired
            else:
                logger.info("Queue is empty")
                return False

            try:
                self._start(path)
                return True
            except DecodeError as e:
                logger.error(f"Cannot play {path}: {e}")
                if replaying:
                    return False

    def _retire(self) -> Optional[Path]:
        """Finalize the current song. Returns its path, if there was one."""
        song = self.song
        if song is None:
            return None
        self.song = None

        song.timer.pause()
        song.handle.stop()
        elapsed = song.timer.elapsed()
        logger.info(f"Finished {song.display_name()} after {elapsed:.1f}s")

        metadata = song.metadata
        if (
            metadata.artist
            and metadata.title
            and elapsed >= self.config.lastfm.threshold_seconds
        ):
            self._notify(
                self.scrobbler.scrobble,
                metadata.artist,
                metadata.title,
                metadata.album,
                timestamp=song.started_at,
            )
        return song.path

    def _start(self, path: Path) -> None:
        handle = self.backend.load(path)
        handle.set_volume(self.config.player.volume)

        self.generation += 1
        song = CurrentSong(
            path=path,
            handle=handle,
            metadata=self.resolve_metadata(path),
            generation=self.generation,
            timer=SongTimer(self.clock),
            started_at=self.wall_clock(),
        )
        self.song = song
        handle.play()
        self._watch(song)
        logger.info(f"Now playing: {song.display_name()} ({path})")

        if song.metadata.artist and song.metadata.title:
            self._notify(
                self.scrobbler.now_playing,
                song.metadata.artist,
                song.metadata.title,
                song.metadata.album,
            )
        self._show_presence(song)

    def _watch(self, song: CurrentSong) -> None:
        """Start the completion watcher for a song."""

        def wait_for_completion() -> None:
            try:
                song.handle.block_until_finished()
            finally:
                self.events.put(Next(generation=song.generation))

        threading.Thread(
            target=wait_for_completion,
            daemon=True,
            name=f"CompletionWatcher-{song.generation}",
        ).start()

    # Collaborators

    def _show_presence(self, song: CurrentSong) -> None:
        start_time = self.wall_clock() - song.timer.elapsed()
        self._notify(
            self.presence.set,
            song.metadata.artist,
            song.metadata.title,
            start_time,
            song.metadata.origin,
        )

    def _notify(self, func: Callable, *args, **kwargs) -> None:
        """Call a presence/scrobble collaborator, never letting it fail playback."""
        try:
            func(*args, **kwargs)
        except Exception as e:
            logger.warning(f"{getattr(func, '__qualname__', func)} failed: {e}")
