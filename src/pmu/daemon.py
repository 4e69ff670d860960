"""
Daemon entry point: wires the listener, audio backend and notifiers to the
playback loop and blocks until playback ends.
"""

import queue
import signal
import threading

from loguru import logger

from pmu.core.config import Config
from pmu.domain.notifiers.discord import presence_client
from pmu.domain.notifiers.lastfm import lastfm_client
from pmu.domain.playback.backend import MpvBackend
from pmu.domain.playback.daemon import PlaybackDaemon
from pmu.ipc.protocol import Stop
from pmu.ipc.server import ConnectionListener


def _install_signal_handlers(events: queue.Queue) -> None:
    """Turn SIGTERM/SIGINT into a cooperative Stop."""
    if threading.current_thread() is not threading.main_thread():
        return

    def _handle_signal(signum, frame) -> None:
        logger.info(f"Received signal {signum}, stopping")
        events.put(Stop())

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)


def daemon(config: Config) -> None:
    """Run the playback daemon until Stop or until a non-looping queue runs out.

    Raises:
        OSError: If the port is already taken (another daemon is running)
    """
    events: queue.Queue = queue.Queue()

    # Bind before anything slow so waiting clients can connect right away
    listener = ConnectionListener(
        events, config.player.port, read_timeout=config.ipc.read_timeout_seconds
    )
    try:
        player = PlaybackDaemon(
            config,
            MpvBackend(config.player.mpv_path),
            presence=presence_client(config),
            scrobbler=lastfm_client(config),
            events=events,
        )
        _install_signal_handlers(events)
        listener.start()
        player.run(on_exit=listener.stop)
    finally:
        listener.stop()
