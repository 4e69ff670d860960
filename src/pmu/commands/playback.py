"""
Playback commands sent from client invocations to the daemon.

Handles: play (enqueue), pause, stop, skip
"""

from pathlib import Path
from typing import Optional

from loguru import logger

from pmu.core.config import Config
from pmu.domain import history
from pmu.ipc import protocol
from pmu.ipc.client import send_message


def resolve_input(input_path: str) -> Optional[Path]:
    """Resolve user input to an audio file.

    Existing files are canonicalized; anything else is looked up in history.
    """
    candidate = Path(input_path).expanduser()
    if candidate.is_file():
        return candidate.resolve()

    remembered = history.find(input_path)
    if remembered is not None and remembered.is_file():
        logger.debug(f"Resolved {input_path!r} from history: {remembered}")
        return remembered.resolve()
    return None


def enqueue(config: Config, input_path: str, now: bool = False) -> Path:
    """Queue a song, or with ``now`` replace the queue and play it immediately.

    Returns:
        The resolved path that was sent to the daemon

    Raises:
        FileNotFoundError: If the input resolves to no audio file
    """
    path = resolve_input(input_path)
    if path is None:
        raise FileNotFoundError(f"Audio file does not exist: {input_path}")

    history.insert(input_path, path)
    send_message(config, protocol.Play(path=str(path), now=now))
    return path


def pause_toggle(config: Config) -> None:
    """Pause the current song, or resume it if paused."""
    send_message(config, protocol.Pause())


def stop(config: Config) -> None:
    """Stop playback and shut the daemon down."""
    send_message(config, protocol.Stop())


def skip(config: Config) -> None:
    """Skip to the next song in the queue."""
    send_message(config, protocol.Skip())
