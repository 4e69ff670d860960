"""
Wire messages exchanged between clients and the daemon.

One message per connection, encoded as a single line of JSON:

    {"command": "play", "path": "/music/song.ogg", "now": false}
    {"command": "pause"}

``skip`` and ``next`` may carry a ``generation``: the number of the song they
were issued for. The daemon drops them once that song is no longer current.
Messages without a generation always target the current song.
"""

import json
from dataclasses import asdict, dataclass
from typing import Optional, Union

from pmu.core.exceptions import ProtocolError

# Reject anything larger than this; a message is a single short JSON line
MAX_MESSAGE_SIZE = 64 * 1024


@dataclass(frozen=True)
class Stop:
    """Shut the daemon down."""


@dataclass(frozen=True)
class Pause:
    """Toggle between paused and playing."""


@dataclass(frozen=True)
class Play:
    """Queue a file, or with ``now`` replace the queue and play it immediately."""

    path: str
    now: bool = False


@dataclass(frozen=True)
class Skip:
    """Stop the current song; the daemon then advances to the next one."""

    generation: Optional[int] = None


@dataclass(frozen=True)
class Next:
    """Retire the current song and start the head of the queue."""

    generation: Optional[int] = None


Message = Union[Stop, Pause, Play, Skip, Next]

COMMANDS: dict[str, type] = {
    "stop": Stop,
    "pause": Pause,
    "play": Play,
    "skip": Skip,
    "next": Next,
}
_NAMES = {cls: name for name, cls in COMMANDS.items()}


def encode(message: Message) -> bytes:
    """Encode a message as one newline-terminated JSON line."""
    try:
        name = _NAMES[type(message)]
    except KeyError:
        raise ProtocolError(f"Not a message: {message!r}") from None

    payload = {"command": name}
    payload.update({k: v for k, v in asdict(message).items() if v is not None})
    return (json.dumps(payload) + "\n").encode("utf-8")


def _field(payload: dict, name: str, expected: type, required: bool = False):
    if name not in payload or payload[name] is None:
        if required:
            raise ProtocolError(f"Missing field '{name}'")
        return None
    value = payload[name]
    # bool is a subclass of int; a generation must be a real integer
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ProtocolError(f"Field '{name}' must be {expected.__name__}, got {value!r}")
    return value


def decode(data: bytes) -> Message:
    """Decode one message.

    Raises:
        ProtocolError: If the data is not a well-formed message
    """
    if len(data) > MAX_MESSAGE_SIZE:
        raise ProtocolError(f"Message too large ({len(data)} bytes)")

    try:
        payload = json.loads(data.decode("utf-8").strip())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ProtocolError(f"Message must be a JSON object, got {type(payload).__name__}")

    command = payload.get("command")
    if command not in COMMANDS:
        raise ProtocolError(f"Unknown command: {command!r}")

    if command == "play":
        path = _field(payload, "path", str, required=True)
        if not path:
            raise ProtocolError("Field 'path' must not be empty")
        now = _field(payload, "now", bool)
        return Play(path=path, now=bool(now))

    if command in ("skip", "next"):
        return COMMANDS[command](generation=_field(payload, "generation", int))

    return COMMANDS[command]()
