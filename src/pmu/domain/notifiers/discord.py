"""
Discord Rich Presence over Discord's local IPC socket.

Frames are an 8-byte little-endian header (opcode, payload length) followed
by a JSON payload. A handshake frame identifies the application, after which
SET_ACTIVITY commands update or clear the shown activity.
"""

import json
import os
import socket
import struct
import uuid
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from pmu.core.config import Config
from pmu.core.exceptions import PresenceError
from pmu.domain.library.models import Origin

OP_HANDSHAKE = 0
OP_FRAME = 1
OP_CLOSE = 2

HEADER = struct.Struct("<II")

# Sandboxed Discord installs put the socket in a subdirectory
SOCKET_SUBDIRS = ["", "app/com.discordapp.Discord", "snap.discord"]


def candidate_socket_paths() -> list[Path]:
    """Possible locations of Discord's IPC socket, in lookup order."""
    base = None
    for variable in ("XDG_RUNTIME_DIR", "TMPDIR", "TMP", "TEMP"):
        base = os.environ.get(variable)
        if base:
            break
    base_dir = Path(base or "/tmp")

    return [
        base_dir / subdir / f"discord-ipc-{index}"
        for subdir in SOCKET_SUBDIRS
        for index in range(10)
    ]


def encode_frame(opcode: int, payload: dict[str, Any]) -> bytes:
    data = json.dumps(payload).encode("utf-8")
    return HEADER.pack(opcode, len(data)) + data


def build_activity(
    artist: Optional[str],
    title: Optional[str],
    start_time: float,
    origin: Optional[Origin] = None,
) -> dict[str, Any]:
    """Build the activity payload shown while a song plays."""
    activity: dict[str, Any] = {
        "details": artist or "Unknown Artist",
        "state": title or "Unknown Title",
        "timestamps": {"start": int(start_time)},
        "assets": {"large_image": "icon", "large_text": "pmu"},
    }
    if origin is not None:
        activity["buttons"] = [{"label": origin.name, "url": origin.link}]
    return activity


class DiscordPresence:
    """Connection to the local Discord client."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        self.sock: Optional[socket.socket] = None

    def connect(self) -> None:
        """Connect and handshake with the first Discord socket that answers.

        Raises:
            PresenceError: If Discord is not running or refuses the handshake
        """
        last_error: Optional[Exception] = None
        for path in candidate_socket_paths():
            if not path.exists():
                continue
            sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            sock.settimeout(2.0)
            try:
                sock.connect(str(path))
                self.sock = sock
                self._send(OP_HANDSHAKE, {"v": 1, "client_id": self.client_id})
                opcode, reply = self._receive()
            except (OSError, PresenceError) as e:
                sock.close()
                self.sock = None
                last_error = e
                continue

            if opcode == OP_CLOSE or reply.get("evt") != "READY":
                self.close()
                raise PresenceError(f"Discord refused handshake: {reply.get('message', reply)}")
            logger.info(f"Connected to Discord at {path}")
            return

        raise PresenceError(f"Discord IPC socket not available: {last_error or 'not found'}")

    def _send(self, opcode: int, payload: dict[str, Any]) -> None:
        if self.sock is None:
            raise PresenceError("Not connected to Discord")
        self.sock.sendall(encode_frame(opcode, payload))

    def _recv_exactly(self, size: int) -> bytes:
        data = b""
        while len(data) < size:
            chunk = self.sock.recv(size - len(data))
            if not chunk:
                raise PresenceError("Discord closed the connection")
            data += chunk
        return data

    def _receive(self) -> tuple[int, dict[str, Any]]:
        opcode, length = HEADER.unpack(self._recv_exactly(HEADER.size))
        try:
            payload = json.loads(self._recv_exactly(length).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PresenceError(f"Malformed reply from Discord: {e}") from e
        return opcode, payload

    def _set_activity(self, activity: Optional[dict[str, Any]]) -> None:
        payload = {
            "cmd": "SET_ACTIVITY",
            "args": {"pid": os.getpid(), "activity": activity},
            "nonce": str(uuid.uuid4()),
        }
        try:
            self._send(OP_FRAME, payload)
            opcode, reply = self._receive()
        except OSError as e:
            self.close()
            raise PresenceError(f"Lost connection to Discord: {e}") from e

        if opcode == OP_CLOSE:
            self.close()
            raise PresenceError(f"Discord closed the connection: {reply.get('message')}")
        if reply.get("evt") == "ERROR":
            raise PresenceError(f"Discord rejected activity: {reply.get('data')}")

    def set(
        self,
        artist: Optional[str],
        title: Optional[str],
        start_time: float,
        origin: Optional[Origin] = None,
    ) -> None:
        """Show a song as the current activity.

        Args:
            artist: Song artist, if known
            title: Song title, if known
            start_time: Unix time the song would have started if never paused
            origin: Optional link shown as a button
        """
        self._set_activity(build_activity(artist, title, start_time, origin))

    def clear(self) -> None:
        self._set_activity(None)

    def close(self) -> None:
        if self.sock is not None:
            try:
                self.sock.close()
            except OSError:
                pass
            self.sock = None


class NullPresence:
    """Stand-in used when presence is disabled or Discord is unreachable."""

    def set(self, artist, title, start_time, origin=None) -> None:
        pass

    def clear(self) -> None:
        pass

    def close(self) -> None:
        pass


def presence_client(config: Config):
    """Connect to Discord if configured, otherwise return a no-op presence."""
    if not config.discord.enabled or not config.discord.client_id:
        logger.debug("Discord presence disabled")
        return NullPresence()

    presence = DiscordPresence(config.discord.client_id)
    try:
        presence.connect()
    except PresenceError as e:
        logger.info(f"Discord presence unavailable: {e}")
        return NullPresence()
    return presence
