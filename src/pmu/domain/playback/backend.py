"""
MPV audio backend controlled over JSON IPC.

Every song gets its own mpv process. mpv exits by itself once the file has
been played through, and a ``quit`` command makes it exit early, so the
process exiting is the song's completion signal in both cases.
"""

import itertools
import json
import os
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from pmu.core.exceptions import BackendError, DecodeError

# How long to wait for mpv to create its IPC socket
SOCKET_TIMEOUT = 5.0

# Upper bound of mpv's default --volume-max
MAX_VOLUME = 130

_request_ids = itertools.count(1)


def send_mpv_command(socket_path: str, command: list[Any], timeout: float = 2.0) -> Any:
    """Send a JSON IPC command to mpv and return the response data.

    mpv may interleave event messages with the reply, so lines are read until
    the one carrying our ``request_id`` shows up.

    Raises:
        OSError: If the socket cannot be reached or the reply never arrives
        RuntimeError: If mpv reports an error for the command
    """
    request_id = next(_request_ids)
    payload = json.dumps({"command": command, "request_id": request_id}) + "\n"

    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.settimeout(timeout)
        sock.connect(socket_path)
        sock.sendall(payload.encode("utf-8"))

        buffer = b""
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                raise OSError(f"mpv closed the connection before replying to {command!r}")
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                try:
                    response = json.loads(line.decode("utf-8"))
                except json.JSONDecodeError:
                    continue
                if response.get("request_id") != request_id:
                    continue
                if response.get("error") != "success":
                    raise RuntimeError(f"mpv rejected {command!r}: {response.get('error')}")
                return response.get("data")


class MpvHandle:
    """Playback handle for one song running in its own mpv process."""

    def __init__(self, path: Path, process: subprocess.Popen, socket_path: str):
        self.path = path
        self.process = process
        self.socket_path = socket_path
        self._paused = True  # mpv is launched with --pause

    def _set_property(self, name: str, value: Any) -> bool:
        if self.finished:
            return False
        try:
            send_mpv_command(self.socket_path, ["set_property", name, value])
            return True
        except (OSError, RuntimeError) as e:
            logger.warning(f"mpv set_property {name}={value!r} failed: {e}")
            return False

    @property
    def finished(self) -> bool:
        return self.process.poll() is not None

    def play(self) -> None:
        if self._set_property("pause", False):
            self._paused = False

    def pause(self) -> None:
        if self._set_property("pause", True):
            self._paused = True

    def is_paused(self) -> bool:
        return self._paused

    def set_volume(self, volume: float) -> None:
        """Set a linear gain where 1.0 is normal volume.

        mpv's volume property is cubic (gain = (percent / 100) ** 3), so the
        gain is converted with a cube root.
        """
        percent = min(MAX_VOLUME, round(max(0.0, volume) ** (1 / 3) * 100))
        self._set_property("volume", percent)

    def stop(self) -> None:
        """Stop playback immediately, which ends the mpv process."""
        if self.finished:
            return
        try:
            send_mpv_command(self.socket_path, ["quit"])
        except (OSError, RuntimeError) as e:
            logger.debug(f"mpv quit failed, terminating process: {e}")
            try:
                self.process.terminate()
            except OSError:
                pass

    def block_until_finished(self) -> None:
        """Block until mpv exits, either at end of file or after stop()."""
        self.process.wait()
        try:
            os.unlink(self.socket_path)
        except OSError:
            pass

    def __repr__(self) -> str:
        return f"MpvHandle({self.path.name!r}, pid={self.process.pid})"


class MpvBackend:
    """Loads audio files into fresh mpv processes."""

    def __init__(self, mpv_path: str = "mpv", socket_dir: Optional[Path] = None):
        self.mpv_path = mpv_path
        self.socket_dir = socket_dir or Path(tempfile.gettempdir())
        self._counter = itertools.count(1)

    def _socket_path(self) -> str:
        return str(self.socket_dir / f"pmu-mpv-{os.getpid()}-{next(self._counter)}.sock")

    def load(self, path: Path) -> MpvHandle:
        """Start a paused mpv process for ``path``.

        Raises:
            DecodeError: If the file is missing or mpv gives up on it
            BackendError: If mpv cannot be started at all
        """
        path = Path(path)
        if not path.is_file():
            raise DecodeError(str(path), f"Audio file does not exist: {path}")

        socket_path = self._socket_path()
        if os.path.exists(socket_path):
            os.unlink(socket_path)

        cmd = [
            self.mpv_path,
            "--no-video",
            "--no-terminal",
            "--idle=no",
            "--keep-open=no",
            "--load-scripts=no",
            "--pause",
            f"--input-ipc-server={socket_path}",
            "--",
            str(path),
        ]

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise BackendError(f"Failed to start mpv ({self.mpv_path}): {e}") from e

        # Wait until the IPC socket exists and answers
        start_time = time.monotonic()
        while True:
            if process.poll() is not None:
                raise DecodeError(
                    str(path), f"mpv exited with code {process.returncode} loading {path}"
                )
            if time.monotonic() - start_time > SOCKET_TIMEOUT:
                process.kill()
                process.wait()
                raise DecodeError(str(path), f"mpv socket creation timeout after {SOCKET_TIMEOUT}s")
            if os.path.exists(socket_path):
                try:
                    send_mpv_command(socket_path, ["get_property", "pause"], timeout=0.5)
                    break
                except (OSError, RuntimeError):
                    pass
            time.sleep(0.02)

        logger.debug(f"mpv pid={process.pid} loaded {path}")
        return MpvHandle(path, process, socket_path)
