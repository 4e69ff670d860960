"""Pytest configuration shared by all pmu tests.

Provides in-memory stand-ins for mpv, Discord and Last.fm, and isolates the
XDG directories so tests never touch the real config or history database.
"""

import json
import socket
import tempfile
import threading
from pathlib import Path

import pytest

from pmu.core.config import Config
from pmu.core.exceptions import DecodeError
from pmu.domain.library.models import Metadata


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Point config and data directories at a per-test temporary directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for variable in (
        "LASTFM_USERNAME",
        "LASTFM_PASSWORD",
        "LASTFM_API_KEY",
        "LASTFM_SHARED_SECRET",
        "DISCORD_CLIENT_ID",
    ):
        # setenv first so the variable is removed again even if a .env file sets it
        monkeypatch.setenv(variable, "")
        monkeypatch.delenv(variable)
    return tmp_path


class FakeHandle:
    """Backend handle whose completion is triggered by the test."""

    def __init__(self, path: Path):
        self.path = path
        self.volume = None
        self.stop_count = 0
        self._paused = True
        self._finished = threading.Event()

    def play(self) -> None:
        self._paused = False

    def pause(self) -> None:
        self._paused = True

    def is_paused(self) -> bool:
        return self._paused

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def stop(self) -> None:
        self.stop_count += 1
        self._finished.set()

    def finish(self) -> None:
        """Simulate reaching the end of the file."""
        self._finished.set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def block_until_finished(self) -> None:
        self._finished.wait()


class FakeBackend:
    """Backend that records loaded handles; paths named broken* fail to decode."""

    def __init__(self):
        self.handles: list[FakeHandle] = []

    def load(self, path: Path) -> FakeHandle:
        if Path(path).name.startswith("broken"):
            raise DecodeError(str(path))
        handle = FakeHandle(Path(path))
        self.handles.append(handle)
        return handle


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingPresence:
    def __init__(self):
        self.calls: list[tuple] = []

    def set(self, artist, title, start_time, origin=None) -> None:
        self.calls.append(("set", artist, title, start_time, origin))

    def clear(self) -> None:
        self.calls.append(("clear",))

    def close(self) -> None:
        self.calls.append(("close",))

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class RecordingScrobbler:
    def __init__(self):
        self.now_playing_calls: list[tuple] = []
        self.scrobbles: list[tuple] = []

    def now_playing(self, artist, title, album=None) -> None:
        self.now_playing_calls.append((artist, title, album))

    def scrobble(self, artist, title, album=None, timestamp=None) -> None:
        self.scrobbles.append((artist, title, album, timestamp))


def fake_metadata(path: Path) -> Metadata:
    return Metadata(artist="Test Artist", title=Path(path).stem)


@pytest.fixture
def config() -> Config:
    cfg = Config()
    cfg.lastfm.threshold_seconds = 110
    return cfg


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def presence() -> RecordingPresence:
    return RecordingPresence()


@pytest.fixture
def scrobbler() -> RecordingScrobbler:
    return RecordingScrobbler()


@pytest.fixture
def socket_dir():
    """Short temporary directory for Unix sockets (sun_path is ~108 bytes)."""
    with tempfile.TemporaryDirectory(prefix="pmu-") as directory:
        yield Path(directory)


class FakeUnixServer:
    """Unix socket server answering each request line through ``respond``.

    ``respond`` gets the decoded request and returns the reply lines to send.
    """

    def __init__(self, path: Path, respond):
        self.path = path
        self.respond = respond
        self.requests: list = []
        self.sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self.sock.bind(str(path))
        self.sock.listen(4)
        self.thread = threading.Thread(target=self._serve, daemon=True)
        self.thread.start()

    def _serve(self) -> None:
        while True:
            try:
                conn, _ = self.sock.accept()
            except OSError:
                return
            with conn:
                buffer = b""
                while True:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    buffer += chunk
                    while b"\n" in buffer:
                        line, buffer = buffer.split(b"\n", 1)
                        request = json.loads(line)
                        self.requests.append(request)
                        for reply in self.respond(request):
                            conn.sendall((json.dumps(reply) + "\n").encode("utf-8"))

    def close(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.sock.close()
