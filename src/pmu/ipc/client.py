"""IPC client for sending commands to the pmu daemon.

If no daemon is listening, one is spawned in the background and the
connection is retried until the new daemon accepts it. A lock file makes
concurrent client invocations wait for each other instead of spawning a
daemon each.
"""

import fcntl
import socket
import subprocess
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger

from pmu.core.config import Config, get_data_dir
from pmu.core.exceptions import DaemonStartError

from .protocol import Message, encode
from .server import socket_address

# Pause between connection attempts while a daemon starts up
RETRY_INTERVAL = 0.01


def get_spawn_lock_path() -> Path:
    """Get the path of the lock file serializing daemon spawns."""
    return get_data_dir() / "spawn.lock"


@contextmanager
def spawn_lock() -> Iterator[None]:
    """Hold an exclusive lock for the duration of a spawn-and-connect."""
    lock_path = get_spawn_lock_path()
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with open(lock_path, "a") as lock_file:
        fcntl.flock(lock_file, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)


def spawn_daemon() -> subprocess.Popen:
    """Start a daemon process detached from this process and its terminal."""
    process = subprocess.Popen(
        [sys.executable, "-m", "pmu", "daemon"],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
    logger.info(f"Spawned daemon (pid={process.pid})")
    return process


def connect(address: tuple[str, int]) -> socket.socket:
    """Open a connection to the daemon.

    Raises:
        ConnectionRefusedError: If nothing is listening
        OSError: For any other connection failure
    """
    return socket.create_connection(address)


def wait_for_daemon(
    address: tuple[str, int],
    timeout: float,
    process: Optional[subprocess.Popen] = None,
) -> socket.socket:
    """Retry connecting until the daemon accepts.

    Raises:
        DaemonStartError: If the spawned process exits or the deadline passes
        OSError: For connection failures other than refusal
    """
    deadline = time.monotonic() + timeout
    while True:
        try:
            return connect(address)
        except ConnectionRefusedError:
            pass

        if process is not None and process.poll() is not None:
            raise DaemonStartError(
                f"Daemon exited during startup (exit code {process.returncode})"
            )
        if time.monotonic() >= deadline:
            raise DaemonStartError(f"Daemon did not start within {timeout:.1f}s")
        time.sleep(RETRY_INTERVAL)


def connect_or_spawn(config: Config) -> socket.socket:
    """Connect to the daemon, spawning it first if nothing is listening."""
    address = socket_address(config.player.port)
    try:
        return connect(address)
    except ConnectionRefusedError:
        logger.debug("Daemon not running")

    with spawn_lock():
        # Another client may have spawned the daemon while we waited for the lock
        try:
            return connect(address)
        except ConnectionRefusedError:
            pass

        process = spawn_daemon()
        return wait_for_daemon(address, config.ipc.connect_timeout_seconds, process)


def send_message(config: Config, message: Message) -> None:
    """Deliver one message to the daemon. No reply is expected.

    Raises:
        DaemonStartError: If a spawned daemon never came up
        OSError: If the daemon cannot be reached
    """
    conn = connect_or_spawn(config)
    with conn:
        conn.sendall(encode(message))
        conn.shutdown(socket.SHUT_WR)
    logger.debug(f"Sent {message}")
