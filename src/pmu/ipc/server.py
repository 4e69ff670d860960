"""IPC server receiving commands from client invocations."""

import queue
import socket
import threading
from typing import Optional

from loguru import logger

from pmu.core.exceptions import ProtocolError

from .protocol import MAX_MESSAGE_SIZE, decode

HOST = "127.0.0.1"


def socket_address(port: int) -> tuple[str, int]:
    """Loopback address the daemon listens on."""
    return HOST, port


class ConnectionListener:
    """Loopback TCP listener feeding decoded messages into the daemon's channel.

    The socket is bound in the constructor so that clients can connect as soon
    as the daemon exists; the accept loop runs in a background thread.
    Connections are handled one at a time: each carries exactly one message
    and gets no reply.
    """

    def __init__(
        self,
        events: queue.Queue,
        port: int,
        read_timeout: float = 5.0,
    ):
        """
        Bind the listening socket.

        Args:
            events: Channel consumed by the daemon's core loop
            port: Loopback port (0 picks a free port)
            read_timeout: Seconds to wait for a client to send its message

        Raises:
            OSError: If the port cannot be bound (e.g. another daemon owns it)
        """
        self.events = events
        self.read_timeout = read_timeout
        self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self.server_socket.bind(socket_address(port))
            self.server_socket.listen(16)
        except OSError:
            self.server_socket.close()
            raise
        self.server_socket.settimeout(1.0)  # Poll so stop() is noticed
        self.running = False
        self.thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server_socket.getsockname()[1]

    def start(self) -> None:
        """Start accepting connections in a background thread."""
        if self.running:
            return
        self.running = True
        self.thread = threading.Thread(
            target=self._run_server, daemon=True, name="ConnectionListener"
        )
        self.thread.start()
        logger.info(f"Listening on {HOST}:{self.port}")

    def stop(self) -> None:
        """Stop accepting connections and close the socket.

        The socket is closed before joining the accept thread so that clients
        are refused right away instead of queueing messages nobody will read.
        """
        self.running = False
        # shutdown() wakes a blocked accept() and stops listening at once
        try:
            self.server_socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self.server_socket.close()
        except OSError:
            pass
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=2.0)

    def _run_server(self) -> None:
        while self.running:
            try:
                client_socket, address = self.server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.error(f"Error accepting connection: {e}")
                    continue
                break

            with client_socket:
                self._handle_client(client_socket)

    def _read_message(self, client_socket: socket.socket) -> bytes:
        """Read until newline or EOF."""
        data = b""
        while b"\n" not in data:
            chunk = client_socket.recv(4096)
            if not chunk:
                break
            data += chunk
            if len(data) > MAX_MESSAGE_SIZE:
                break
        return data

    def _handle_client(self, client_socket: socket.socket) -> None:
        """Decode one message from a client and forward it to the core loop."""
        try:
            client_socket.settimeout(self.read_timeout)
            data = self._read_message(client_socket)
            if not data.strip():
                logger.warning("Connection closed without a message")
                return
            message = decode(data)
        except ProtocolError as e:
            logger.warning(f"Dropping malformed message: {e}")
            return
        except OSError as e:
            logger.warning(f"Error reading from client: {e}")
            return

        logger.debug(f"Received {message}")
        self.events.put(message)
