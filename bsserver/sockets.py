"""Listening socket setup and readiness polling for TCP connections."""

from __future__ import annotations

import logging
import selectors
import socket
import struct
import sys
import time
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_CLIENT = 500
TIMEOUT = 0.01
DEFAULT_PORT = 12127
LISTEN_BACKLOG = 5

# Linger enabled with a zero timeout: closing resets the connection at once.
_LINGER_RESET = struct.pack("HH" if sys.platform == "win32" else "ii", 1, 0)


def create_socket() -> socket.socket:
    """A new IPv4 TCP socket."""
    return socket.socket(socket.AF_INET, socket.SOCK_STREAM)


def set_nonblocking(sock: socket.socket) -> None:
    """Make calls on ``sock`` return at once instead of waiting."""
    sock.setblocking(False)


def set_reuse_address(sock: socket.socket, option: int) -> None:
    """Set SO_REUSEADDR, and SO_REUSEPORT where the platform has it, to ``option``."""
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, option)
    reuse_port = getattr(socket, "SO_REUSEPORT", None)
    if reuse_port is not None:
        sock.setsockopt(socket.SOL_SOCKET, reuse_port, option)


class EventPoller:
    """Watches sockets for incoming data or hang-ups."""

    def __init__(self) -> None:
        self._selector = selectors.DefaultSelector()
        self._sockets: Dict[int, socket.socket] = {}
        self._closed = False

    def register(self, sock: socket.socket) -> int:
        """Watch ``sock`` for reads and return its descriptor; close it and raise OSError on failure."""
        try:
            fd = sock.fileno()
            self._selector.register(sock, selectors.EVENT_READ)
        except (OSError, ValueError, KeyError) as exc:
            sock.close()
            raise OSError(f"cannot watch socket: {exc}") from exc
        self._sockets[fd] = sock
        return fd

    def delete(self, fd: int) -> None:
        """Stop watching the socket with descriptor ``fd`` and close it."""
        sock = self._sockets.pop(fd, None)
        if sock is None:
            return
        try:
            self._selector.unregister(sock)
        except (KeyError, ValueError, OSError):
            pass
        sock.close()

    def wait(self) -> List[int]:
        """Descriptors ready to read, waiting at most the poll timeout."""
        if not self._sockets:
            time.sleep(TIMEOUT)
            return []
        events = self._selector.select(TIMEOUT)
        return [key.fd for key, _ in events[:MAX_CLIENT]]

    def close(self) -> None:
        """Close every watched socket and the poller itself."""
        if self._closed:
            return
        for fd in list(self._sockets):
            self.delete(fd)
        self._selector.close()
        self._closed = True


class ServerSocket(EventPoller):
    """A listening socket that also polls the connections it accepts."""

    def __init__(self) -> None:
        super().__init__()
        self._server: Optional[socket.socket] = None
        self._server_fd = -1

    def start_listener(self, host: str = "0.0.0.0", port: int = DEFAULT_PORT) -> None:
        """Bind, listen and start watching the listening socket."""
        sock = create_socket()
        try:
            set_nonblocking(sock)
            set_reuse_address(sock, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, _LINGER_RESET)
            sock.bind((host, port))
            sock.listen(LISTEN_BACKLOG)
        except OSError:
            sock.close()
            raise
        self._server_fd = self.register(sock)
        self._server = sock

    def accept_client(self) -> Optional[socket.socket]:
        """Accept one pending connection, or None when none is waiting."""
        if self._server is None:
            raise RuntimeError("listener has not been started")
        try:
            conn, peer = self._server.accept()
        except (BlockingIOError, InterruptedError):
            return None
        logger.info("client fd: %d from %s", conn.fileno(), peer)
        return conn

    def is_server_fd(self, fd: int) -> bool:
        return self._server is not None and fd == self._server_fd

    def server_fd(self) -> int:
        """Descriptor of the listening socket, -1 before it is started."""
        return self._server_fd

    def address(self) -> Tuple[str, int]:
        """The bound host and port."""
        if self._server is None:
            raise RuntimeError("listener has not been started")
        host, port = self._server.getsockname()[:2]
        return host, port

    def close(self) -> None:
        super().close()
        self._server = None