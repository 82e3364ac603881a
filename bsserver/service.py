"""Session registry and the polling server loop."""

from __future__ import annotations

import logging
import socket
import threading
from typing import Any, Callable, Dict, Optional, Tuple

from .lockutils import RWLock
from .session import Session
from .sockets import DEFAULT_PORT, ServerSocket, set_nonblocking

logger = logging.getLogger(__name__)


class Service:
    """Keeps the connected sessions, keyed by socket descriptor."""

    def __init__(self) -> None:
        self._sessions: Dict[int, Session] = {}
        self._addresses: Dict[str, int] = {}
        self._session_count = 0
        self._lock = RWLock()

    def broadcast(self, buffer: Any, exclude_fd: Optional[int] = None) -> None:
        """Send ``buffer`` to every session except the one with ``exclude_fd``."""
        with self._lock.read_locked("Service.broadcast"):
            targets = [s for fd, s in self._sessions.items() if fd != exclude_fd]
        for session in targets:
            session.send(buffer)

    def start(self) -> bool:
        """A bare registry has nothing to start."""
        return False

    def close_service(self) -> None:
        """Close and forget every session."""
        with self._lock.write_locked("Service.close_service"):
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._addresses.clear()
            self._session_count = 0
        for session in sessions:
            session.close()

    def add_session(self, session: Session) -> None:
        fd = session.fd()
        with self._lock.write_locked("Service.add_session"):
            self._session_count += 1
            self._sessions[fd] = session
            host = _peer_host(session)
            if host is not None:
                self._addresses[host] = fd

    def release_session(self, session: Session) -> None:
        """Forget ``session`` and close it."""
        with self._lock.write_locked("Service.release_session"):
            if self._forget(session.fd()):
                self._session_count -= 1
        session.close()

    def get_session(self, fd: int) -> Optional[Session]:
        with self._lock.read_locked("Service.get_session"):
            return self._sessions.get(fd)

    def create_session(self, sock: socket.socket) -> Session:
        session = Session(sock)
        session.set_service(self)
        return session

    def sessions(self) -> Dict[int, Session]:
        """A snapshot of the sessions by descriptor."""
        with self._lock.read_locked("Service.sessions"):
            return dict(self._sessions)

    def session_count(self) -> int:
        return self._session_count

    def _forget(self, fd: int) -> bool:
        removed = self._sessions.pop(fd, None) is not None
        for host in [h for h, owner in self._addresses.items() if owner == fd]:
            del self._addresses[host]
        return removed


def _peer_host(session: Session) -> Optional[str]:
    try:
        peer = session._sock.getpeername()
    except OSError:
        return None
    if isinstance(peer, tuple):
        return peer[0]
    return None


class ServerService(Service):
    """Accepts connections and feeds received data to their sessions."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        on_release: Optional[Callable[[Session], None]] = None,
    ) -> None:
        super().__init__()
        self._host = host
        self._port = port
        self._server_sock: Optional[ServerSocket] = None
        self._reading = threading.Lock()
        self._on_release = on_release

    def start(self) -> bool:
        """Start listening; raises OSError when the socket cannot be set up."""
        server_sock = ServerSocket()
        try:
            server_sock.start_listener(self._host, self._port)
        except OSError:
            server_sock.close()
            raise
        self._server_sock = server_sock
        return True

    def address(self) -> Tuple[str, int]:
        return self._require_started().address()

    def dispatch(self) -> int:
        """Handle one round of socket events; returns how many, 0 if another thread is busy."""
        server_sock = self._require_started()
        if not self.check_reading():
            return 0
        try:
            ready = server_sock.wait()
            for fd in ready:
                if server_sock.is_server_fd(fd):
                    self.accept_client()
                else:
                    self.read_client(fd)
            return len(ready)
        finally:
            self.off_reading()

    def accept_client(self) -> None:
        """Accept and register every pending connection."""
        server_sock = self._require_started()
        while True:
            conn = server_sock.accept_client()
            if conn is None:
                return
            set_nonblocking(conn)
            try:
                self.register(conn)
            except OSError:
                logger.error("could not watch client socket")
                return

    def read_client(self, fd: int) -> None:
        session = self.get_session(fd)
        if session is not None and not session.receive_message():
            self.release_session(session)

    def register(self, sock: socket.socket) -> Session:
        """Watch ``sock`` and create its session."""
        self._require_started().register(sock)
        session = self.create_session(sock)
        self.add_session(session)
        return session

    def release_session(self, session: Session) -> None:
        """Forget ``session``, close its socket and announce the departure."""
        fd = session.fd()
        with self._lock.write_locked("ServerService.release_session"):
            if fd not in self._sessions:
                raise KeyError(f"no session for descriptor {fd}")
            self._forget(fd)
            self._session_count -= 1
        if self._server_sock is not None:
            self._server_sock.delete(fd)
        session.close()
        self.release_session_message(session)

    def release_session_message(self, session: Session) -> None:
        """Announce a released session to the ``on_release`` callback, if one was given."""
        if self._on_release is not None:
            self._on_release(session)

    def check_reading(self) -> bool:
        """Claim the right to poll; False when another thread holds it."""
        return self._reading.acquire(blocking=False)

    def off_reading(self) -> None:
        if self._reading.locked():
            self._reading.release()

    def close(self) -> None:
        """Close every session and the listening socket."""
        self.close_service()
        if self._server_sock is not None:
            self._server_sock.close()
            self._server_sock = None

    def _require_started(self) -> ServerSocket:
        if self._server_sock is None:
            raise RuntimeError("service has not been started")
        return self._server_sock