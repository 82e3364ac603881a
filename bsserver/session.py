"""A connected client: buffered receive and batched send."""

from __future__ import annotations

import socket
import weakref
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from .lockutils import RWLock
from .recv_buffer import RecvBuffer

_SEND_FLAGS = getattr(socket, "MSG_NOSIGNAL", 0)


def _payload(buffer: Any) -> bytes:
    if isinstance(buffer, (bytes, bytearray, memoryview)):
        return bytes(buffer)
    return buffer.data()


class Session:
    """One client connection."""

    BUFFER_SIZE = 0x10000

    def __init__(self, sock: socket.socket) -> None:
        self._sock = sock
        self._fd = sock.fileno()
        self._recv_buffer = RecvBuffer(self.BUFFER_SIZE)
        self._send_buffers: List[Any] = []
        self._service_ref: Optional[weakref.ref] = None
        self._connected = False
        self._lock = RWLock()
        self.connect()

    def service(self) -> Any:
        """The owning service, or None once it is gone."""
        return self._service_ref() if self._service_ref is not None else None

    def set_service(self, service: Any) -> None:
        self._service_ref = weakref.ref(service)

    def fd(self) -> int:
        return self._fd

    def is_connected(self) -> bool:
        return self._connected

    def send(self, buffer: Any) -> bool:
        """Send ``buffer`` together with any pushed buffers; False if nothing went out."""
        if not self._connected:
            return False
        with self._lock.write_locked("Session.send"):
            self._send_buffers.append(buffer)
            payload = b"".join(_payload(pending) for pending in self._send_buffers)
            self._send_buffers.clear()
        try:
            sent = self._sock.send(payload, _SEND_FLAGS)
        except OSError:
            return False
        return sent > 0

    def push_buffer(self, buffer: Any) -> None:
        """Queue ``buffer`` to go out with the next send."""
        with self._lock.write_locked("Session.push_buffer"):
            self._send_buffers.append(buffer)

    def connect(self) -> None:
        self._connected = True

    def receive_message(self) -> bool:
        """Read what the socket has and hand it to ``on_recv``; False once the connection is lost."""
        try:
            with self._recv_buffer.write_view() as view:
                received = self._sock.recv_into(view)
        except (BlockingIOError, InterruptedError):
            return True
        except OSError:
            self.disconnect()
            return False

        if received <= 0:
            self.disconnect()
            return False
        self._recv_buffer.on_write(received)

        with self._recv_buffer.read_view() as view:
            data = bytes(view)
        processed = self.on_recv(data)
        if processed <= 0 or processed > len(data):
            self.disconnect()
            return False
        self._recv_buffer.on_read(processed)
        self._recv_buffer.clean()
        return True

    def on_recv(self, data: bytes) -> int:
        """Consume received bytes and return how many were used."""
        return len(data)

    def disconnect(self) -> None:
        self._recv_buffer.clean()
        with self._lock.write_locked("Session.disconnect"):
            self._send_buffers.clear()
        self._connected = False

    def close(self) -> None:
        """Close the underlying socket."""
        self._connected = False
        self._sock.close()


class PacketSession(Session, ABC):
    """A session whose subclasses handle whole packets."""

    def on_recv(self, data: bytes) -> int:
        return len(data)

    @abstractmethod
    def on_recv_packet(self, data: bytes) -> None:
        """Handle one complete packet."""