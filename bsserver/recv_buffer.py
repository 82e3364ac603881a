"""Receive buffer with read and write cursors."""

from __future__ import annotations


class RecvBuffer:
    """A byte buffer filled by the socket and drained by packet parsing."""

    BUFFER_COUNT = 10

    def __init__(self, buffer_size: int) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer size must be positive")
        self._buffer_size = buffer_size
        self._capacity = buffer_size * self.BUFFER_COUNT
        self._buffer = bytearray(self._capacity)
        self._read_pos = 0
        self._write_pos = 0

    def clean(self) -> None:
        """Reset the cursors when empty, or move pending data to the front when space runs low."""
        data_size = self.data_size()
        if data_size == 0:
            self._read_pos = self._write_pos = 0
        elif self.free_size() < self._buffer_size:
            start = self._read_pos
            self._buffer[:data_size] = self._buffer[start:start + data_size]
            self._read_pos = 0
            self._write_pos = data_size

    def on_read(self, num_bytes: int) -> None:
        """Mark ``num_bytes`` of pending data as consumed."""
        if num_bytes < 0 or num_bytes > self.data_size():
            raise ValueError(f"cannot consume {num_bytes} bytes of {self.data_size()}")
        self._read_pos += num_bytes

    def on_write(self, num_bytes: int) -> None:
        """Mark ``num_bytes`` written at the write cursor as received."""
        if num_bytes < 0 or num_bytes > self.free_size():
            raise ValueError(f"cannot commit {num_bytes} bytes into {self.free_size()} free")
        self._write_pos += num_bytes

    def read_view(self) -> memoryview:
        """The pending, unread data."""
        return memoryview(self._buffer)[self._read_pos:self._write_pos]

    def write_view(self) -> memoryview:
        """The free space after the write cursor."""
        return memoryview(self._buffer)[self._write_pos:]

    def data_size(self) -> int:
        return self._write_pos - self._read_pos

    def free_size(self) -> int:
        return self._capacity - self._write_pos