"""Pooled send buffers carved out of large per-thread chunks."""

from __future__ import annotations

import threading
import weakref
from typing import List, Optional


class SendBuffer:
    """A slice of a chunk reserved for one outgoing packet."""

    def __init__(self, owner: "SendBufferChunk", offset: int, alloc_size: int) -> None:
        self._owner = owner
        self._offset = offset
        self._alloc_size = alloc_size
        self._write_size = 0

    def buffer(self) -> memoryview:
        """Writable view of the reserved region."""
        return memoryview(self._owner._storage)[self._offset:self._offset + self._alloc_size]

    def data(self) -> bytes:
        """The bytes committed by ``close``."""
        start = self._offset
        return bytes(self._owner._storage[start:start + self._write_size])

    def alloc_size(self) -> int:
        return self._alloc_size

    def write_size(self) -> int:
        return self._write_size

    def close(self, write_size: int) -> None:
        """Commit ``write_size`` bytes and release the chunk for the next buffer."""
        if write_size > self._alloc_size:
            raise ValueError(f"wrote {write_size} bytes into {self._alloc_size} reserved")
        self._write_size = write_size
        self._owner.close(write_size)


class SendBufferChunk:
    """A large block from which send buffers are handed out one at a time."""

    CHUNK_SIZE = 0xFFFF

    def __init__(self, storage: Optional[bytearray] = None) -> None:
        self._storage = storage if storage is not None else bytearray(self.CHUNK_SIZE)
        self._open = False
        self._used_size = 0

    def reset(self) -> None:
        self._open = False
        self._used_size = 0

    def open(self, alloc_size: int) -> Optional[SendBuffer]:
        """Reserve ``alloc_size`` bytes; None when the chunk has too little room left."""
        if alloc_size > self.CHUNK_SIZE:
            raise ValueError(f"{alloc_size} bytes exceeds chunk size {self.CHUNK_SIZE}")
        if self._open:
            raise RuntimeError("chunk already has an open send buffer")
        if alloc_size > self.free_size():
            return None
        self._open = True
        return SendBuffer(self, self._used_size, alloc_size)

    def close(self, write_size: int) -> None:
        if not self._open:
            raise RuntimeError("chunk has no open send buffer")
        self._open = False
        self._used_size += write_size

    def is_open(self) -> bool:
        return self._open

    def free_size(self) -> int:
        return len(self._storage) - self._used_size


class SendBufferManager:
    """Hands out send buffers from a per-thread chunk, recycling chunk storage."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pool: List[bytearray] = []
        self._local = threading.local()

    def open(self, size: int) -> SendBuffer:
        """Reserve ``size`` bytes in the calling thread's current chunk."""
        chunk = getattr(self._local, "chunk", None)
        if chunk is None:
            chunk = self._pop()
            self._local.chunk = chunk
        if chunk.is_open():
            raise RuntimeError("previous send buffer on this thread was not closed")
        if chunk.free_size() < size:
            chunk = self._pop()
            self._local.chunk = chunk
        buffer = chunk.open(size)
        if buffer is None:
            raise RuntimeError(f"no room for {size} bytes in a fresh chunk")
        return buffer

    def release_thread_chunk(self) -> None:
        """Drop the calling thread's chunk so it can return to the pool."""
        self._local.chunk = None

    def pooled_count(self) -> int:
        with self._lock:
            return len(self._pool)

    def _pop(self) -> SendBufferChunk:
        with self._lock:
            storage = self._pool.pop() if self._pool else bytearray(SendBufferChunk.CHUNK_SIZE)
        chunk = SendBufferChunk(storage)
        chunk.reset()
        weakref.finalize(chunk, self._push, storage)
        return chunk

    def _push(self, storage: bytearray) -> None:
        with self._lock:
            self._pool.append(storage)


_manager = SendBufferManager()


def get_send_buffer_manager() -> SendBufferManager:
    """The process-wide send buffer manager."""
    return _manager