import gc
import threading

import pytest

from bsserver.send_buffer import (
    SendBuffer,
    SendBufferChunk,
    SendBufferManager,
    get_send_buffer_manager,
)


def _fill(buf, data):
    view = buf.buffer()
    view[:len(data)] = data
    view.release()
    buf.close(len(data))


def test_chunk_open_close_tracks_free_size():
    chunk = SendBufferChunk()
    total = chunk.free_size()
    assert total == SendBufferChunk.CHUNK_SIZE
    buf = chunk.open(10)
    assert chunk.is_open()
    assert buf.alloc_size() == 10
    _fill(buf, b"abcd")
    assert not chunk.is_open()
    assert chunk.free_size() == total - 4
    assert buf.write_size() == 4
    assert buf.data() == b"abcd"


def test_chunk_rejects_double_open_and_oversize():
    chunk = SendBufferChunk()
    chunk.open(1)
    with pytest.raises(RuntimeError):
        chunk.open(1)
    with pytest.raises(ValueError):
        SendBufferChunk().open(SendBufferChunk.CHUNK_SIZE + 1)


def test_chunk_close_without_open_raises():
    with pytest.raises(RuntimeError):
        SendBufferChunk().close(0)


def test_chunk_returns_none_when_full():
    chunk = SendBufferChunk()
    buf = chunk.open(chunk.free_size())
    buf.close(buf.alloc_size())
    assert chunk.open(1) is None


def test_chunk_reset_clears_usage():
    chunk = SendBufferChunk()
    chunk.open(5).close(5)
    chunk.reset()
    assert chunk.free_size() == SendBufferChunk.CHUNK_SIZE
    assert not chunk.is_open()


def test_send_buffer_close_too_large_raises():
    buf = SendBufferChunk().open(3)
    with pytest.raises(ValueError):
        buf.close(4)


def test_manager_buffers_do_not_overlap():
    manager = SendBufferManager()
    first = manager.open(8)
    _fill(first, b"abc")
    second = manager.open(8)
    _fill(second, b"xyz")
    assert first.data() == b"abc"
    assert second.data() == b"xyz"
    assert isinstance(second, SendBuffer)


def test_manager_requires_close_before_next_open():
    manager = SendBufferManager()
    manager.open(4)
    with pytest.raises(RuntimeError):
        manager.open(4)


def test_manager_moves_to_new_chunk_when_full():
    manager = SendBufferManager()
    big = manager.open(SendBufferChunk.CHUNK_SIZE)
    _fill(big, b"q" * SendBufferChunk.CHUNK_SIZE)
    small = manager.open(2)
    _fill(small, b"hi")
    assert small.data() == b"hi"
    assert big.data()[:1] == b"q"


def test_chunk_storage_returns_to_pool():
    manager = SendBufferManager()
    buf = manager.open(4)
    _fill(buf, b"data")
    assert manager.pooled_count() == 0
    del buf
    manager.release_thread_chunk()
    gc.collect()
    assert manager.pooled_count() == 1
    reused = manager.open(4)
    assert reused.alloc_size() == 4
    assert manager.pooled_count() == 0


def test_threads_have_independent_chunks():
    manager = SendBufferManager()
    main_buf = manager.open(4)
    results = []

    def worker():
        try:
            buf = manager.open(4)
            _fill(buf, b"ok!!")
            results.append(buf.data())
        except RuntimeError as exc:
            results.append(exc)

    t = threading.Thread(target=worker)
    t.start()
    t.join()
    assert results == [b"ok!!"]
    _fill(main_buf, b"main")
    assert main_buf.data() == b"main"


def test_global_manager_is_shared():
    buf = get_send_buffer_manager().open(2)
    assert buf.alloc_size() == 2
    with pytest.raises(RuntimeError):
        get_send_buffer_manager().open(2)
    buf.close(0)
    assert buf.write_size() == 0