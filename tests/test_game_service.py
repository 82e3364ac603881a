import socket
import struct
import threading
import time

import pytest

from bsserver.game_room import GameRoomManager
from bsserver.game_service import GameServerService, main, run_task
from bsserver.game_session import GameSession
from bsserver.protocol import (
    PKT_CLOSE_PLAYER,
    PKT_LOAD_DATA,
    PKT_MY_PLAYER,
    BufferReader,
    ClosePlayer,
    PacketHeader,
    make_packet,
)


def _split(data):
    packets = []
    while len(data) >= PacketHeader.SIZE:
        header = PacketHeader.unpack(data)
        if len(data) < header.size:
            break
        packets.append((header.packet_id, data[PacketHeader.SIZE:header.size]))
        data = data[header.size:]
    return packets


def _read_packets(sock, timeout=0.2):
    sock.settimeout(timeout)
    data = b""
    try:
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            data += chunk
    except socket.timeout:
        pass
    return _split(data)


@pytest.fixture
def manager():
    return GameRoomManager()


@pytest.fixture
def service(manager):
    svc = GameServerService("127.0.0.1", 0, room_manager=manager)
    yield svc
    svc.close()


@pytest.fixture
def pairs():
    made = []

    def make():
        a, b = socket.socketpair()
        made.append((a, b))
        return a, b

    yield make
    for a, b in made:
        a.close()
        b.close()


def test_create_session_is_game_session(service, pairs):
    sock, _ = pairs()
    session = service.create_session(sock)
    assert isinstance(session, GameSession)
    assert session.service() is service
    assert session.player().code == sock.fileno()


def test_broadcast_reaches_all_or_others(service, pairs):
    a_sock, a_peer = pairs()
    b_sock, b_peer = pairs()
    a = service.create_session(a_sock)
    b = service.create_session(b_sock)
    service.add_session(a)
    service.add_session(b)
    service.broadcast(make_packet(ClosePlayer(code=1)))
    assert [pid for pid, _ in _read_packets(a_peer)] == [PKT_CLOSE_PLAYER]
    assert [pid for pid, _ in _read_packets(b_peer)] == [PKT_CLOSE_PLAYER]
    service.broadcast(make_packet(ClosePlayer(code=2)), exclude_fd=a.fd())
    assert _read_packets(a_peer) == []
    packets = _read_packets(b_peer)
    assert BufferReader(packets[0][1]).read("i") == 2


def test_release_message_announces_and_removes(service, pairs, manager):
    a_sock, a_peer = pairs()
    b_sock, b_peer = pairs()
    a = service.create_session(a_sock)
    b = service.create_session(b_sock)
    room = manager.get_room(0)
    room.add_session(a)
    room.add_session(b)
    _read_packets(a_peer)
    _read_packets(b_peer)
    service.release_session_message(a)
    assert room.pending() == 2
    room.execute()
    packets = _read_packets(b_peer)
    assert [pid for pid, _ in packets] == [PKT_CLOSE_PLAYER]
    assert BufferReader(packets[0][1]).read("i") == a.fd()
    room.broadcast(make_packet(ClosePlayer(code=5)))
    assert _read_packets(a_peer) == []
    assert len(_read_packets(b_peer)) == 1


def test_run_task_stops_at_once_when_set(service):
    stop = threading.Event()
    stop.set()
    assert run_task(service, stop) == 0


def test_client_joins_over_tcp(service):
    service.start()
    stop = threading.Event()
    worker = threading.Thread(target=run_task, args=(service, stop), daemon=True)
    worker.start()
    client = socket.create_connection(service.address(), timeout=3)
    try:
        body = struct.pack("<HH", 2, 4) + b"hero"
        client.sendall(PacketHeader(PKT_LOAD_DATA, PacketHeader.SIZE + len(body)).pack() + body)
        data = b""
        deadline = time.monotonic() + 3
        ids = []
        client.settimeout(0.1)
        while time.monotonic() < deadline and PKT_MY_PLAYER not in ids:
            try:
                chunk = client.recv(65536)
            except socket.timeout:
                continue
            if not chunk:
                break
            data += chunk
            ids = [pid for pid, _ in _split(data)]
        packets = _split(data)
        assert PKT_LOAD_DATA in ids
        my = [b for pid, b in packets if pid == PKT_MY_PLAYER][0]
        reader = BufferReader(my)
        unit_type, _, _, name_len = reader.read("HBiH")
        assert unit_type == 2
        assert reader.read_bytes(name_len) == b"hero"
        assert service.session_count() == 1
    finally:
        client.close()
        stop.set()
        worker.join(timeout=3)
    assert not worker.is_alive()


def test_main_fails_when_port_taken():
    occupant = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        occupant.bind(("127.0.0.1", 0))
        occupant.listen(1)
        port = occupant.getsockname()[1]
        assert main(["--host", "127.0.0.1", "--port", str(port)]) == 1
    finally:
        occupant.close()