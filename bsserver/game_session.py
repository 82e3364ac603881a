"""Session of a game client: splits the stream into packets and acts on them."""

from __future__ import annotations

import logging
import socket
from typing import Callable, Dict, Optional

from .game_room import GameRoom, GameRoomManager, get_room_manager
from .jobs import Job
from .protocol import (
    PKT_ATTACK,
    PKT_CHAT,
    PKT_HIT,
    PKT_LOAD_DATA,
    PKT_MOVE,
    AttackUnit,
    BufferReader,
    Chat,
    FVector,
    HitUnit,
    Move,
    MoveList,
    PacketHeader,
    make_packet,
)
from .session import Session
from .units import PlayerInfo

logger = logging.getLogger(__name__)

HIT_DAMAGE = 10
ROOM_ID = 0


class GameSession(Session):
    """A client connection with the player it controls."""

    def __init__(self, sock: socket.socket, room_manager: Optional[GameRoomManager] = None) -> None:
        self._room_manager = room_manager
        self._player: Optional[PlayerInfo] = None
        super().__init__(sock)
        self.create_player_info()

    def on_recv(self, data: bytes) -> int:
        """Handle every complete packet in ``data``; return the bytes consumed."""
        used = 0
        while True:
            remaining = len(data) - used
            if remaining < PacketHeader.SIZE:
                break
            header = PacketHeader.unpack(data[used:used + PacketHeader.SIZE])
            if header.size < PacketHeader.SIZE:
                logger.warning("packet %d declares impossible size %d", header.packet_id, header.size)
                break
            if remaining < header.size:
                break
            try:
                self.handle_packet(data[used:used + header.size])
            except ValueError as exc:
                logger.warning("dropping malformed packet %d: %s", header.packet_id, exc)
            used += header.size
        return used

    def handle_packet(self, packet: bytes) -> None:
        """Act on one complete packet; ValueError when its body is truncated."""
        header = PacketHeader.unpack(packet)
        reader = BufferReader(packet, PacketHeader.SIZE)
        handlers: Dict[int, Callable[[BufferReader], None]] = {
            PKT_LOAD_DATA: self._handle_load,
            PKT_MOVE: self._handle_move,
            PKT_CHAT: self._handle_chat,
            PKT_ATTACK: self._handle_attack,
            PKT_HIT: self._handle_hit,
        }
        handler = handlers.get(header.packet_id)
        if handler is not None:
            handler(reader)

    def create_player_info(self) -> None:
        self._player = PlayerInfo(self.fd())

    def player(self) -> Optional[PlayerInfo]:
        return self._player

    def _room(self) -> Optional[GameRoom]:
        manager = self._room_manager if self._room_manager is not None else get_room_manager()
        return manager.get_room(ROOM_ID)

    def _handle_load(self, reader: BufferReader) -> None:
        unit_type, name_len = reader.read("HH")
        name = reader.read_bytes(name_len)
        self._player.set_name(name)
        self._player.unit_type = unit_type
        room = self._room()
        if room is not None:
            room.push_job(Job(room.add_session, self))

    def _handle_move(self, reader: BufferReader) -> None:
        x, y, z, yaw = reader.read("iiif")
        pkt = MoveList([Move(self.fd(), FVector(x, y, z, yaw), -1)])
        buffer = make_packet(pkt)
        self._player.set_position(x, y, z, yaw)
        room = self._room()
        if room is not None:
            room.push_job(Job(room.broadcast_push_message, buffer))

    def _handle_chat(self, reader: BufferReader) -> None:
        chat_type, text_len = reader.read("BI")
        text = reader.read_bytes(text_len)
        room = self._room()
        if room is not None:
            buffer = make_packet(Chat(self.fd(), chat_type, text))
            room.push_job(Job(room.broadcast, buffer))

    def _handle_attack(self, reader: BufferReader) -> None:
        skill_code = reader.read("i")
        room = self._room()
        if room is not None:
            buffer = make_packet(AttackUnit(self.fd(), skill_code))
            room.push_job(Job(room.broadcast, buffer))

    def _handle_hit(self, reader: BufferReader) -> None:
        target_code, attack_code = reader.read("ii")
        if target_code < 0:
            attack_code = self._player.code
        pkt = HitUnit(target_code=target_code, attack_code=attack_code, damage=HIT_DAMAGE)
        room = self._room()
        if room is not None:
            buffer = make_packet(pkt)
            room.push_job(Job(room.monster_hit, buffer, target_code, self._player.code, pkt.damage))