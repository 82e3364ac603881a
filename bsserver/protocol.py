"""Wire format of the game protocol: packet header, packet bodies and their encoders."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Tuple, Union

from .send_buffer import SendBuffer, get_send_buffer_manager

PKT_LOAD_DATA = 1
PKT_PLAYER = 2
PKT_MOVE = 3
PKT_CHAT = 4
PKT_MY_PLAYER = 5
PKT_CLOSE_PLAYER = 6
PKT_ATTACK = 7
PKT_HIT = 8
PKT_ATTACK_LIST = 9

MAX_PACKET_SIZE = 0xFFFF

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass
class PacketHeader:
    """The identifier and total size that precede every packet."""

    packet_id: int
    size: int

    FORMAT: ClassVar[str] = "<HH"
    SIZE: ClassVar[int] = struct.calcsize("<HH")

    def pack(self) -> bytes:
        return struct.pack(self.FORMAT, self.packet_id, self.size)

    @classmethod
    def unpack(cls, data: BytesLike) -> "PacketHeader":
        """Read a header from the start of ``data``."""
        if len(data) < cls.SIZE:
            raise ValueError(f"header needs {cls.SIZE} bytes, got {len(data)}")
        packet_id, size = struct.unpack_from(cls.FORMAT, data)
        return cls(packet_id, size)


@dataclass
class FVector:
    """A position with integer coordinates and a facing angle."""

    x: int = 0
    y: int = 0
    z: int = 0
    yaw: float = 0.0

    SIZE: ClassVar[int] = struct.calcsize("<iiif")


@dataclass
class User:
    code: int
    name: bytes = b""

    def size(self) -> int:
        return struct.calcsize("<IH") + len(self.name)


@dataclass
class UserData:
    users: List[User] = field(default_factory=list)

    def size(self) -> int:
        return sum(user.size() for user in self.users)


@dataclass
class Move:
    code: int
    position: FVector = field(default_factory=FVector)
    target: int = -1

    def size(self) -> int:
        return struct.calcsize("<i") + FVector.SIZE + struct.calcsize("<i")


@dataclass
class MoveList:
    moves: List[Move] = field(default_factory=list)

    def size(self) -> int:
        return struct.calcsize("<H") + sum(move.size() for move in self.moves)


@dataclass
class Chat:
    code: int
    chat_type: int
    text: bytes = b""

    def size(self) -> int:
        return struct.calcsize("<IBI") + len(self.text)


@dataclass
class Monster:
    unit_type: int
    hp: int
    code: int
    position: FVector = field(default_factory=FVector)
    name: bytes = b""
    target: int = -1

    def size(self) -> int:
        """Encoded size as an entry of a load-data packet."""
        return struct.calcsize("<HBii") + FVector.SIZE + struct.calcsize("<H") + len(self.name)


@dataclass
class Player:
    unit_type: int
    hp: int
    code: int
    position: FVector = field(default_factory=FVector)
    name: bytes = b""

    def size(self) -> int:
        """Encoded size of a standalone player packet, which carries no position."""
        return struct.calcsize("<HBiH") + len(self.name)

    def _entry_size(self) -> int:
        return self.size() + FVector.SIZE


@dataclass
class LoadData:
    monsters: List[Monster] = field(default_factory=list)
    players: List[Player] = field(default_factory=list)

    def size(self) -> int:
        counts = struct.calcsize("<HH")
        return (
            counts
            + sum(player._entry_size() for player in self.players)
            + sum(monster.size() for monster in self.monsters)
        )


@dataclass
class ClosePlayer:
    code: int

    def size(self) -> int:
        return struct.calcsize("<i")


@dataclass
class AttackUnit:
    code: int
    skill_code: int

    def size(self) -> int:
        return struct.calcsize("<ii")


@dataclass
class AttackUnitList:
    attacks: List[AttackUnit] = field(default_factory=list)

    def size(self) -> int:
        return struct.calcsize("<H") + sum(attack.size() for attack in self.attacks)


@dataclass
class HitUnit:
    target_code: int
    attack_code: int
    damage: int

    def size(self) -> int:
        return struct.calcsize("<iii")


class BufferWriter:
    """Packs little-endian values one after another into a fixed region."""

    def __init__(self, buffer: Union[bytearray, memoryview], pos: int = 0) -> None:
        self._buffer = memoryview(buffer)
        self._pos = pos

    def write(self, fmt: str, *args: Any) -> None:
        """Pack ``args`` with the struct format ``fmt``; ValueError when they do not fit."""
        full = "<" + fmt
        length = struct.calcsize(full)
        self._reserve(length)
        struct.pack_into(full, self._buffer, self._pos, *args)
        self._pos += length

    def write_bytes(self, data: BytesLike) -> None:
        length = len(data)
        self._reserve(length)
        self._buffer[self._pos:self._pos + length] = data
        self._pos += length

    def free_size(self) -> int:
        return len(self._buffer) - self._pos

    def write_size(self) -> int:
        return self._pos

    def _reserve(self, length: int) -> None:
        if length > self.free_size():
            raise ValueError(f"{length} bytes do not fit in {self.free_size()} free")


class BufferReader:
    """Unpacks little-endian values one after another from a byte string."""

    def __init__(self, data: BytesLike, offset: int = 0) -> None:
        self._data = memoryview(bytes(data))
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    def read(self, fmt: str) -> Any:
        """Unpack ``fmt``; a single value comes back bare, several as a tuple."""
        full = "<" + fmt
        length = struct.calcsize(full)
        self._require(length)
        values = struct.unpack_from(full, self._data, self._offset)
        self._offset += length
        return values[0] if len(values) == 1 else values

    def read_bytes(self, length: int) -> bytes:
        if length < 0:
            raise ValueError("length must not be negative")
        self._require(length)
        data = bytes(self._data[self._offset:self._offset + length])
        self._offset += length
        return data

    def _require(self, length: int) -> None:
        left = len(self._data) - self._offset
        if length > left:
            raise ValueError(f"need {length} bytes, {left} left")


def make_send_buffer(data_size: int, packet_id: int) -> SendBuffer:
    """Reserve a send buffer for a packet body of ``data_size`` bytes and write its header."""
    if data_size < 0:
        raise ValueError("data size must not be negative")
    packet_size = data_size + PacketHeader.SIZE
    if packet_size > MAX_PACKET_SIZE:
        raise ValueError(f"packet of {packet_size} bytes exceeds {MAX_PACKET_SIZE}")
    send_buffer = get_send_buffer_manager().open(packet_size)
    send_buffer.buffer()[:PacketHeader.SIZE] = PacketHeader(packet_id, packet_size).pack()
    send_buffer.close(packet_size)
    return send_buffer


def _write_position(writer: BufferWriter, position: FVector) -> None:
    writer.write("iiif", position.x, position.y, position.z, position.yaw)


def _encode_user_data(writer: BufferWriter, pkt: UserData) -> None:
    for user in pkt.users:
        writer.write("IH", user.code & 0xFFFFFFFF, len(user.name))
        writer.write_bytes(user.name)


def _encode_load_data(writer: BufferWriter, pkt: LoadData) -> None:
    writer.write("H", len(pkt.players))
    for player in pkt.players:
        writer.write("HBi", player.unit_type & 0xFFFF, player.hp & 0xFF, player.code)
        _write_position(writer, player.position)
        writer.write("H", len(player.name))
        writer.write_bytes(player.name)
    writer.write("H", len(pkt.monsters))
    for monster in pkt.monsters:
        writer.write("HBii", monster.unit_type & 0xFFFF, monster.hp & 0xFF, monster.code, monster.target)
        _write_position(writer, monster.position)
        writer.write("H", len(monster.name))
        writer.write_bytes(monster.name)


def _encode_player(writer: BufferWriter, pkt: Player) -> None:
    writer.write("HBiH", pkt.unit_type & 0xFFFF, pkt.hp & 0xFF, pkt.code, len(pkt.name))
    writer.write_bytes(pkt.name)


def _encode_move_list(writer: BufferWriter, pkt: MoveList) -> None:
    writer.write("H", len(pkt.moves))
    for move in pkt.moves:
        writer.write("i", move.code)
        _write_position(writer, move.position)
        writer.write("i", move.target)


def _encode_chat(writer: BufferWriter, pkt: Chat) -> None:
    writer.write("IBI", pkt.code & 0xFFFFFFFF, pkt.chat_type & 0xFF, len(pkt.text))
    writer.write_bytes(pkt.text)


def _encode_close_player(writer: BufferWriter, pkt: ClosePlayer) -> None:
    writer.write("i", pkt.code)


def _encode_attack(writer: BufferWriter, pkt: AttackUnit) -> None:
    writer.write("ii", pkt.code, pkt.skill_code)


def _encode_hit(writer: BufferWriter, pkt: HitUnit) -> None:
    writer.write("iii", pkt.attack_code, pkt.target_code, pkt.damage)


def _encode_attack_list(writer: BufferWriter, pkt: AttackUnitList) -> None:
    writer.write("H", len(pkt.attacks))
    for attack in pkt.attacks:
        writer.write("ii", attack.code, attack.skill_code)


_ENCODERS: Dict[type, Tuple[int, Callable[[BufferWriter, Any], None]]] = {
    UserData: (PKT_LOAD_DATA, _encode_user_data),
    LoadData: (PKT_LOAD_DATA, _encode_load_data),
    Player: (PKT_PLAYER, _encode_player),
    MoveList: (PKT_MOVE, _encode_move_list),
    Chat: (PKT_CHAT, _encode_chat),
    ClosePlayer: (PKT_CLOSE_PLAYER, _encode_close_player),
    AttackUnit: (PKT_ATTACK, _encode_attack),
    HitUnit: (PKT_HIT, _encode_hit),
    AttackUnitList: (PKT_ATTACK_LIST, _encode_attack_list),
}


def _build(pkt: Any, packet_id: int, encode: Callable[[BufferWriter, Any], None]) -> SendBuffer:
    send_buffer = make_send_buffer(pkt.size(), packet_id)
    writer = BufferWriter(send_buffer.buffer()[PacketHeader.SIZE:])
    encode(writer, pkt)
    return send_buffer


def make_packet(pkt: Any) -> SendBuffer:
    """Encode a packet body, with its header, into a send buffer."""
    try:
        packet_id, encode = _ENCODERS[type(pkt)]
    except KeyError:
        raise TypeError(f"no encoding for {type(pkt).__name__}") from None
    return _build(pkt, packet_id, encode)


def make_my_packet(pkt: Player) -> SendBuffer:
    """Encode the player's own information, sent only to that player."""
    if not isinstance(pkt, Player):
        raise TypeError("my-player packet needs a Player")
    return _build(pkt, PKT_MY_PLAYER, _encode_player)