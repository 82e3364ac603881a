"""Game room: connected players, monsters and the periodic monster update."""

from __future__ import annotations

import math
import random
import threading
from typing import Any, Dict, Optional

from .jobs import Job, JobQueue
from .mapinfo import MapInfo
from .mathutils import tick_count_ms
from .protocol import (
    AttackUnit,
    AttackUnitList,
    FVector,
    LoadData,
    Monster,
    Move,
    MoveList,
    Player,
    make_my_packet,
    make_packet,
)
from .units import MonsterInfo

MONSTER_COUNT = 10
MAP_WIDTH = 5
MAP_HEIGHT = 5
SPAWN_MARGIN = 1000
SPAWN_HEIGHT = 100
TASK_TIME_MS = 500
MONSTER_NAME_PREFIX = "몬스터"


def _copy_position(position: FVector) -> FVector:
    return FVector(position.x, position.y, position.z, position.yaw)


class GameRoom(JobQueue):
    """A room whose state is changed only by jobs run from its queue."""

    def __init__(
        self,
        room_id: int,
        rng: Optional[random.Random] = None,
        task_time_ms: int = TASK_TIME_MS,
    ) -> None:
        super().__init__()
        self.room_id = room_id
        self._rng = rng if rng is not None else random.Random()
        self._task_time_ms = task_time_ms
        self._map_info = MapInfo(MAP_WIDTH, MAP_HEIGHT)
        self._sessions: Dict[int, Any] = {}
        self._sessions_lock = threading.RLock()
        self._monsters: Dict[int, MonsterInfo] = {}
        self._task_lock = threading.Lock()
        self._tick = 0
        self._tick_time = tick_count_ms()
        self._create_monsters()
        self.set_tick_count()

    def _create_monsters(self) -> None:
        rect = self._map_info.map()
        for i in range(1, MONSTER_COUNT + 1):
            uuid = -i
            start_x = self._rng.randint(rect.start_x() + SPAWN_MARGIN, rect.end_x() - SPAWN_MARGIN)
            start_y = self._rng.randint(rect.start_y() + SPAWN_MARGIN, rect.end_y() - SPAWN_MARGIN)
            monster = MonsterInfo(uuid)
            monster.unit_type = 10 + abs(uuid) % 5
            monster.set_spawn_position(start_x, start_y)
            monster.set_position(start_x, start_y, SPAWN_HEIGHT)
            monster.set_name(f"{MONSTER_NAME_PREFIX}{uuid}".encode("utf-16-le"))
            self._monsters[uuid] = monster

    def _session_snapshot(self) -> Dict[int, Any]:
        with self._sessions_lock:
            return dict(self._sessions)

    def add_session(self, session: Any) -> None:
        """Admit a session: send it the room state and announce its player to the others."""
        fd = session.fd()
        with self._sessions_lock:
            self._sessions[fd] = session
        sessions = self._session_snapshot()

        load = LoadData()
        for other_fd, other in sessions.items():
            if other_fd == fd:
                continue
            info = other.player()
            if info is not None:
                load.players.append(
                    Player(info.unit_type, info.hp, info.code, _copy_position(info.position), info.name)
                )
        for monster in self._monsters.values():
            if monster.spawned:
                load.monsters.append(
                    Monster(
                        monster.unit_type,
                        monster.hp,
                        monster.code,
                        _copy_position(monster.position),
                        monster.name,
                        monster.target_uuid,
                    )
                )
        session.send(make_packet(load))

        info = session.player()
        pkt = Player(info.unit_type, info.hp, info.code, name=info.name)
        self.broadcast_another(make_packet(pkt), fd)
        session.send(make_my_packet(pkt))

    def del_session(self, session: Any) -> None:
        with self._sessions_lock:
            self._sessions.pop(session.fd(), None)

    def broadcast(self, buffer: Any) -> None:
        for session in self._session_snapshot().values():
            session.send(buffer)

    def broadcast_another(self, buffer: Any, socket_fd: int) -> None:
        """Send to every session except the one with ``socket_fd``."""
        for fd, session in self._session_snapshot().items():
            if fd != socket_fd:
                session.send(buffer)

    def broadcast_push_message(self, buffer: Any) -> None:
        """Queue ``buffer`` on every session, to go out with its next send."""
        for session in self._session_snapshot().values():
            session.push_buffer(buffer)

    def push_job(self, job: Job) -> None:
        self.push(job)

    def set_tick_count(self) -> None:
        self._tick_time = tick_count_ms()

    def tick_count(self) -> int:
        """Milliseconds since the last tick mark."""
        return tick_count_ms() - self._tick_time

    def spawn_monsters(self) -> None:
        """Bring every despawned monster back at its spawn point."""
        for monster in self._monsters.values():
            if not monster.spawned:
                monster.reset_spawn()
                monster.set_spawn(True)

    def move_monsters(self) -> None:
        """Advance every monster one step and send the moves and attacks to the room."""
        moves = MoveList()
        attacks = AttackUnitList()
        sessions = self._session_snapshot()
        rect = self._map_info.map()

        for monster in self._monsters.values():
            target = monster.target_uuid
            monster.tick()
            if not (monster.spawned and monster.is_moving()):
                monster.set_moving(True)
                continue

            session = sessions.get(target) if target > -1 else None
            player = session.player() if session is not None else None
            if player is not None and monster.on_target(player, self._map_info):
                attacked = monster.move_target(player.position)
                inside = self._map_info.in_rect(monster.position.x, monster.position.y, rect)
                if inside and attacked:
                    attacks.attacks.append(AttackUnit(monster.code, monster.skill_code))
                    continue
            else:
                yaw = int(monster.position.yaw)
                if self._tick == 1:
                    yaw = self._rng.randint(0, 360)
                x = int(monster.position.x + monster.distance * math.cos(yaw / 3.14))
                y = int(monster.position.y + monster.distance * math.sin(yaw / 3.14))
                x, y, _ = self._map_info.clamp_to_monster_rect(x, y)
                monster.set_position(x, y, monster.position.z, yaw)
                target = -1

            moves.moves.append(Move(monster.code, _copy_position(monster.position), target))

        if attacks.attacks:
            self.broadcast_push_message(make_packet(attacks))
        self.broadcast(make_packet(moves))
        self._tick = (self._tick + 1) % 2

    def room_task(self) -> bool:
        """Spawn and move monsters once the task interval has passed; True when it ran."""
        if tick_count_ms() - self._tick_time <= self._task_time_ms:
            return False
        if not self._task_lock.acquire(blocking=False):
            return False
        try:
            self.spawn_monsters()
            self.move_monsters()
            self._tick_time = tick_count_ms()
        finally:
            self._task_lock.release()
        return True

    def monsters(self) -> Dict[int, MonsterInfo]:
        """The monsters by code."""
        return dict(self._monsters)

    def monster_hit(self, buffer: Any, monster_code: int, socket_fd: int, damage: int) -> None:
        """Apply a player's hit to a monster and announce it."""
        monster = self._monsters.get(monster_code)
        if monster is None:
            return
        monster.set_moving(False)
        monster.take_damage(damage)
        if not monster.is_dead():
            monster.set_attack_target(socket_fd)
        self.broadcast(buffer)


class GameRoomManager:
    """Creates and looks up game rooms by number."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next_id = 0
        self._rooms: Dict[int, GameRoom] = {}
        self.create_room()

    def create_room(self) -> GameRoom:
        with self._lock:
            room_id = self._next_id
            self._next_id += 1
        room = GameRoom(room_id)
        with self._lock:
            self._rooms[room_id] = room
        return room

    def erase_room(self, room_id: int) -> None:
        with self._lock:
            self._rooms.pop(room_id, None)

    def get_room(self, room_id: int) -> Optional[GameRoom]:
        with self._lock:
            return self._rooms.get(room_id)


_manager: Optional[GameRoomManager] = None
_manager_lock = threading.Lock()


def get_room_manager() -> GameRoomManager:
    """The process-wide room manager."""
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = GameRoomManager()
        return _manager