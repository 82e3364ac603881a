"""Players and monsters in a game room."""

from __future__ import annotations

import math
from typing import Optional

from .mapinfo import MapInfo
from .mathutils import calculate_angle
from .protocol import FVector


class Unit:
    """State shared by players and monsters; ``code`` is the unit's identifier."""

    def __init__(self, uuid: int) -> None:
        self.code = uuid
        self.name = b""
        self.hp = 100
        self.unit_type = 1
        self.position = FVector()
        self.spawned = True

    def set_name(self, name: bytes) -> None:
        self.name = bytes(name)

    def set_position(self, x: int, y: int, z: int, yaw: Optional[float] = None) -> None:
        """Move the unit; the facing angle is kept when ``yaw`` is not given."""
        self.position.x = int(x)
        self.position.y = int(y)
        self.position.z = int(z)
        if yaw is not None:
            self.position.yaw = float(yaw)

    def take_damage(self, damage: int) -> None:
        """Lose hit points, despawning when none are left."""
        self.hp -= damage
        if self.hp <= 0:
            self.set_spawn(False)

    def hit_unit(self, damage: int) -> None:
        """Lose hit points without despawning."""
        self.hp -= damage

    def is_dead(self) -> bool:
        return self.hp <= 0

    def set_spawn(self, spawned: bool) -> None:
        self.spawned = spawned


class PlayerInfo(Unit):
    """A player; its code is the socket descriptor of its session."""


class MonsterInfo(Unit):
    """A monster; its code is a negative number."""

    ATTACK_RADIUS = 200
    ATTACK_TICKS = 4

    def __init__(self, uuid: int) -> None:
        super().__init__(uuid)
        self.start_x = 0
        self.start_y = 0
        self.skill_code = 1
        self.distance = 150
        self.target_uuid = -1
        self._moving = True
        self._attacking = False
        self._tick = -1

    def set_spawn_position(self, start_x: int, start_y: int) -> None:
        self.start_x = start_x
        self.start_y = start_y

    def set_info(self, unit_type: int, hp: int) -> None:
        self.unit_type = unit_type
        self.hp = hp

    def set_attack_target(self, uuid: int) -> None:
        self.target_uuid = uuid

    def on_target(self, player: PlayerInfo, map_info: MapInfo) -> bool:
        """Whether the monster has a target and that player stands inside the map."""
        if self.target_uuid > -1:
            return map_info.in_rect(player.position.x, player.position.y, map_info.map())
        return False

    def move_target(self, target_position: FVector) -> bool:
        """Attack when in range, otherwise step toward the target; True when an attack starts."""
        if self._attacking:
            return False
        if self.check_attack_target(target_position):
            self._attacking = True
            return True
        radian = math.atan2(target_position.y - self.position.y, target_position.x - self.position.x)
        self.position.x = int(self.position.x + self.distance * math.cos(radian))
        self.position.y = int(self.position.y + self.distance * math.sin(radian))
        return False

    def check_attack_target(self, target_position: FVector) -> bool:
        """Whether the target is within reach; if so, turn to face it."""
        dist = int(math.hypot(self.position.x - target_position.x, self.position.y - target_position.y))
        if dist <= self.ATTACK_RADIUS:
            self.position.yaw = calculate_angle(
                self.position.x, self.position.y, target_position.x, target_position.y
            )
            return True
        return False

    def attack_target(self) -> int:
        """Start an attack and return the skill it uses."""
        self._attacking = True
        return self.skill_code

    def set_moving(self, moving: bool) -> None:
        self._moving = moving

    def is_moving(self) -> bool:
        return self._moving and not self._attacking

    def is_attacking(self) -> bool:
        return self._attacking

    def tick(self) -> None:
        """Advance the attack timer, ending the attack when it wraps."""
        if self._attacking:
            self._tick = (self._tick + 1) % self.ATTACK_TICKS
            if self._tick == 0:
                self._attacking = False

    def reset_spawn(self) -> None:
        """Return to the spawn point at full health with no target."""
        self.position.x = self.start_x
        self.position.y = self.start_y
        self.position.z = 100
        self.position.yaw = 0.0
        self.hp = 100
        self.target_uuid = -1