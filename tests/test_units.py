import math

import pytest

from bsserver.mapinfo import MapInfo
from bsserver.protocol import FVector
from bsserver.units import MonsterInfo, PlayerInfo, Unit


def test_unit_defaults():
    unit = Unit(7)
    assert unit.code == 7
    assert unit.hp == 100
    assert unit.unit_type == 1
    assert unit.spawned is True
    assert unit.position == FVector(0, 0, 0, 0.0)


def test_set_name_copies():
    raw = bytearray(b"ab")
    unit = Unit(1)
    unit.set_name(raw)
    raw[0] = ord("z")
    assert unit.name == b"ab"


def test_set_position_keeps_yaw_when_omitted():
    unit = Unit(1)
    unit.set_position(1, 2, 3, 45.0)
    unit.set_position(4, 5, 6)
    assert unit.position == FVector(4, 5, 6, 45.0)


def test_take_damage_despawns_at_zero():
    unit = Unit(1)
    unit.take_damage(60)
    assert unit.spawned is True
    assert unit.is_dead() is False
    unit.take_damage(40)
    assert unit.spawned is False
    assert unit.is_dead() is True


def test_hit_unit_does_not_despawn():
    unit = PlayerInfo(3)
    unit.hit_unit(150)
    assert unit.is_dead() is True
    assert unit.spawned is True


def test_set_info():
    monster = MonsterInfo(-1)
    monster.set_info(12, 30)
    assert (monster.unit_type, monster.hp) == (12, 30)


def test_move_target_steps_toward_far_target():
    monster = MonsterInfo(-1)
    assert monster.move_target(FVector(1000, 0, 0, 0.0)) is False
    assert monster.position.x == monster.distance
    assert monster.position.y == 0
    assert monster.is_attacking() is False


def test_move_target_diagonal_step_length():
    monster = MonsterInfo(-1)
    monster.set_position(100, 100, 100)
    monster.move_target(FVector(-900, 700, 0, 0.0))
    step = math.hypot(monster.position.x - 100, monster.position.y - 100)
    assert abs(step - monster.distance) < 2
    assert monster.position.x < 100 < monster.position.y


def test_move_target_attacks_when_in_range():
    monster = MonsterInfo(-1)
    target = FVector(50, 0, 0, 0.0)
    assert monster.move_target(target) is True
    assert monster.is_attacking() is True
    assert monster.is_moving() is False
    assert monster.move_target(target) is False


@pytest.mark.parametrize("target_y, expected", [(100, 90.0), (-100, -90.0)])
def test_check_attack_target_faces_target(target_y, expected):
    monster = MonsterInfo(-1)
    assert monster.check_attack_target(FVector(0, target_y, 0, 0.0)) is True
    assert monster.position.yaw == pytest.approx(expected)


def test_check_attack_target_out_of_range_leaves_yaw():
    monster = MonsterInfo(-1)
    monster.set_position(0, 0, 0, 12.0)
    assert monster.check_attack_target(FVector(MonsterInfo.ATTACK_RADIUS + 1, 0, 0, 0.0)) is False
    assert monster.position.yaw == 12.0


def test_attack_timer():
    monster = MonsterInfo(-1)
    monster.attack_target()
    monster.tick()
    assert monster.is_attacking() is False
    assert monster.attack_target() == monster.skill_code
    for _ in range(MonsterInfo.ATTACK_TICKS - 1):
        monster.tick()
        assert monster.is_attacking() is True
    monster.tick()
    assert monster.is_attacking() is False
    assert monster.is_moving() is True


def test_set_moving():
    monster = MonsterInfo(-1)
    monster.set_moving(False)
    assert monster.is_moving() is False
    monster.set_moving(True)
    assert monster.is_moving() is True


def test_reset_spawn():
    monster = MonsterInfo(-2)
    monster.set_spawn_position(300, -400)
    monster.set_position(1, 2, 3, 4.0)
    monster.take_damage(100)
    monster.set_attack_target(9)
    monster.reset_spawn()
    assert monster.position == FVector(300, -400, 100, 0.0)
    assert monster.hp == 100
    assert monster.target_uuid == -1


def test_on_target():
    info = MapInfo(5, 5)
    monster = MonsterInfo(-1)
    player = PlayerInfo(4)
    assert monster.on_target(player, info) is False
    monster.set_attack_target(player.code)
    assert monster.on_target(player, info) is True
    player.set_position(info.map().end_x(), 0, 0)
    assert monster.on_target(player, info) is False