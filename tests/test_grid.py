import pytest

from treasurenet.grid import (
    GRID_SIZE,
    KEY_DOWN,
    KEY_LEFT,
    KEY_RIGHT,
    KEY_UP,
    Direction,
    Position,
    byte_from_key,
    direction_from_byte,
    key_from_byte,
    wrap,
)


@pytest.mark.parametrize(
    "cmd, direction",
    [
        (1, Direction.UP),
        (2, Direction.DOWN),
        (3, Direction.LEFT),
        (4, Direction.RIGHT),
        (5, Direction.QUIT),
        (0, Direction.UNKNOWN),
        (6, Direction.UNKNOWN),
    ],
)
def test_direction_from_byte(cmd, direction):
    assert direction_from_byte(cmd) is direction


@pytest.mark.parametrize(
    "cmd, key",
    [(1, KEY_UP), (2, KEY_DOWN), (3, KEY_LEFT), (4, KEY_RIGHT), (5, ord("q")), (9, 0)],
)
def test_key_from_byte(cmd, key):
    assert key_from_byte(cmd) == key


@pytest.mark.parametrize(
    "key, cmd",
    [
        ("i", 1),
        ("k", 2),
        ("j", 3),
        ("l", 4),
        ("q", 5),
        (ord("i"), 1),
        (KEY_RIGHT, 4),
        ("x", 0),
        ("", 0),
    ],
)
def test_byte_from_key(key, cmd):
    assert byte_from_key(key) == cmd


@pytest.mark.parametrize("cmd", [1, 2, 3, 4, 5])
def test_byte_key_round_trip(cmd):
    assert byte_from_key(key_from_byte(cmd)) == cmd


def test_wrap_stays_in_range():
    for value in range(-3 * GRID_SIZE, 3 * GRID_SIZE):
        wrapped = wrap(value, GRID_SIZE)
        assert 0 <= wrapped < GRID_SIZE
        assert (wrapped - value) % GRID_SIZE == 0


def test_wrap_edges():
    assert wrap(-1, GRID_SIZE) == GRID_SIZE - 1
    assert wrap(GRID_SIZE, GRID_SIZE) == 0


def test_wrap_by_zero_raises():
    with pytest.raises(ZeroDivisionError):
        wrap(3, 0)


def test_positions_compare_and_hash_by_value():
    treasures = {Position(2, 3): "a.txt"}
    assert Position(2, 3) == Position(2, 3)
    assert treasures[Position(2, 3)] == "a.txt"
    assert Position(3, 2) not in treasures