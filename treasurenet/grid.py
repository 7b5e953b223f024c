"""Grid geometry and the mapping between keys, movement bytes and directions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

GRID_SIZE = 8
LOG_SIZE = 10

# Key codes as reported by curses for the arrow keys.
KEY_DOWN = 0o402
KEY_UP = 0o403
KEY_LEFT = 0o404
KEY_RIGHT = 0o405
KEY_QUIT = ord("q")


class Direction(Enum):
    """A movement command."""

    UNKNOWN = auto()
    UP = auto()
    DOWN = auto()
    LEFT = auto()
    RIGHT = auto()
    QUIT = auto()


@dataclass(frozen=True)
class Position:
    """A cell on the grid."""

    x: int
    y: int


_BYTE_TO_DIRECTION = {
    1: Direction.UP,
    2: Direction.DOWN,
    3: Direction.LEFT,
    4: Direction.RIGHT,
    5: Direction.QUIT,
}

_DIRECTION_TO_KEY = {
    Direction.UP: KEY_UP,
    Direction.DOWN: KEY_DOWN,
    Direction.LEFT: KEY_LEFT,
    Direction.RIGHT: KEY_RIGHT,
    Direction.QUIT: KEY_QUIT,
}

_KEY_TO_BYTE = {
    ord("i"): 1,
    KEY_UP: 1,
    ord("k"): 2,
    KEY_DOWN: 2,
    ord("j"): 3,
    KEY_LEFT: 3,
    ord("l"): 4,
    KEY_RIGHT: 4,
    KEY_QUIT: 5,
}


def direction_from_byte(cmd: int) -> Direction:
    """Return the direction encoded by movement byte ``cmd``."""
    return _BYTE_TO_DIRECTION.get(cmd, Direction.UNKNOWN)


def key_from_byte(cmd: int) -> int:
    """Return the key code for movement byte ``cmd``, or 0 if it is unknown."""
    return _DIRECTION_TO_KEY.get(direction_from_byte(cmd), 0)


def byte_from_key(key: int | str) -> int:
    """Return the movement byte for a key code or character, or 0 if unmapped."""
    if isinstance(key, str):
        if len(key) != 1:
            return 0
        key = ord(key)
    return _KEY_TO_BYTE.get(key, 0)


def wrap(value: int, maximum: int) -> int:
    """Wrap ``value`` into the range [0, maximum)."""
    return value % maximum