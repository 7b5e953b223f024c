"""The server side of the treasure hunt: the grid, the player and the hidden files."""

from __future__ import annotations

import curses
import os
import random
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path

from treasurenet.datatransfer import DataTransferSocket
from treasurenet.grid import (
    GRID_SIZE,
    KEY_DOWN,
    KEY_LEFT,
    KEY_QUIT,
    KEY_RIGHT,
    KEY_UP,
    LOG_SIZE,
    Position,
    key_from_byte,
    wrap,
)
from treasurenet.kermit import KermitProtocol
from treasurenet.logredirect import OutputRedirect
from treasurenet.observer import DataObserver
from treasurenet.packets import FileType, PacketType
from treasurenet.stopandwait import StopAndWaitController

OBJECTS_DIR = "./objetos/"

_MIME_CATEGORIES = {
    "text": FileType.TEXT,
    "video": FileType.VIDEO,
    "image": FileType.IMAGE,
}

_STEPS = {
    KEY_UP: (0, -1),
    KEY_DOWN: (0, 1),
    KEY_LEFT: (-1, 0),
    KEY_RIGHT: (1, 0),
}


def detect_file_type(file_path: str | os.PathLike[str]) -> FileType:
    """Classify a file by the category of its MIME type, as reported by ``file``."""
    try:
        result = subprocess.run(
            ["file", "--mime-type", "-b", os.fspath(file_path)],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        return FileType.UNKNOWN

    category, slash, _ = result.stdout.partition("/")
    if not slash:
        return FileType.UNKNOWN
    return _MIME_CATEGORIES.get(category, FileType.UNKNOWN)


def list_object_files(directory: str | os.PathLike[str]) -> list[str]:
    """Return the names of the regular files in ``directory``, sorted.

    Raises OSError if the directory cannot be read.
    """
    return sorted(entry.name for entry in Path(directory).iterdir() if entry.is_file())


def generate_treasures(count: int, files: list[str], rng: random.Random) -> dict[Position, str]:
    """Hide the first ``count`` of ``files`` on distinct random grid cells.

    Raises ValueError if there are too few files or cells.
    """
    if count > GRID_SIZE * GRID_SIZE:
        raise ValueError(f"Cannot place {count} treasures on a {GRID_SIZE}x{GRID_SIZE} grid")
    if count > len(files):
        raise ValueError(f"Need {count} files for treasures, found {len(files)}")

    remaining = iter(files)
    treasures: dict[Position, str] = {}
    while len(treasures) < count:
        cell = Position(rng.randrange(GRID_SIZE), rng.randrange(GRID_SIZE))
        if cell not in treasures:
            treasures[cell] = next(remaining)
            print(treasures[cell])
    return treasures


@dataclass
class GameState:
    """The player's position, its recent moves and the treasures left on the grid."""

    treasures: dict[Position, str] = field(default_factory=dict)
    player: Position = field(default_factory=lambda: Position(0, 0))
    move_log: list[Position] = field(default_factory=list)
    last_message: str = ""

    def __post_init__(self) -> None:
        if not self.move_log:
            self.move_log.append(self.player)

    def move(self, key: int) -> bool:
        """Move the player one cell for an arrow key, wrapping at the edges.

        Returns False, changing nothing, for any other key.
        """
        step = _STEPS.get(key)
        if step is None:
            return False
        dx, dy = step
        self.player = Position(
            wrap(self.player.x + dx, GRID_SIZE),
            wrap(self.player.y + dy, GRID_SIZE),
        )
        self.move_log.append(self.player)
        if len(self.move_log) > LOG_SIZE:
            del self.move_log[0]
        return True


class ServerUiController:
    """Connects the server screen to the protocol and publishes received moves."""

    def __init__(self, protocol: KermitProtocol, transmitter: DataTransferSocket | None = None) -> None:
        self.protocol = protocol
        self.transmitter = transmitter
        self.move_observer: DataObserver[int] = DataObserver()
        self.file_observer: DataObserver[str] = DataObserver()
        self.status_observer: DataObserver[str] = DataObserver()

    @classmethod
    def for_interface(cls, interface: str) -> ServerUiController:
        """Open a transport on ``interface`` and build the protocol stack over it.

        Raises RawSocketError if the socket cannot be opened.
        """
        transmitter = DataTransferSocket(interface)
        transmitter.open()
        controller = StopAndWaitController(transmitter)
        return cls(KermitProtocol(controller), transmitter)

    def listen(self) -> None:
        """Receive one packet and publish the key of any movement it carries."""
        packet = self.protocol.receive_msg()
        if packet.header.type == PacketType.MOVE_DATA and packet.data:
            self.move_observer.post(key_from_byte(packet.data[0]))

    def send_file(self, file_path: str) -> bool:
        """Send the file at ``file_path`` to the client."""
        return self.protocol.send_file(detect_file_type(file_path), file_path)

    def set_status_message(self, msg: str) -> None:
        """Publish a status message."""
        self.status_observer.post(msg)

    def close(self) -> None:
        """Close the transport, if this controller owns one."""
        if self.transmitter is not None:
            self.transmitter.close()
            self.transmitter = None

    def __enter__(self) -> ServerUiController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _put(screen, y: int, x: int, text: str, attr: int = 0) -> None:
    try:
        screen.addstr(y, x, text, attr)
    except curses.error:
        pass


class _ServerScreen:
    def __init__(self, screen, controller: ServerUiController, state: GameState) -> None:
        self.screen = screen
        self.controller = controller
        self.state = state
        self.pending_key: int | None = None
        self.found: Position | None = None

        controller.move_observer.observe(self._on_move)
        controller.file_observer.observe(self._on_file)
        controller.status_observer.observe(self._on_status)

    def _on_move(self, key: int) -> None:
        self.pending_key = key

    def _on_file(self, file_path: str) -> None:
        if self.controller.send_file(file_path):
            if self.found is not None:
                self.state.treasures.pop(self.found, None)
            self.controller.set_status_message("File sent successfully!")
        else:
            self.controller.set_status_message("Failed to send file:" + file_path)

    def _on_status(self, msg: str) -> None:
        self.state.last_message = msg
        self.draw()

    def _draw_grid(self) -> None:
        for y in range(GRID_SIZE):
            for x in range(GRID_SIZE):
                cell = Position(x, y)
                if cell == self.state.player:
                    _put(self.screen, y + 2, x * 4, "[P]", curses.A_REVERSE)
                elif cell in self.state.treasures:
                    _put(self.screen, y + 2, x * 4, " T ")
                else:
                    _put(self.screen, y + 2, x * 4, " . ")

    def _draw_move_log(self) -> None:
        _put(self.screen, GRID_SIZE + 3, 0, f"Movement log (last {LOG_SIZE} steps):")
        log = self.state.move_log
        start = max(0, len(log) - LOG_SIZE)
        for row in range(LOG_SIZE):
            index = start + row
            if index < len(log):
                cell = log[index]
                line = f"Step {index + 1:2d}: ({cell.x}, {cell.y})   "
            else:
                line = " " * 25
            _put(self.screen, GRID_SIZE + 4 + row, 0, line)

    def draw(self) -> None:
        self.screen.clear()
        self._draw_grid()
        self._draw_move_log()
        _put(self.screen, GRID_SIZE + LOG_SIZE + 5, 0, f"Message: {self.state.last_message:<80}")
        self.screen.refresh()

    def run(self) -> None:
        self.draw()
        while self.pending_key != KEY_QUIT:
            self.controller.listen()
            key = self.pending_key
            if key is None or not self.state.move(key):
                continue
            self.pending_key = None

            treasure = self.state.treasures.get(self.state.player)
            if treasure is not None:
                self.found = self.state.player
                self.controller.set_status_message(
                    "Treasure found! Sending file " + treasure + " to client..."
                )
                self.controller.file_observer.post(treasure)
            self.draw()


def _run_server(screen, interface: str) -> None:
    screen.keypad(True)
    curses.noecho()
    try:
        curses.curs_set(0)
    except curses.error:
        pass

    files = [OBJECTS_DIR + name for name in list_object_files(OBJECTS_DIR)]
    state = GameState(treasures=generate_treasures(GRID_SIZE, files, random.Random()))
    with ServerUiController.for_interface(interface) as controller:
        _ServerScreen(screen, controller, state).run()


def main(argv: list[str] | None = None) -> int:
    """Run the server on the interface named in ``argv``, logging to an optional file."""
    args = list(sys.argv[1:] if argv is None else argv)
    prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "server"
    if not args:
        print(f"Usage: {prog} <interface name>", file=sys.stderr)
        return 1
    if len(args) > 2:
        print(f"Usage: {prog} <interface name> <output file>", file=sys.stderr)
        return 1

    interface = args[0]
    log_file = args[1] if len(args) == 2 else os.devnull
    with OutputRedirect(log_file):
        curses.wrapper(_run_server, interface)
    return 0