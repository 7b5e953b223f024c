"""The client side of the treasure hunt: sends moves and saves the files it is given."""

from __future__ import annotations

import curses
import os
import sys
import threading
import time
from types import MappingProxyType

from treasurenet.datatransfer import DataTransferSocket
from treasurenet.grid import KEY_DOWN, KEY_LEFT, KEY_QUIT, KEY_RIGHT, KEY_UP, byte_from_key
from treasurenet.kermit import KermitProtocol
from treasurenet.logredirect import OutputRedirect
from treasurenet.observer import DataObserver
from treasurenet.packets import PacketType
from treasurenet.stopandwait import StopAndWaitController

DIRECTION_LABELS = MappingProxyType(
    {
        ord("i"): "^ Up",
        KEY_UP: "^ Up",
        ord("k"): "v Down",
        KEY_DOWN: "v Down",
        ord("j"): "< Left",
        KEY_LEFT: "< Left",
        ord("l"): "> Right",
        KEY_RIGHT: "> Right",
        KEY_QUIT: "Quit",
    }
)

COMMAND_TABLE = (
    "Permitted Commands:",
    "i / ^ : Move Up",
    "k / v : Move Down",
    "j / < : Move Left",
    "l / > : Move Right",
    "q : Quit",
)

_FILE_ANNOUNCEMENTS = frozenset(
    {
        int(PacketType.TEXT_ACK_NOME),
        int(PacketType.MEDIA_ACK_NOME),
        int(PacketType.IMAGE_ACK_NOME),
    }
)

_LISTEN_PAUSE_SECONDS = 0.01
_KEY_PAUSE_SECONDS = 0.2


class ClientUiController:
    """Connects the client screen to the protocol and publishes what arrives."""

    direction_map = DIRECTION_LABELS

    def __init__(self, protocol: KermitProtocol, transmitter: DataTransferSocket | None = None) -> None:
        self.protocol = protocol
        self.transmitter = transmitter
        self.file_observer: DataObserver[bytes] = DataObserver()
        self.movement_observer: DataObserver[int] = DataObserver()
        self.status_observer: DataObserver[str] = DataObserver()

    @classmethod
    def for_interface(cls, interface: str) -> ClientUiController:
        """Open a transport on ``interface`` and build the protocol stack over it.

        Raises RawSocketError if the socket cannot be opened.
        """
        transmitter = DataTransferSocket(interface)
        transmitter.open()
        controller = StopAndWaitController(transmitter)
        return cls(KermitProtocol(controller), transmitter)

    def listen(self) -> bool:
        """Receive one packet; publish a timeout or an announced file name.

        Returns True if a file announcement was received.
        """
        packet = self.protocol.receive_msg()
        if not packet.data and packet.header.type == 0 and packet.header.checksum == 0:
            self.status_observer.post("Timeout")

        if packet.header.type in _FILE_ANNOUNCEMENTS:
            self.file_observer.post(bytes(packet.data))
            return True
        return False

    def save_incoming_file(self, file_name: bytes | str) -> bool:
        """Receive the announced file and save it under ``file_name``."""
        return self.protocol.receive_file(file_name)

    def send_movement(self, move: int) -> bool:
        """Send one movement byte to the server."""
        return self.protocol.send_msg(PacketType.MOVE_DATA, bytes((move,)))

    def set_status_message(self, msg: str) -> None:
        """Publish the peer's last error, if any, and then ``msg``."""
        error = self.protocol.error_message()
        if error:
            self.status_observer.post(error)
        self.status_observer.post(msg)

    def close(self) -> None:
        """Close the transport, if this controller owns one."""
        if self.transmitter is not None:
            self.transmitter.close()
            self.transmitter = None

    def __enter__(self) -> ClientUiController:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _put(screen, y: int, x: int, text: str) -> None:
    try:
        screen.addstr(y, x, text)
    except curses.error:
        pass


class _ClientScreen:
    def __init__(self, screen, controller: ClientUiController) -> None:
        self.screen = screen
        self.controller = controller
        self.last_move = ""
        self.status = ""
        self._lock = threading.RLock()
        self._stopped = threading.Event()

        controller.file_observer.observe(self._on_file)
        controller.status_observer.observe(self._on_status)

    def _on_file(self, file_name: bytes) -> None:
        name = file_name.decode(errors="replace")
        self.controller.set_status_message("Saving incoming file" + name)
        if self.controller.save_incoming_file(file_name):
            self.controller.set_status_message("File successfully saved!")
        else:
            self.controller.set_status_message("Failed to save incoming file" + name)

    def _on_status(self, msg: str) -> None:
        self.status = msg
        self.draw()

    def draw(self) -> None:
        with self._lock:
            screen = self.screen
            screen.clear()
            for offset, line in enumerate(COMMAND_TABLE):
                _put(screen, 1 + offset, 0, line)
            _put(screen, 10, 0, f"Last movement: {self.last_move}")
            screen.clrtoeol()
            _put(screen, 11, 0, f"Status: {self.status}")
            screen.clrtoeol()
            screen.refresh()

    def _listen_loop(self) -> None:
        while not self._stopped.is_set():
            self.controller.listen()
            time.sleep(_LISTEN_PAUSE_SECONDS)

    def run(self) -> None:
        listener = threading.Thread(target=self._listen_loop, daemon=True)
        listener.start()
        self.draw()
        try:
            while not self._stopped.is_set():
                with self._lock:
                    key = self.screen.getch()
                if key == -1:
                    time.sleep(_LISTEN_PAUSE_SECONDS)
                    continue

                label = self.controller.direction_map.get(key)
                if label is not None:
                    self.last_move = label
                    if not self.controller.send_movement(byte_from_key(key)):
                        self.controller.set_status_message("Failed to send move command. Try again!")
                else:
                    self.controller.set_status_message("Invalid input. Press q to quit.")

                self.draw()
                if key == KEY_QUIT:
                    self._stopped.set()
                time.sleep(_KEY_PAUSE_SECONDS)
        finally:
            self._stopped.set()
            listener.join()


def _run_client(screen, interface: str) -> None:
    curses.cbreak()
    curses.noecho()
    screen.keypad(True)
    screen.nodelay(True)
    try:
        curses.curs_set(0)
    except curses.error:
        pass

    with ClientUiController.for_interface(interface) as controller:
        _ClientScreen(screen, controller).run()


def main(argv: list[str] | None = None) -> int:
    """Run the client on the interface named in ``argv``, logging to an optional file."""
    args = list(sys.argv[1:] if argv is None else argv)
    prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "client"
    if not args:
        print(f"Usage: {prog} <interface name>", file=sys.stderr)
        return 1
    if len(args) > 2:
        print(f"Usage: {prog} <interface name> <output file>", file=sys.stderr)
        return 1

    interface = args[0]
    log_file = args[1] if len(args) == 2 else os.devnull
    with OutputRedirect(log_file):
        curses.wrapper(_run_client, interface)
    return 0