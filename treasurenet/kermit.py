"""File and message transfer over a flow controller, Kermit style."""

from __future__ import annotations

import os
import sys
from pathlib import Path

from treasurenet.packets import (
    DATA_SIZE_MAX,
    FILE_NAME_SIZE_MAX,
    FILE_SIZE_MAX,
    ErrorType,
    FileType,
    Packet,
    PacketHeader,
    PacketType,
    file_type_to_byte,
)
from treasurenet.stopandwait import FlowController

FILE_SIZE_BYTES = 8
DEFAULT_DOWNLOAD_DIR = "tesouros"

_ERROR_MESSAGES = {
    0: "",
    int(ErrorType.EACCESS): "Access denied",
    int(ErrorType.ESTORAGE): "Insufficient storage or quota",
}


def encode_file_size(size: int) -> bytes:
    """Encode a file size as 8 little-endian bytes."""
    return size.to_bytes(FILE_SIZE_BYTES, "little")


def decode_file_size(data: bytes) -> int:
    """Decode a little-endian file size from at most the first 8 bytes of ``data``."""
    return int.from_bytes(bytes(data[:FILE_SIZE_BYTES]), "little")


def _error_code_of(packet: Packet) -> int:
    return packet.data[0] if packet.data else int(ErrorType.EGENERIC)


class KermitProtocol:
    """Sends messages and files through a flow controller and receives them."""

    def __init__(
        self,
        controller: FlowController,
        download_dir: str | os.PathLike[str] = DEFAULT_DOWNLOAD_DIR,
    ) -> None:
        self.controller = controller
        self.download_dir = Path(download_dir)
        self.error_code = 0
        self.file_size = 0
        self.bytes_downloaded = 0

    def send_msg(self, packet_type: PacketType, data: bytes) -> bool:
        """Send ``data`` in one packet of ``packet_type``."""
        payload = bytes(data)
        packet = Packet(
            header=PacketHeader(size=len(payload), type=int(packet_type)),
            data=payload,
        )
        return self.controller.dispatch(packet)

    def receive_msg(self) -> Packet:
        """Return the next packet from the controller."""
        return self.controller.receive()

    def _send_file_info(self, file_type: FileType, path: Path) -> bool:
        name = os.fsencode(path.name)
        name_packet = Packet(
            header=PacketHeader(
                size=min(len(name), FILE_NAME_SIZE_MAX),
                type=int(file_type_to_byte(file_type)),
            ),
            data=name,
        )
        if not self.controller.dispatch(name_packet):
            return False

        size = encode_file_size(min(path.stat().st_size, FILE_SIZE_MAX))
        size_packet = Packet(
            header=PacketHeader(size=len(size), type=int(PacketType.SIZE)),
            data=size,
        )
        return self.controller.dispatch(size_packet)

    def send_file(self, file_type: FileType, file_path: str | os.PathLike[str]) -> bool:
        """Announce the file's name and size, then send its content and an EOF packet.

        Raises OSError if the file's size cannot be read.
        """
        path = Path(file_path)
        if not self._send_file_info(file_type, path):
            print("Failed to send file info packet", file=sys.stderr)
            return False

        try:
            source = path.open("rb")
        except OSError as exc:
            self.controller.send_error(exc.errno or 0)
            return False

        with source:
            while chunk := source.read(DATA_SIZE_MAX):
                packet = Packet(
                    header=PacketHeader(size=len(chunk), type=int(PacketType.DATA)),
                    data=chunk,
                )
                if not self.controller.dispatch(packet):
                    print(f"Failed to send file {path}", file=sys.stderr)
                    return False

        self.controller.dispatch(Packet(header=PacketHeader(type=int(PacketType.EOFP))))
        return True

    def receive_file(self, file_name: bytes | str) -> bool:
        """Receive a file's size and content and save it in the download directory.

        An existing file of the same name is overwritten. Returns False if the
        peer reports an error, nothing arrives, or the file cannot be written.
        """
        packet = self.controller.receive()
        if not packet.data:
            print("Failed to receive file size packet", file=sys.stderr)
            return False
        if packet.header.type == PacketType.ERROR:
            self.error_code = _error_code_of(packet)
            return False
        if packet.header.type == PacketType.SIZE:
            self.file_size = decode_file_size(packet.data)

        target = self.download_dir / os.fsdecode(file_name)
        try:
            output = target.open("wb")
        except OSError as exc:
            self.controller.send_error(exc.errno or 0)
            return False

        self.bytes_downloaded = 0
        with output:
            while True:
                packet = self.controller.receive()
                if packet.header.type == PacketType.ERROR:
                    self.error_code = _error_code_of(packet)
                    return False
                if not packet.data:
                    return True
                if packet.header.type == PacketType.DATA:
                    try:
                        output.write(packet.data)
                    except OSError as exc:
                        self.controller.send_error(exc.errno or 0)
                        return False
                    self.bytes_downloaded += len(packet.data)

    def error_message(self) -> str:
        """Return a message for the last error the peer reported, or ''."""
        return _ERROR_MESSAGES.get(self.error_code, "Generic error")