"""Packet layout, packet types, error codes and file types of the link protocol."""

from __future__ import annotations

import errno
from dataclasses import dataclass, field
from enum import IntEnum

DATA_SIZE_MAX = 127
PACKET_SIZE_MAX = 127
START_MARK = 0x7E
HEADER_SIZE = 3

FILE_SIZE_MAX = 1024 * 1024 * 1024
FILE_NAME_SIZE_MAX = 63


class PacketType(IntEnum):
    """Kind of a packet, carried in the 4-bit type field.

    Values 0x05 and 0x0E are reserved.
    """

    ACK = 0x00
    NACK = 0x01
    DATA = 0x02
    MOVE_DATA = 0x03
    SIZE = 0x04
    TEXT_ACK_NOME = 0x06
    MEDIA_ACK_NOME = 0x07
    IMAGE_ACK_NOME = 0x08
    EOFP = 0x09
    MOVE_RIGHT = 0x0A
    MOVE_UP = 0x0B
    MOVE_DOWN = 0x0C
    MOVE_LEFT = 0x0D
    ERROR = 0x0F


class ErrorType(IntEnum):
    """Error codes carried in the payload of an ERROR packet."""

    EACCESS = 1
    ESTORAGE = 2
    EGENERIC = 3


class FileType(IntEnum):
    """Kind of file being transferred."""

    UNKNOWN = 0x00
    TEXT = 0x01
    IMAGE = 0x02
    VIDEO = 0x03


_STORAGE_ERRNOS = frozenset(
    code for code in (errno.ENOSPC, getattr(errno, "EDQUOT", None)) if code is not None
)

_FILE_TO_PACKET = {
    FileType.TEXT: PacketType.TEXT_ACK_NOME,
    FileType.VIDEO: PacketType.MEDIA_ACK_NOME,
    FileType.IMAGE: PacketType.IMAGE_ACK_NOME,
}
_PACKET_TO_FILE = {packet: file for file, packet in _FILE_TO_PACKET.items()}


def packet_type_from_byte(value: int) -> PacketType:
    """Return the packet type for ``value``; unknown values map to ERROR."""
    try:
        return PacketType(value)
    except ValueError:
        return PacketType.ERROR


def error_type_for_errno(code: int) -> ErrorType:
    """Map an OS errno value to the protocol's error code."""
    if code == errno.EACCES:
        return ErrorType.EACCESS
    if code in _STORAGE_ERRNOS:
        return ErrorType.ESTORAGE
    return ErrorType.EGENERIC


def file_type_to_byte(file_type: FileType) -> PacketType:
    """Return the packet type that announces a file of ``file_type``."""
    return _FILE_TO_PACKET.get(file_type, PacketType.ERROR)


def file_type_from_byte(value: int) -> FileType:
    """Return the file type announced by packet type byte ``value``."""
    return _PACKET_TO_FILE.get(packet_type_from_byte(value), FileType.UNKNOWN)


@dataclass
class PacketHeader:
    """Packet header: 7-bit size, 5-bit sequence number, 4-bit type, 8-bit checksum."""

    size: int = 0
    seq_num: int = 0
    type: int = 0
    checksum: int = 0

    def to_bytes(self) -> bytes:
        """Pack the header into its 3-byte wire form, truncating each field."""
        seq = self.seq_num & 0x1F
        first = ((self.size & 0x7F) << 1) | ((seq >> 4) & 0x01)
        second = ((seq & 0x0F) << 4) | (self.type & 0x0F)
        return bytes((first, second, self.checksum & 0xFF))

    @classmethod
    def from_bytes(cls, buffer: bytes) -> PacketHeader:
        """Unpack a header from the first three bytes of ``buffer``."""
        if len(buffer) < HEADER_SIZE:
            raise ValueError("Buffer too small for packet header")
        first, second, checksum = buffer[0], buffer[1], buffer[2]
        return cls(
            size=(first >> 1) & 0x7F,
            seq_num=((first & 0x01) << 4) | ((second >> 4) & 0x0F),
            type=second & 0x0F,
            checksum=checksum,
        )


@dataclass
class Packet:
    """A start marker, a header and a payload."""

    start_mark: int = 0
    header: PacketHeader = field(default_factory=PacketHeader)
    data: bytes = b""