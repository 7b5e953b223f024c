"""Stop-and-wait flow control: every packet is acknowledged before the next is sent."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod

from treasurenet.checksum import ChecksumStrategy, ErrorControlStrategy
from treasurenet.packets import (
    DATA_SIZE_MAX,
    HEADER_SIZE,
    START_MARK,
    ErrorType,
    Packet,
    PacketHeader,
    PacketType,
    error_type_for_errno,
)
from treasurenet.rawsocket import RETRIES, TIMEOUT_SECONDS, BaseSocket

SEQ_MASK = 0x1F


class FlowController(ABC):
    """Reliable delivery of packets over an unreliable transport."""

    def __init__(self) -> None:
        self.packet_type = int(PacketType.ACK)
        self.current_seq = 0xFF
        self.error_code = 0

    @abstractmethod
    def dispatch(self, packet: Packet) -> bool:
        """Deliver ``packet``; return True once the peer has acknowledged it."""

    @abstractmethod
    def receive(self) -> Packet:
        """Return the next valid packet, or an empty Packet on timeout."""

    @abstractmethod
    def send_error(self, err: int) -> None:
        """Tell the peer that the OS error ``err`` stopped the transfer."""


class StopAndWaitController(FlowController):
    """Sends one packet at a time, retransmitting until it is acknowledged."""

    def __init__(
        self,
        transmitter: BaseSocket,
        strategy: ErrorControlStrategy | None = None,
    ) -> None:
        super().__init__()
        self.transmitter = transmitter
        self.strategy = strategy if strategy is not None else ChecksumStrategy()
        self.transmitter.set_timeout(TIMEOUT_SECONDS)

    def _next_seq(self) -> int:
        return (self.current_seq + 1) & SEQ_MASK

    def _encode(self, header: PacketHeader, data: bytes) -> bytes:
        header.checksum = 0
        header.checksum = self.strategy.generate(header.to_bytes() + data)
        return bytes((START_MARK,)) + header.to_bytes() + data

    def _send_control(self, packet_type: PacketType, seq_num: int, data: bytes = b"") -> None:
        header = PacketHeader(size=len(data), seq_num=seq_num, type=int(packet_type))
        self.transmitter.send(self._encode(header, data))

    def dispatch(self, packet: Packet) -> bool:
        """Send ``packet`` with the next sequence number and wait for its ACK.

        The packet is retransmitted on NACK or timeout, at most RETRIES + 1
        times after the first attempt. Returns False at once if the peer
        reports an error, which is then held in ``error_code``.
        """
        if packet.header.size > DATA_SIZE_MAX:
            print("Data size too large", file=sys.stderr)
            return False
        self.error_code = 0

        data = bytes(packet.data)
        self.current_seq = self._next_seq()
        header = PacketHeader(
            size=packet.header.size,
            seq_num=self.current_seq,
            type=packet.header.type,
        )
        frame = self._encode(header, data)

        retries = 0
        while True:
            succeeded = False
            if self.transmitter.send(frame):
                succeeded = self._wait_for_ack(header.seq_num)
            if self.error_code > 0:
                return False
            if succeeded or retries > RETRIES:
                return succeeded
            retries += 1

    def _wait_for_ack(self, seq_num: int) -> bool:
        while True:
            frame = self.transmitter.receive()
            if not frame:
                if self.transmitter.has_timeout:
                    return False
                continue
            if frame[0] != START_MARK or len(frame) < 1 + HEADER_SIZE:
                continue

            body = bytes(frame[1:])
            header = PacketHeader.from_bytes(body)
            if header.type == PacketType.ERROR:
                payload = body[HEADER_SIZE:]
                self.error_code = payload[0] if payload else int(ErrorType.EGENERIC)
                return False
            if (
                header.type == PacketType.ACK
                and header.seq_num == seq_num
                and self.strategy.verify(body)
            ):
                return True
            if header.type == PacketType.NACK:
                return False

    def receive(self) -> Packet:
        """Wait for a valid packet, NACK corrupt ones, and ACK the one returned.

        Returns an empty Packet when the transmitter times out.
        """
        while True:
            frame = self.transmitter.receive()
            if not frame:
                return Packet()
            if frame[0] != START_MARK:
                continue
            body = bytes(frame[1:])
            if len(body) < HEADER_SIZE:
                continue

            header = PacketHeader.from_bytes(body)
            if not self.strategy.verify(body):
                self._send_control(PacketType.NACK, header.seq_num)
                continue

            data = body[HEADER_SIZE:HEADER_SIZE + header.size]
            self._send_control(PacketType.ACK, header.seq_num)
            self.packet_type = header.type
            self.current_seq = header.seq_num
            return Packet(start_mark=START_MARK, header=header, data=data)

    def send_error(self, err: int) -> None:
        """Send an ERROR packet carrying the protocol code for errno ``err``."""
        code = int(error_type_for_errno(err))
        self.error_code = code
        self._send_control(PacketType.ERROR, 0, bytes((code,)))