"""Raw Ethernet sockets bound to one interface, and discovery of the peer's MAC address."""

from __future__ import annotations

import fcntl
import os
import select
import socket
import struct
import sys
import time
from abc import ABC, abstractmethod
from typing import Any

PACKET_SIZE = 1500
RETRIES = 3
TIMEOUT_SECONDS = 10
CUSTOM_ETHERTYPE = 0x88B5

ETH_P_ALL = 0x0003
ETH_ALEN = 6
ETH_HLEN = 14
BROADCAST_MAC = b"\xff" * ETH_ALEN
MAC_REQUEST = b"MAC_REQUEST"
RECEIVE_BUFFER_SIZE = 1024
RETRY_DELAY_SECONDS = 0.5

SOL_PACKET = 263
PACKET_ADD_MEMBERSHIP = 1
PACKET_MR_PROMISC = 1
SIOCGIFHWADDR = 0x8927
IFNAMSIZ = 16

_ETH_HEADER = struct.Struct("!6s6sH")
_PACKET_MREQ = struct.Struct("iHH8s")
_HWADDR_OFFSET = IFNAMSIZ + 2


class RawSocketError(OSError):
    """A raw socket could not be created, configured or used."""


class BaseSocket(ABC):
    """A datagram transport that sends and receives whole payloads."""

    def __init__(self) -> None:
        self.has_timeout = False

    @abstractmethod
    def open(self) -> None:
        """Create and configure the underlying socket."""

    @abstractmethod
    def set_timeout(self, seconds: int) -> None:
        """Set how long a receive waits for data, in seconds."""

    @abstractmethod
    def send(self, data: bytes) -> bool:
        """Send ``data``; return True if it left the socket."""

    @abstractmethod
    def receive(self) -> bytes:
        """Wait for one payload; return it, or empty bytes if none arrived."""


def format_mac(mac: bytes) -> str:
    """Render a MAC address as colon-separated upper-case hex."""
    return ":".join(f"{octet:02X}" for octet in mac)


def build_ethernet_header(dest: bytes, source: bytes, ethertype: int) -> bytes:
    """Return a 14-byte Ethernet header."""
    if len(dest) != ETH_ALEN or len(source) != ETH_ALEN:
        raise ValueError(f"MAC addresses must be {ETH_ALEN} bytes long")
    if not 0 <= ethertype <= 0xFFFF:
        raise ValueError(f"EtherType out of range: {ethertype:#x}")
    return _ETH_HEADER.pack(bytes(dest), bytes(source), ethertype)


def parse_ethernet_header(frame: bytes) -> tuple[bytes, bytes, int]:
    """Return (destination, source, ethertype) from the start of ``frame``."""
    if len(frame) < ETH_HLEN:
        raise ValueError("Frame too short for an Ethernet header")
    dest, source, ethertype = _ETH_HEADER.unpack_from(frame)
    return dest, source, ethertype


def _open_packet_socket() -> socket.socket:
    family = getattr(socket, "AF_PACKET", None)
    if family is None:
        raise RawSocketError("Packet sockets are not supported on this platform")
    try:
        return socket.socket(family, socket.SOCK_RAW, socket.htons(ETH_P_ALL))
    except OSError as exc:
        raise RawSocketError(f"Socket creation failed: {exc}") from exc


def _poll_readable(sock: Any, seconds: float) -> bool:
    poller = select.poll()
    poller.register(sock, select.POLLIN)
    return any(events & select.POLLIN for _, events in poller.poll(int(seconds * 1000)))


class RawSocket:
    """A packet socket on one interface that sees every frame, promiscuously."""

    def __init__(self, interface: str, sock: Any = None) -> None:
        self.interface = interface
        self.timeout = 0
        self.source_mac = bytes(ETH_ALEN)
        self.dest_mac = bytes(ETH_ALEN)
        self.sock = sock if sock is not None else _open_packet_socket()

    @property
    def address(self) -> tuple[str, int]:
        """The link-level address the socket is bound to."""
        return (self.interface, ETH_P_ALL)

    def _interface_index(self, context: str) -> int:
        try:
            return socket.if_nametoindex(self.interface)
        except (OSError, ValueError) as exc:
            raise RawSocketError(f"{context}: {exc}") from exc

    def bind(self) -> None:
        """Bind to the interface, enable promiscuous mode and go non-blocking."""
        index = self._interface_index("Failed to get interface index")
        try:
            self.sock.bind(self.address)
        except OSError as exc:
            raise RawSocketError(f"Binding socket failed: {exc}") from exc

        membership = _PACKET_MREQ.pack(index, PACKET_MR_PROMISC, 0, b"")
        try:
            self.sock.setsockopt(SOL_PACKET, PACKET_ADD_MEMBERSHIP, membership)
        except OSError as exc:
            raise RawSocketError(
                f"Failed to set socket packet promiscuous option: {exc}"
            ) from exc

        self.sock.setblocking(False)
        print(f"Socket bound to interface: {self.interface}")

    def set_timeout(self, seconds: int) -> None:
        """Set how long discovery waits on each poll, in seconds."""
        self.timeout = seconds

    def fetch_source_mac(self) -> bytes:
        """Read the interface's hardware address and remember it as the source MAC."""
        name = os.fsencode(self.interface)[: IFNAMSIZ - 1]
        request = struct.pack("256s", name)
        try:
            reply = fcntl.ioctl(self.sock.fileno(), SIOCGIFHWADDR, request)
        except OSError as exc:
            raise RawSocketError(f"Failed to get MAC address: {exc}") from exc

        self.source_mac = bytes(reply[_HWADDR_OFFSET:_HWADDR_OFFSET + ETH_ALEN])
        print(f"Source MAC address: {format_mac(self.source_mac)}")
        return self.source_mac

    def _send_request(self, frame: bytes, target: tuple) -> None:
        try:
            self.sock.sendto(frame, target)
        except OSError as exc:
            print(f"Failed to send MAC address request: {exc}", file=sys.stderr)

    def discover_target_mac(self) -> bytes:
        """Broadcast a probe and wait for a frame of the custom EtherType.

        The sender of that frame becomes the destination MAC. Raises
        RawSocketError when receiving fails more than RETRIES times.
        """
        self._interface_index("Failed to get interface index for MAC address request")
        frame = (
            build_ethernet_header(BROADCAST_MAC, self.source_mac, CUSTOM_ETHERTYPE)
            + MAC_REQUEST
        )
        target = (self.interface, 0, 0, 0, BROADCAST_MAC)

        self._send_request(frame, target)
        print("Probe sent, waiting for response...")

        failures = 0
        while True:
            if not _poll_readable(self.sock, self.timeout):
                continue
            try:
                reply = self.sock.recv(RECEIVE_BUFFER_SIZE)
            except OSError:
                reply = b""
            if not reply:
                print("Failed to receive response! Retrying...", file=sys.stderr)
                time.sleep(RETRY_DELAY_SECONDS)
                failures += 1
                if failures > RETRIES:
                    raise RawSocketError(
                        f"Failed to establish connection after {RETRIES} retries."
                    )
                continue

            self._send_request(frame, target)
            try:
                _, source, ethertype = parse_ethernet_header(reply)
            except ValueError:
                continue
            if ethertype == CUSTOM_ETHERTYPE:
                self.dest_mac = source
                print(f"Received response from MAC: {format_mac(source)}")
                return source

    def close(self) -> None:
        """Close the underlying socket."""
        self.sock.close()

    def __enter__(self) -> RawSocket:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()