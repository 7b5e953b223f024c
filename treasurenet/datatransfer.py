"""Payload transport over raw Ethernet frames exchanged with one peer."""

from __future__ import annotations

import select
import sys
from collections.abc import Callable
from typing import Any

from treasurenet.rawsocket import (
    CUSTOM_ETHERTYPE,
    ETH_ALEN,
    ETH_HLEN,
    PACKET_SIZE,
    BaseSocket,
    RawSocket,
    RawSocketError,
    build_ethernet_header,
    parse_ethernet_header,
)


def _poll_events(sock: Any, seconds: float) -> int:
    poller = select.poll()
    poller.register(sock, select.POLLIN)
    mask = 0
    for _, events in poller.poll(int(seconds * 1000)):
        mask |= events
    return mask


class DataTransferSocket(BaseSocket):
    """Sends payloads to, and receives payloads from, the peer found on an interface."""

    def __init__(
        self,
        interface: str,
        socket_factory: Callable[[str], RawSocket] = RawSocket,
    ) -> None:
        super().__init__()
        self.interface = interface
        self.timeout = 0
        self.source_mac = bytes(ETH_ALEN)
        self.dest_mac = bytes(ETH_ALEN)
        self._socket_factory = socket_factory
        self._raw: RawSocket | None = None

    def _require_open(self) -> RawSocket:
        if self._raw is None:
            raise RawSocketError("Socket is not open")
        return self._raw

    def _sync_channel(self, raw: RawSocket) -> None:
        print("Waiting for source MAC address...")
        raw.fetch_source_mac()
        print("Waiting for destination MAC address...")
        raw.discover_target_mac()
        self.source_mac = raw.source_mac
        self.dest_mac = raw.dest_mac

    def open(self) -> None:
        """Create the raw socket, bind it and discover both MAC addresses.

        Raises RawSocketError if any step fails.
        """
        raw = self._socket_factory(self.interface)
        try:
            raw.bind()
            try:
                self._sync_channel(raw)
            except RawSocketError as exc:
                raise RawSocketError(
                    f"Failed to establish a route under interface: {self.interface}"
                ) from exc
        except BaseException:
            raw.close()
            raise
        self._raw = raw
        print(f"Raw socket created on interface: {self.interface}")

    def set_timeout(self, seconds: int) -> None:
        """Set how long ``receive`` waits for a frame, in seconds."""
        raw = self._require_open()
        self.timeout = seconds
        raw.set_timeout(seconds)

    def send(self, payload: bytes) -> bool:
        """Frame ``payload`` for the peer and send it; return True on success."""
        raw = self._require_open()
        frame = build_ethernet_header(self.dest_mac, self.source_mac, CUSTOM_ETHERTYPE)
        self.has_timeout = False
        try:
            raw.sock.sendto(frame + bytes(payload), raw.address)
        except OSError as exc:
            print(f"Packet sending failed: {exc}", file=sys.stderr)
            return False
        return True

    def receive(self) -> bytes:
        """Wait for one frame and return its payload.

        Returns empty bytes on timeout (setting ``has_timeout``), on a receive
        error, and for frames neither addressed to us nor sent by the peer.
        """
        raw = self._require_open()
        events = _poll_events(raw.sock, self.timeout)
        if not events:
            self.has_timeout = True
            print("Timeout!", file=sys.stderr)
            return b""
        if not events & select.POLLIN:
            return b""

        try:
            frame = raw.sock.recv(PACKET_SIZE)
        except OSError as exc:
            print(f"Packet receiving failed: {exc}", file=sys.stderr)
            return b""

        try:
            dest, source, _ = parse_ethernet_header(frame)
        except ValueError:
            return b""
        if dest != self.source_mac and source != self.dest_mac:
            return b""
        return bytes(frame[ETH_HLEN:])

    def close(self) -> None:
        """Close the raw socket, if open."""
        if self._raw is not None:
            self._raw.close()
            self._raw = None

    def __enter__(self) -> DataTransferSocket:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()