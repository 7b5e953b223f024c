from __future__ import annotations

import pytest

from treasurenet.client import DIRECTION_LABELS, ClientUiController, main
from treasurenet.grid import KEY_QUIT, KEY_UP, byte_from_key
from treasurenet.packets import Packet, PacketHeader, PacketType


class FakeProtocol:
    def __init__(self, packets=(), error="", send_result=True, receive_result=True):
        self.packets = list(packets)
        self.error = error
        self.send_result = send_result
        self.receive_result = receive_result
        self.sent = []
        self.received_names = []

    def receive_msg(self):
        return self.packets.pop(0) if self.packets else Packet()

    def send_msg(self, packet_type, data):
        self.sent.append((packet_type, bytes(data)))
        return self.send_result

    def receive_file(self, file_name):
        self.received_names.append(file_name)
        return self.receive_result

    def error_message(self):
        return self.error


def _recorder(observer):
    seen = []
    observer.observe(seen.append)
    return seen


def test_listen_on_timeout_posts_status():
    controller = ClientUiController(FakeProtocol([Packet()]))
    statuses = _recorder(controller.status_observer)
    assert controller.listen() is False
    assert statuses == ["Timeout"]


@pytest.mark.parametrize(
    "packet_type",
    [PacketType.TEXT_ACK_NOME, PacketType.MEDIA_ACK_NOME, PacketType.IMAGE_ACK_NOME],
)
def test_listen_publishes_announced_file_name(packet_type):
    packet = Packet(
        header=PacketHeader(size=9, type=int(packet_type), checksum=1),
        data=b"notes.txt",
    )
    controller = ClientUiController(FakeProtocol([packet]))
    files = _recorder(controller.file_observer)
    statuses = _recorder(controller.status_observer)
    assert controller.listen() is True
    assert files == [b"notes.txt"]
    assert statuses == []


def test_listen_ignores_other_packets():
    packet = Packet(
        header=PacketHeader(size=1, type=int(PacketType.DATA), checksum=5),
        data=b"x",
    )
    controller = ClientUiController(FakeProtocol([packet]))
    files = _recorder(controller.file_observer)
    statuses = _recorder(controller.status_observer)
    assert controller.listen() is False
    assert files == []
    assert statuses == []


def test_send_movement_sends_move_data_byte():
    protocol = FakeProtocol()
    controller = ClientUiController(protocol)
    move = byte_from_key(KEY_UP)
    assert controller.send_movement(move) is True
    assert protocol.sent == [(PacketType.MOVE_DATA, bytes((move,)))]


def test_send_movement_reports_failure():
    controller = ClientUiController(FakeProtocol(send_result=False))
    assert controller.send_movement(1) is False


def test_save_incoming_file_delegates_name():
    protocol = FakeProtocol(receive_result=False)
    controller = ClientUiController(protocol)
    assert controller.save_incoming_file(b"map.png") is False
    assert protocol.received_names == [b"map.png"]


def test_set_status_message_posts_error_first():
    controller = ClientUiController(FakeProtocol(error="Access denied"))
    statuses = _recorder(controller.status_observer)
    controller.set_status_message("File successfully saved!")
    assert statuses == ["Access denied", "File successfully saved!"]


def test_set_status_message_without_error():
    controller = ClientUiController(FakeProtocol())
    statuses = _recorder(controller.status_observer)
    controller.set_status_message("hello")
    assert statuses == ["hello"]


def test_every_mapped_key_has_a_movement_byte():
    movement_bytes = sorted({byte_from_key(key) for key in ClientUiController.direction_map})
    assert movement_bytes == [1, 2, 3, 4, 5]
    assert DIRECTION_LABELS[KEY_QUIT] == "Quit"
    assert DIRECTION_LABELS[ord("i")] == DIRECTION_LABELS[KEY_UP]


def test_close_releases_transmitter():
    class FakeTransmitter:
        closed = False

        def close(self):
            self.closed = True

    transmitter = FakeTransmitter()
    with ClientUiController(FakeProtocol(), transmitter) as controller:
        pass
    assert transmitter.closed is True
    assert controller.transmitter is None


@pytest.mark.parametrize("argv", [[], ["eth0", "log.txt", "extra"]])
def test_main_rejects_bad_arguments(argv, capsys):
    assert main(argv) == 1
    assert "Usage:" in capsys.readouterr().err