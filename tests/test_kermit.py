import errno
from collections import deque

import pytest

from treasurenet.kermit import KermitProtocol, decode_file_size, encode_file_size
from treasurenet.packets import (
    DATA_SIZE_MAX,
    FILE_NAME_SIZE_MAX,
    START_MARK,
    ErrorType,
    FileType,
    Packet,
    PacketHeader,
    PacketType,
    error_type_for_errno,
)
from treasurenet.stopandwait import FlowController


class FakeController(FlowController):
    def __init__(self, incoming=(), results=()):
        super().__init__()
        self.incoming = deque(incoming)
        self.results = deque(results)
        self.dispatched = []
        self.errors = []

    def dispatch(self, packet):
        self.dispatched.append(packet)
        return self.results.popleft() if self.results else True

    def receive(self):
        return self.incoming.popleft() if self.incoming else Packet()

    def send_error(self, err):
        self.errors.append(err)
        self.error_code = int(error_type_for_errno(err))


def pkt(ptype, data=b""):
    return Packet(START_MARK, PacketHeader(size=len(data), type=int(ptype)), data)


def test_encode_file_size_is_little_endian():
    assert encode_file_size(1) == b"\x01" + bytes(7)


@pytest.mark.parametrize("size", [0, 1, 300, 2**20, 2**30, 2**40 + 7])
def test_file_size_round_trip(size):
    assert decode_file_size(encode_file_size(size)) == size


def test_send_msg_builds_packet():
    ctrl = FakeController()
    proto = KermitProtocol(ctrl)
    assert proto.send_msg(PacketType.MOVE_DATA, [3]) is True
    packet = ctrl.dispatched[0]
    assert packet.header.type == PacketType.MOVE_DATA
    assert packet.header.size == 1
    assert packet.data == bytes((3,))


def test_send_msg_reports_dispatch_failure():
    ctrl = FakeController(results=[False])
    assert KermitProtocol(ctrl).send_msg(PacketType.DATA, b"abc") is False


def test_receive_msg_returns_controller_packet():
    incoming = pkt(PacketType.MOVE_DATA, b"\x02")
    ctrl = FakeController([incoming])
    assert KermitProtocol(ctrl).receive_msg() == incoming


def test_send_file_sends_name_size_chunks_and_eof(tmp_path):
    content = bytes(range(256)) + b"tail"
    path = tmp_path / "notes.txt"
    path.write_bytes(content)
    ctrl = FakeController()
    assert KermitProtocol(ctrl).send_file(FileType.TEXT, path) is True

    name, size, *chunks, eof = ctrl.dispatched
    assert name.header.type == PacketType.TEXT_ACK_NOME
    assert name.data == b"notes.txt"
    assert name.header.size == len(b"notes.txt")
    assert size.header.type == PacketType.SIZE
    assert decode_file_size(size.data) == len(content)
    assert size.header.size == len(size.data)
    assert all(c.header.type == PacketType.DATA for c in chunks)
    assert all(c.header.size == len(c.data) <= DATA_SIZE_MAX for c in chunks)
    assert b"".join(c.data for c in chunks) == content
    assert eof.header.type == PacketType.EOFP
    assert eof.data == b""


def test_send_file_with_exact_chunk_multiple(tmp_path):
    path = tmp_path / "pic.png"
    path.write_bytes(b"\xab" * (2 * DATA_SIZE_MAX))
    ctrl = FakeController()
    assert KermitProtocol(ctrl).send_file(FileType.IMAGE, path) is True
    assert ctrl.dispatched[0].header.type == PacketType.IMAGE_ACK_NOME
    data_packets = [p for p in ctrl.dispatched if p.header.type == PacketType.DATA]
    assert [len(p.data) for p in data_packets] == [DATA_SIZE_MAX, DATA_SIZE_MAX]
    assert ctrl.dispatched[-1].header.type == PacketType.EOFP


def test_send_file_caps_name_size(tmp_path):
    name = "a" * 80 + ".txt"
    path = tmp_path / name
    path.write_bytes(b"x")
    ctrl = FakeController()
    assert KermitProtocol(ctrl).send_file(FileType.VIDEO, path) is True
    first = ctrl.dispatched[0]
    assert first.header.size == FILE_NAME_SIZE_MAX
    assert first.data == name.encode()
    assert first.header.type == PacketType.MEDIA_ACK_NOME


def test_send_file_stops_when_name_is_not_delivered(tmp_path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"content")
    ctrl = FakeController(results=[False])
    assert KermitProtocol(ctrl).send_file(FileType.TEXT, path) is False
    assert len(ctrl.dispatched) == 1


def test_send_file_stops_when_chunk_is_not_delivered(tmp_path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"x" * 300)
    ctrl = FakeController(results=[True, True, False])
    assert KermitProtocol(ctrl).send_file(FileType.TEXT, path) is False
    assert len(ctrl.dispatched) == 3
    assert all(p.header.type != PacketType.EOFP for p in ctrl.dispatched)


def test_send_missing_file_raises(tmp_path):
    ctrl = FakeController()
    with pytest.raises(FileNotFoundError):
        KermitProtocol(ctrl).send_file(FileType.TEXT, tmp_path / "absent.txt")


def test_receive_file_writes_content(tmp_path):
    ctrl = FakeController([
        pkt(PacketType.SIZE, encode_file_size(5)),
        pkt(PacketType.DATA, b"hel"),
        pkt(PacketType.DATA, b"lo"),
        pkt(PacketType.EOFP),
    ])
    proto = KermitProtocol(ctrl, download_dir=tmp_path)
    assert proto.receive_file(b"gem.txt") is True
    assert (tmp_path / "gem.txt").read_bytes() == b"hello"
    assert proto.file_size == 5
    assert proto.bytes_downloaded == 5


def test_receive_file_round_trip_with_send_file(tmp_path):
    source = tmp_path / "orig.bin"
    content = bytes(range(200)) * 3
    source.write_bytes(content)
    sender = FakeController()
    KermitProtocol(sender).send_file(FileType.IMAGE, source)

    out = tmp_path / "out"
    out.mkdir()
    receiver = FakeController(sender.dispatched[1:])
    proto = KermitProtocol(receiver, download_dir=out)
    assert proto.receive_file(sender.dispatched[0].data) is True
    assert (out / "orig.bin").read_bytes() == content


def test_receive_file_error_first(tmp_path):
    ctrl = FakeController([pkt(PacketType.ERROR, bytes((int(ErrorType.ESTORAGE),)))])
    proto = KermitProtocol(ctrl, download_dir=tmp_path)
    assert proto.receive_file("x.txt") is False
    assert proto.error_code == ErrorType.ESTORAGE
    assert proto.error_message() == "Insufficient storage or quota"
    assert not (tmp_path / "x.txt").exists()


def test_receive_file_error_mid_transfer(tmp_path):
    ctrl = FakeController([
        pkt(PacketType.SIZE, encode_file_size(10)),
        pkt(PacketType.DATA, b"abc"),
        pkt(PacketType.ERROR, bytes((int(ErrorType.EACCESS),))),
    ])
    proto = KermitProtocol(ctrl, download_dir=tmp_path)
    assert proto.receive_file("y.txt") is False
    assert proto.error_message() == "Access denied"


def test_receive_file_nothing_arrives(tmp_path):
    proto = KermitProtocol(FakeController(), download_dir=tmp_path)
    assert proto.receive_file("z.txt") is False
    assert list(tmp_path.iterdir()) == []


def test_receive_file_into_missing_directory_reports_error(tmp_path):
    ctrl = FakeController([pkt(PacketType.SIZE, encode_file_size(1))])
    proto = KermitProtocol(ctrl, download_dir=tmp_path / "absent")
    assert proto.receive_file("w.txt") is False
    assert ctrl.errors == [errno.ENOENT]


def test_no_error_message_initially():
    assert KermitProtocol(FakeController()).error_message() == ""


@pytest.mark.parametrize(
    "code, message",
    [
        (0, ""),
        (1, "Access denied"),
        (2, "Insufficient storage or quota"),
        (3, "Generic error"),
        (9, "Generic error"),
    ],
)
def test_error_message(code, message):
    proto = KermitProtocol(FakeController())
    proto.error_code = code
    assert proto.error_message() == message