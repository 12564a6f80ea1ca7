import socket
import struct
import threading
import time

import pytest

from tplaynow.connection import Connection, Owner, scramble
from tplaynow.message import Message, MessageHeader
from tplaynow.tsqueue import ThreadSafeQueue


def _until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class _Recorder:
    def __init__(self):
        self.validated = []
        self.event = threading.Event()

    def on_client_validated(self, conn):
        self.validated.append(conn)
        self.event.set()


@pytest.fixture
def linked():
    recorder = _Recorder()
    listener = socket.create_server(("127.0.0.1", 0))
    port = listener.getsockname()[1]
    server_in = ThreadSafeQueue()
    client_in = ThreadSafeQueue()
    client = Connection(Owner.CLIENT, incoming=client_in)
    client.connect_to_server("127.0.0.1", port)
    sock, _ = listener.accept()
    listener.close()
    server = Connection(Owner.SERVER, sock, server_in)
    server.connect_to_client(recorder, 7)
    yield recorder, server, client, server_in, client_in
    client.disconnect()
    server.disconnect()


@pytest.fixture
def raw_listener():
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(5)
    yield listener
    listener.close()


def _recv_exactly(sock, count):
    data = b""
    while len(data) < count:
        chunk = sock.recv(count - len(data))
        if not chunk:
            break
        data += chunk
    return data


def test_scramble_of_zero():
    assert scramble(0) == 0x8E4100A7BD0FF508


def test_scramble_stays_in_64_bits_and_is_injective():
    values = [0, 1, 2, 0xFFFFFFFFFFFFFFFF, 0x123456789ABCDEF0, 1 << 63]
    results = [scramble(v) for v in values]
    assert all(0 <= r < 2**64 for r in results)
    assert len(set(results)) == len(values)


def test_server_precomputes_check():
    conn = Connection(Owner.SERVER)
    assert conn.handshake_check == scramble(conn.handshake_out)


def test_unconnected_connection_reports_closed():
    conn = Connection(Owner.CLIENT)
    assert conn.is_connected() is False


def test_connect_to_client_ignored_for_client_owner():
    conn = Connection(Owner.CLIENT)
    conn.connect_to_client(_Recorder(), 5)
    assert conn.id == 0


def test_connect_to_server_refused():
    probe = socket.create_server(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    conn = Connection(Owner.CLIENT)
    with pytest.raises(OSError):
        conn.connect_to_server("127.0.0.1", port)
    assert conn.is_connected() is False


def test_handshake_validates_client(linked):
    recorder, server, client, _, _ = linked
    assert recorder.event.wait(5)
    assert recorder.validated == [server]
    assert server.id == 7
    assert client.handshake_out == server.handshake_check
    assert server.is_connected() and client.is_connected()


def test_client_message_reaches_server(linked):
    recorder, server, client, server_in, _ = linked
    assert recorder.event.wait(5)
    msg = Message(MessageHeader(3))
    msg.push("I", 1234)
    client.send(msg)
    assert server_in.wait(5)
    owned = server_in.pop_front()
    assert owned.remote is server
    assert owned.msg.header.id == 3
    assert owned.msg.pop("I") == 1234


def test_server_messages_arrive_in_order(linked):
    recorder, server, _, _, client_in = linked
    assert recorder.event.wait(5)
    for n in range(3):
        msg = Message(MessageHeader(n))
        if n:
            msg.push("i", n * 10)
        server.send(msg)
    assert _until(lambda: len(client_in) == 3)
    received = [client_in.pop_front() for _ in range(3)]
    assert [o.msg.header.id for o in received] == [0, 1, 2]
    assert all(o.remote is None for o in received)
    assert len(received[0].msg) == 0
    assert received[2].msg.pop("i") == 20


def test_message_copied_on_send(linked):
    recorder, server, client, server_in, _ = linked
    assert recorder.event.wait(5)
    msg = Message(MessageHeader(4))
    msg.push("B", 1)
    client.send(msg)
    msg.push("B", 2)
    assert server_in.wait(5)
    assert len(server_in.pop_front().msg) == 1


def test_disconnect_is_seen_by_peer(linked):
    recorder, server, client, _, _ = linked
    assert recorder.event.wait(5)
    client.disconnect()
    assert client.is_connected() is False
    assert _until(lambda: not server.is_connected())


def test_wrong_validation_closes_server_side(raw_listener):
    port = raw_listener.getsockname()[1]
    raw = socket.create_connection(("127.0.0.1", port))
    raw.settimeout(5)
    sock, _ = raw_listener.accept()
    recorder = _Recorder()
    server = Connection(Owner.SERVER, sock, ThreadSafeQueue())
    server.connect_to_client(recorder, 1)
    (challenge,) = struct.unpack("<Q", _recv_exactly(raw, 8))
    assert challenge == server.handshake_out
    raw.sendall(struct.pack("<Q", scramble(challenge) ^ 1))
    assert _until(lambda: not server.is_connected())
    assert recorder.validated == []
    raw.close()
    server.disconnect()


def test_client_wire_format(raw_listener):
    port = raw_listener.getsockname()[1]
    client = Connection(Owner.CLIENT, incoming=ThreadSafeQueue())
    client.connect_to_server("127.0.0.1", port)
    raw, _ = raw_listener.accept()
    raw.settimeout(5)
    try:
        raw.sendall(struct.pack("<Q", 99))
        (answer,) = struct.unpack("<Q", _recv_exactly(raw, 8))
        assert answer == scramble(99)
        msg = Message(MessageHeader(5))
        msg.push("H", 9)
        client.send(msg)
        assert _recv_exactly(raw, 8) == struct.pack("<II", 5, 2)
        assert _recv_exactly(raw, 2) == struct.pack("<H", 9)
    finally:
        client.disconnect()
        raw.close()