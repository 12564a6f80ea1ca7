import time

import pytest

from tplaynow.message import Message, MessageHeader
from tplaynow.net_client import ClientInterface
from tplaynow.simple_server import CustomMsgTypes, CustomServer

HOST = "127.0.0.1"


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class _StubClient:
    def __init__(self, client_id):
        self.id = client_id
        self.sent = []

    def send(self, msg):
        self.sent.append(msg)


@pytest.fixture
def server():
    srv = CustomServer(0, host=HOST)
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def make_client():
    made = []

    def make():
        client = ClientInterface()
        made.append(client)
        return client

    yield make
    for client in made:
        client.disconnect()


def _connected_client(server, make_client):
    client = make_client()
    assert client.connect(HOST, server.port)
    assert _wait_until(lambda: not client.incoming.empty())
    accept = client.incoming.pop_front().msg
    assert accept.header.id == CustomMsgTypes.SERVER_ACCEPT
    return client


def test_message_type_ids_survive_header_round_trip():
    ids = []
    for msg_type in CustomMsgTypes:
        header = MessageHeader.unpack(MessageHeader(msg_type).pack())
        ids.append(int(header.id))
    assert ids == list(range(5))


def test_new_client_is_accepted(server, make_client):
    client = _connected_client(server, make_client)
    assert client.is_connected()
    assert len(server.connections) == 1


def test_ping_is_bounced_back(server, make_client):
    client = _connected_client(server, make_client)
    client.send(Message(MessageHeader(CustomMsgTypes.SERVER_PING)).push("q", 123456789))
    assert _wait_until(lambda: not server.incoming.empty())
    assert server.update(100, True) == 1
    assert _wait_until(lambda: not client.incoming.empty())
    echo = client.incoming.pop_front().msg
    assert echo.header.id == CustomMsgTypes.SERVER_PING
    assert echo.pop("q") == 123456789


def test_message_all_announces_sender_to_others(server, make_client):
    sender = _connected_client(server, make_client)
    other = _connected_client(server, make_client)
    sender_id = server.connections[0].id
    sender.send(Message(MessageHeader(CustomMsgTypes.MESSAGE_ALL)))
    assert _wait_until(lambda: not server.incoming.empty())
    server.update(100, True)
    assert _wait_until(lambda: not other.incoming.empty())
    notice = other.incoming.pop_front().msg
    assert notice.header.id == CustomMsgTypes.SERVER_MESSAGE
    assert notice.pop("I") == sender_id


def test_on_message_ping_sends_same_message(capsys):
    srv = CustomServer(0, host=HOST)
    try:
        stub = _StubClient(5)
        msg = Message(MessageHeader(CustomMsgTypes.SERVER_PING))
        srv.on_message(stub, msg)
        assert stub.sent == [msg]
        assert "[5]: Server Ping" in capsys.readouterr().out
    finally:
        srv.stop()


def test_on_client_disconnect_reports_id(capsys):
    srv = CustomServer(0, host=HOST)
    try:
        srv.on_client_disconnect(_StubClient(42))
        assert "Removing client [42]" in capsys.readouterr().out
    finally:
        srv.stop()


def test_on_client_connect_accepts_and_greets():
    srv = CustomServer(0, host=HOST)
    try:
        stub = _StubClient(1)
        assert srv.on_client_connect(stub) is True
        assert [m.header.id for m in stub.sent] == [CustomMsgTypes.SERVER_ACCEPT]
    finally:
        srv.stop()