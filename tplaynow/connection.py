"""Validated message connections over TCP, owned by either a server or a client."""

from __future__ import annotations

import enum
import queue
import socket
import struct
import threading
import time
from typing import Any, Callable, List, Optional

from .message import Message, MessageHeader, OwnedMessage
from .tsqueue import ThreadSafeQueue

_MASK64 = 0xFFFFFFFFFFFFFFFF
_HANDSHAKE = struct.Struct("<Q")
_JOIN_TIMEOUT = 5.0


def scramble(value: int) -> int:
    """Transform a 64-bit handshake value; both ends must agree on the result."""
    out = (value & _MASK64) ^ 0xD34E3AB6AF1E0B5F
    out = ((out & 0xF0F0F0F0F0F0F0F0) >> 4) | ((out & 0x0F0F0F0F0F0F0F0F) << 4)
    return (out ^ 0xB3A5A3CC47EE45FD) & _MASK64


class Owner(enum.Enum):
    """Which side of the link a connection belongs to."""

    SERVER = "server"
    CLIENT = "client"


class Connection:
    """One end of a message link.

    After a handshake (the server sends a value, the client answers with its
    scrambled form) every complete message read is pushed onto ``incoming``
    as an :class:`OwnedMessage`. Server-side messages carry the connection
    as their remote; client-side ones carry None.
    """

    def __init__(
        self,
        owner: Owner,
        sock: Optional[socket.socket] = None,
        incoming: Optional[ThreadSafeQueue] = None,
    ) -> None:
        self.owner = Owner(owner)
        self.incoming: ThreadSafeQueue = (
            incoming if incoming is not None else ThreadSafeQueue()
        )
        self.id = 0
        self._sock = sock
        self._open = sock is not None and sock.fileno() != -1
        self._lock = threading.Lock()
        self._ready = threading.Event()
        self._outgoing: "queue.Queue[Optional[Message]]" = queue.Queue()
        self._threads: List[threading.Thread] = []
        self.handshake_in = 0
        if self.owner is Owner.SERVER:
            self.handshake_out = time.time_ns() & _MASK64
            self.handshake_check = scramble(self.handshake_out)
        else:
            self.handshake_out = 0
            self.handshake_check = 0

    def connect_to_client(self, server: Any, uid: int = 0) -> None:
        """Begin validating a freshly accepted client (server side only).

        ``server.on_client_validated(connection)`` is called once the client
        has answered the handshake correctly.
        """
        if self.owner is Owner.SERVER and self._open:
            self.id = uid
            self._start(self._validate_client, server)

    def connect_to_server(self, host: str, port: int) -> None:
        """Connect to ``host``:``port`` and answer its handshake (client side only).

        Raises OSError when the connection cannot be made.
        """
        if self.owner is not Owner.CLIENT:
            return
        sock = socket.create_connection((host, port))
        with self._lock:
            self._sock = sock
            self._open = True
        self._start(self._answer_server)

    def disconnect(self) -> None:
        """Close the socket and wait for the connection's threads to finish."""
        self._close()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join(_JOIN_TIMEOUT)

    def is_connected(self) -> bool:
        return self._open

    def send(self, msg: Message) -> None:
        """Queue a copy of ``msg``; queued messages go out in order once validated."""
        copy = Message(MessageHeader(msg.header.id, msg.header.size), bytearray(msg.body))
        self._outgoing.put(copy)

    def _start(self, protocol: Callable[..., None], *args: Any) -> None:
        reader = threading.Thread(target=protocol, args=args, daemon=True)
        writer = threading.Thread(target=self._write_loop, daemon=True)
        self._threads = [reader, writer]
        writer.start()
        reader.start()

    def _close(self) -> None:
        with self._lock:
            if not self._open:
                return
            self._open = False
            sock = self._sock
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
        self._outgoing.put(None)
        self._ready.set()

    def _fail(self, what: str) -> None:
        if self._open:
            print(f"[{self.id}] {what}", flush=True)
        self._close()

    def _recv_exactly(self, count: int) -> bytes:
        assert self._sock is not None
        data = bytearray()
        while len(data) < count:
            chunk = self._sock.recv(count - len(data))
            if not chunk:
                raise ConnectionError("connection closed by peer")
            data += chunk
        return bytes(data)

    def _validate_client(self, server: Any) -> None:
        assert self._sock is not None
        try:
            self._sock.sendall(_HANDSHAKE.pack(self.handshake_out))
        except OSError:
            self._close()
            return
        self._ready.set()
        try:
            (self.handshake_in,) = _HANDSHAKE.unpack(self._recv_exactly(_HANDSHAKE.size))
        except OSError:
            self._close()
            return
        if self.handshake_in != self.handshake_check:
            print("Client Disconnected (Validation Failed)", flush=True)
            self._close()
            return
        server.on_client_validated(self)
        self._read_loop()

    def _answer_server(self) -> None:
        assert self._sock is not None
        try:
            (self.handshake_in,) = _HANDSHAKE.unpack(self._recv_exactly(_HANDSHAKE.size))
            self.handshake_out = scramble(self.handshake_in)
            self._sock.sendall(_HANDSHAKE.pack(self.handshake_out))
        except OSError:
            self._close()
            return
        self._ready.set()
        self._read_loop()

    def _read_loop(self) -> None:
        remote = self if self.owner is Owner.SERVER else None
        while self._open:
            try:
                header = MessageHeader.unpack(self._recv_exactly(MessageHeader.SIZE))
            except OSError:
                self._fail("Read Header Fail.")
                return
            try:
                body = self._recv_exactly(header.size) if header.size else b""
            except OSError:
                self._fail("Read Body Fail.")
                return
            self.incoming.push_back(OwnedMessage(remote, Message(header, bytearray(body))))

    def _write_loop(self) -> None:
        self._ready.wait()
        while True:
            msg = self._outgoing.get()
            if msg is None or not self._open:
                return
            assert self._sock is not None
            try:
                self._sock.sendall(msg.header.pack())
            except OSError:
                self._fail("Write Header Fail.")
                return
            if msg.body:
                try:
                    self._sock.sendall(bytes(msg.body))
                except OSError:
                    self._fail("Write Body Fail.")
                    return