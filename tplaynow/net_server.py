"""Server side of the validated message protocol."""

from __future__ import annotations

import socket
import sys
import threading
from typing import Any, List, Optional

from .connection import Connection, Owner
from .message import Message
from .tsqueue import ThreadSafeQueue

FIRST_CLIENT_ID = 10000
_ACCEPT_POLL = 0.2


def _format_address(address: Any) -> str:
    host, port = address[0], address[1]
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


class ServerInterface:
    """Accepts clients, validates them and dispatches their messages.

    Subclasses decide which clients to accept and what to do with their
    messages by overriding the ``on_*`` hooks. Messages received from all
    clients gather in ``incoming`` until :meth:`update` hands them on.
    """

    def __init__(self, port: int, host: str = "0.0.0.0") -> None:
        self.incoming: ThreadSafeQueue = ThreadSafeQueue()
        self._connections: List[Connection] = []
        self._lock = threading.RLock()
        self._id_counter = FIRST_CLIENT_ID
        self._listener = socket.create_server((host, port))
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "ServerInterface":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def port(self) -> int:
        """The port actually listened on (useful when 0 was requested)."""
        return self._listener.getsockname()[1]

    @property
    def connections(self) -> List[Connection]:
        """The approved connections, oldest first."""
        with self._lock:
            return list(self._connections)

    def start(self) -> bool:
        """Start accepting clients in the background; False if that fails."""
        try:
            self._stopping.clear()
            self._listener.settimeout(_ACCEPT_POLL)
            thread = threading.Thread(target=self._accept_loop, daemon=True)
            thread.start()
            self._thread = thread
        except Exception as exc:  # any failure is reported, not raised
            print(f"[SERVER] Exception: {exc}", file=sys.stderr)
            return False
        print("[SERVER] Started!", flush=True)
        return True

    def stop(self) -> None:
        """Stop accepting clients and close every connection."""
        self._stopping.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        self._listener.close()
        for connection in self.connections:
            connection.disconnect()
        print("[SERVER] Stopped!", flush=True)

    def _accept_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                sock, address = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stopping.is_set() or self._listener.fileno() == -1:
                    return
                print(f"[SERVER] New Connection Error: {exc}", flush=True)
                continue
            sock.settimeout(None)
            self._admit(sock, address)

    def _admit(self, sock: socket.socket, address: Any) -> None:
        print(f"[SERVER] New Connection: {_format_address(address)}", flush=True)
        connection = Connection(Owner.SERVER, sock, self.incoming)
        if self.on_client_connect(connection):
            with self._lock:
                self._connections.append(connection)
                uid = self._id_counter
                self._id_counter += 1
            connection.connect_to_client(self, uid)
            print(f"[{connection.id}] Connection Approved", flush=True)
        else:
            print("[-----] Connection Denied", flush=True)
            connection.disconnect()

    def _forget(self, dead: List[Any]) -> None:
        with self._lock:
            self._connections = [c for c in self._connections if c not in dead]

    def message_client(self, client: Optional[Connection], msg: Message) -> None:
        """Send ``msg`` to ``client``, dropping the client if it is gone."""
        if client is not None and client.is_connected():
            client.send(msg)
            return
        self.on_client_disconnect(client)
        self._forget([client])

    def message_all_clients(
        self, msg: Message, ignore_client: Optional[Connection] = None
    ) -> None:
        """Send ``msg`` to every client except ``ignore_client``.

        Clients found disconnected are reported and dropped.
        """
        dead = []
        for client in self.connections:
            if client.is_connected():
                if client is not ignore_client:
                    client.send(msg)
            else:
                self.on_client_disconnect(client)
                dead.append(client)
        if dead:
            self._forget(dead)

    def update(self, max_messages: Optional[int] = None, wait: bool = False) -> int:
        """Hand up to ``max_messages`` queued messages to :meth:`on_message`.

        With ``wait`` the call first blocks until a message is queued.
        Returns how many messages were handled.
        """
        if wait:
            self.incoming.wait()
        count = 0
        while (max_messages is None or count < max_messages) and not self.incoming.empty():
            owned = self.incoming.pop_front()
            self.on_message(owned.remote, owned.msg)
            count += 1
        return count

    def on_client_connect(self, client: Connection) -> bool:
        """Decide whether to accept ``client``; the default rejects everyone."""
        return False

    def on_client_disconnect(self, client: Optional[Connection]) -> None:
        """Called when ``client`` is found to have gone away."""

    def on_message(self, client: Optional[Connection], msg: Message) -> None:
        """Called for each message taken from the queue by :meth:`update`."""

    def on_client_validated(self, client: Connection) -> None:
        """Called once ``client`` has answered the handshake correctly."""