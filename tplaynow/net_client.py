"""Client side of the validated message protocol."""

from __future__ import annotations

import sys
from typing import Optional

from .connection import Connection, Owner
from .message import Message
from .tsqueue import ThreadSafeQueue


class ClientInterface:
    """Holds a single connection to a server and the queue of messages from it."""

    def __init__(self) -> None:
        self.incoming: ThreadSafeQueue = ThreadSafeQueue()
        self._connection: Optional[Connection] = None

    def __enter__(self) -> "ClientInterface":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    def connect(self, host: str, port: int) -> bool:
        """Connect to ``host``:``port``; False (with a report) if that fails."""
        try:
            connection = Connection(Owner.CLIENT, incoming=self.incoming)
            connection.connect_to_server(host, port)
        except Exception as exc:  # any failure is reported, not raised
            print(f"Client Exception: {exc}", file=sys.stderr)
            return False
        self._connection = connection
        return True

    def disconnect(self) -> None:
        """Close the connection, if any, and forget it."""
        if self._connection is not None:
            self._connection.disconnect()
        self._connection = None

    def is_connected(self) -> bool:
        return self._connection is not None and self._connection.is_connected()

    def send(self, msg: Message) -> None:
        """Send ``msg`` to the server; ignored while not connected."""
        if self._connection is not None and self._connection.is_connected():
            self._connection.send(msg)