"""Example server: answers pings and relays broadcast requests."""

from __future__ import annotations

import enum
import sys
from typing import Optional, Sequence

from .connection import Connection
from .message import Message, MessageHeader
from .net_server import ServerInterface

DEFAULT_PORT = 60000


class CustomMsgTypes(enum.IntEnum):
    """Message ids shared by the example client and server."""

    SERVER_ACCEPT = 0
    SERVER_DENY = 1
    SERVER_PING = 2
    MESSAGE_ALL = 3
    SERVER_MESSAGE = 4


class CustomServer(ServerInterface):
    """Accepts every client, bounces pings and announces broadcasts."""

    def on_client_connect(self, client: Connection) -> bool:
        client.send(Message(MessageHeader(CustomMsgTypes.SERVER_ACCEPT)))
        return True

    def on_client_disconnect(self, client: Connection) -> None:
        print(f"Removing client [{client.id}]", flush=True)

    def on_message(self, client: Connection, msg: Message) -> None:
        if msg.header.id == CustomMsgTypes.SERVER_PING:
            print(f"[{client.id}]: Server Ping", flush=True)
            client.send(msg)
        elif msg.header.id == CustomMsgTypes.MESSAGE_ALL:
            print(f"[{client.id}]: Message All", flush=True)
            notice = Message(MessageHeader(CustomMsgTypes.SERVER_MESSAGE))
            notice.push("I", client.id)
            self.message_all_clients(notice, client)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the example server until interrupted."""
    args = list(sys.argv[1:] if argv is None else argv)
    port = int(args[0]) if args else DEFAULT_PORT
    server = CustomServer(port)
    server.start()
    try:
        while True:
            server.update(100, True)
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())