"""Chat server: every message from a participant goes to everyone in the room."""

from __future__ import annotations

import abc
import asyncio
import sys
from collections import deque
from typing import Deque, List, Optional, Sequence, Set

from .chat_message import HEADER_LENGTH, ChatMessage, ChatMessageError, decode_header
from .utils import parse_uint

MAX_RECENT_MSGS = 100


class ChatParticipant(abc.ABC):
    """Something that can receive chat messages from a room."""

    @abc.abstractmethod
    def deliver(self, msg: ChatMessage) -> None:
        """Hand ``msg`` to this participant."""


class ChatRoom:
    """Holds participants and the most recent messages."""

    def __init__(self) -> None:
        self._participants: Set[ChatParticipant] = set()
        self._recent: Deque[ChatMessage] = deque(maxlen=MAX_RECENT_MSGS)

    @property
    def participants(self) -> frozenset:
        return frozenset(self._participants)

    @property
    def recent_messages(self) -> List[ChatMessage]:
        return list(self._recent)

    def join(self, participant: ChatParticipant) -> None:
        """Add ``participant`` and replay the recent messages to it."""
        self._participants.add(participant)
        for msg in list(self._recent):
            participant.deliver(msg)

    def leave(self, participant: ChatParticipant) -> None:
        self._participants.discard(participant)

    def deliver(self, msg: ChatMessage) -> None:
        """Record ``msg`` and send it to every participant."""
        self._recent.append(msg)
        for participant in list(self._participants):
            participant.deliver(msg)


class ChatSession(ChatParticipant):
    """One connected client, reading messages into its room."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        room: ChatRoom,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._room = room
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        """Join the room and start reading; returns the reading task."""
        self._room.join(self)
        self._task = asyncio.get_running_loop().create_task(self._read_loop())
        return self._task

    def deliver(self, msg: ChatMessage) -> None:
        if self._writer.is_closing():
            self._room.leave(self)
            return
        self._writer.write(msg.encode())

    async def _read_loop(self) -> None:
        try:
            while True:
                header = await self._reader.readexactly(HEADER_LENGTH)
                length = decode_header(header)
                body = await self._reader.readexactly(length)
                self._room.deliver(ChatMessage(body))
        except (asyncio.IncompleteReadError, OSError, ChatMessageError):
            pass
        finally:
            self._room.leave(self)
            self._writer.close()

    def _close(self) -> None:
        self._room.leave(self)
        self._writer.close()
        if self._task is not None:
            self._task.cancel()


class ChatServer:
    """Accepts chat clients on one port and joins them to a shared room."""

    def __init__(
        self, port: int, host: str = "0.0.0.0", room: Optional[ChatRoom] = None
    ) -> None:
        self._host = host
        self._port = port
        self.room = room if room is not None else ChatRoom()
        self._server: Optional[asyncio.AbstractServer] = None
        self._sessions: Set[ChatSession] = set()

    @property
    def port(self) -> int:
        """The port actually listened on (useful when 0 was requested)."""
        if self._server is None or not self._server.sockets:
            return self._port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> "ChatServer":
        """Start listening for clients."""
        self._server = await asyncio.start_server(
            self._on_connect, self._host, self._port
        )
        return self

    def _on_connect(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        session = ChatSession(reader, writer, self.room)
        self._sessions.add(session)
        session.start().add_done_callback(
            lambda _task: self._sessions.discard(session)
        )

    async def close(self) -> None:
        """Stop accepting clients and drop every open session."""
        if self._server is None:
            return
        self._server.close()
        for session in list(self._sessions):
            session._close()
        await self._server.wait_closed()
        self._server = None


async def _serve(ports: List[int]) -> None:
    servers = [ChatServer(port) for port in ports]
    try:
        for server in servers:
            await server.start()
        await asyncio.Event().wait()
    finally:
        for server in servers:
            await server.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run a chat server on each port given on the command line."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: chat_server <port> [<port> ...]", file=sys.stderr)
        return 1
    try:
        asyncio.run(_serve([parse_uint(arg) for arg in args]))
    except KeyboardInterrupt:
        pass
    except Exception as exc:  # report anything, as the command line expects
        print(f"Exception: {exc}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())