"""Asynchronous chat client speaking the length-prefixed chat protocol."""

from __future__ import annotations

import asyncio
import socket
import sys
from typing import Callable, Optional, Sequence

from .chat_message import HEADER_LENGTH, ChatMessage, ChatMessageError, decode_header

CONNECT_TIMEOUT = 5.0


class ChatConnectError(ConnectionError):
    """Raised when no connection to the chat server can be made."""


def _format_endpoint(host: str, port: int) -> str:
    return f"[{host}]:{port}" if ":" in host else f"{host}:{port}"


def _print_body(body: bytes) -> None:
    print(body.decode("utf-8", "replace"), flush=True)


class ChatClient:
    """Connects to a chat server, prints incoming bodies and sends messages."""

    def __init__(
        self,
        on_message: Optional[Callable[[bytes], None]] = None,
        connect_timeout: float = CONNECT_TIMEOUT,
    ) -> None:
        self._on_message = on_message or _print_body
        self._timeout = connect_timeout
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._read_task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        """True while the connection to the server is open."""
        return self._writer is not None and not self._writer.is_closing()

    async def start(self, host: str, port: int) -> None:
        """Resolve ``host`` and connect to the first endpoint that answers.

        Each endpoint gets ``connect_timeout`` seconds; a timed-out endpoint
        is skipped, while a refused or failed connection raises
        ChatConnectError at once.
        """
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        for _family, _type, _proto, _name, sockaddr in infos:
            addr, addr_port = sockaddr[0], sockaddr[1]
            endpoint = _format_endpoint(addr, addr_port)
            print(f"Trying {endpoint}...", flush=True)
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(addr, addr_port), self._timeout
                )
            except asyncio.TimeoutError:
                print("Connect timed out", flush=True)
                continue
            except OSError as exc:
                print(f"Connect error: {exc.strerror or exc}", flush=True)
                raise ChatConnectError("Connect Error") from exc
            print(f"Connected to {endpoint}", flush=True)
            self._reader, self._writer = reader, writer
            self._read_task = asyncio.create_task(self._read_loop())
            return
        raise ChatConnectError(f"no endpoint of {host}:{port} could be reached")

    async def _read_loop(self) -> None:
        assert self._reader is not None and self._writer is not None
        try:
            while True:
                header = await self._reader.readexactly(HEADER_LENGTH)
                length = decode_header(header)
                body = await self._reader.readexactly(length)
                self._on_message(body)
        except (asyncio.IncompleteReadError, OSError, ChatMessageError):
            pass
        finally:
            self._writer.close()

    def write(self, msg: ChatMessage) -> None:
        """Queue ``msg`` for sending; it is dropped if the connection is closed."""
        if self.connected:
            assert self._writer is not None
            self._writer.write(msg.encode())

    def close(self) -> None:
        """Close the connection; pending writes are flushed first."""
        if self._writer is not None:
            self._writer.close()

    async def wait_closed(self) -> None:
        """Wait until the connection has been shut down."""
        if self._read_task is not None:
            await self._read_task
        if self._writer is not None:
            try:
                await self._writer.wait_closed()
            except OSError:
                pass


async def _interactive(host: str, port: int) -> None:
    client = ChatClient()
    await client.start(host, port)
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line or not client.connected:
            break
        client.write(ChatMessage.from_text(line.rstrip("\n")))
    client.close()
    await client.wait_closed()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Connect to a chat server and send each line of standard input."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 2:
        print("Usage: chat_client <host> <port>", file=sys.stderr)
        return 1
    host, port = args
    try:
        asyncio.run(_interactive(host, int(port)))
    except KeyboardInterrupt:
        pass
    except (OSError, ValueError) as exc:
        print(f"Exception: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())