"""Example terminal client: press 1 to ping the server, q to quit."""

from __future__ import annotations

import curses
import sys
import time
from typing import Optional, Sequence

from .message import Message, MessageHeader
from .net_client import ClientInterface
from .simple_server import DEFAULT_PORT, CustomMsgTypes

DEFAULT_HOST = "127.0.0.1"


def _truncating_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return quotient if value >= 0 else -quotient


class CustomClient(ClientInterface):
    """Client that can measure its round trip to the server."""

    def ping_server(self) -> None:
        """Send a ping carrying the current clock reading."""
        msg = Message(MessageHeader(CustomMsgTypes.SERVER_PING))
        msg.push("q", time.monotonic_ns())
        self.send(msg)


def describe_message(msg: Message, now: Optional[int] = None) -> Optional[str]:
    """Return the line to show for ``msg``, or None if nothing is shown.

    Values are popped from the body as they are read. ``now`` is the clock
    reading in nanoseconds used to time a ping reply.
    """
    if msg.header.id == CustomMsgTypes.SERVER_ACCEPT:
        return "Server Accepted Connection"
    if msg.header.id == CustomMsgTypes.SERVER_PING:
        now = time.monotonic_ns() if now is None else now
        then = msg.pop("q")
        micros = _truncating_div(now - then, 1000)
        return f"Ping: {micros / 1000:f} ms"
    if msg.header.id == CustomMsgTypes.SERVER_MESSAGE:
        client_id = msg.pop("I")
        return f"Hello from [{client_id}]"
    return None


def _run(stdscr: "curses.window", client: CustomClient) -> bool:
    """Drive the key loop; returns True if the server went away."""
    curses.cbreak()
    curses.noecho()
    stdscr.scrollok(True)
    stdscr.keypad(True)
    stdscr.nodelay(True)
    while True:
        key = stdscr.getch()
        if key == ord("1"):
            client.ping_server()
        elif key == ord("q"):
            return False
        if not client.is_connected():
            return True
        if not client.incoming.empty():
            text = describe_message(client.incoming.pop_front().msg)
            if text is not None:
                stdscr.addstr(text + "\n")
        curses.napms(1)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Connect to the example server and run the key loop."""
    args = list(sys.argv[1:] if argv is None else argv)
    host = args[0] if args else DEFAULT_HOST
    port = int(args[1]) if len(args) > 1 else DEFAULT_PORT
    client = CustomClient()
    client.connect(host, port)
    try:
        server_down = curses.wrapper(_run, client)
    except KeyboardInterrupt:
        server_down = False
    finally:
        client.disconnect()
    if server_down:
        print("Server Down")
    return 0


if __name__ == "__main__":
    sys.exit(main())