# tplaynow

A small TCP messaging toolkit with two independent protocols and the
command-line programs that speak them. It needs nothing beyond the
standard library.

## Chat protocol

Every chat message is a 4-character ASCII header holding the body length
(right-aligned decimal, e.g. `"   5"`) followed by the body. Bodies are at
most 512 bytes: `ChatMessage` truncates longer bodies, and
`decode_header` raises `ChatMessageError` for a header announcing more
than that (or a negative length).

```python
from tplaynow.chat_message import ChatMessage, decode_header, encode_header

msg = ChatMessage.from_text("hello")
wire = msg.encode()          # b"   5hello"
len(msg)                     # 9: header plus body
encode_header(5)             # b"   5"
decode_header(b"   5")       # 5
```

`tplaynow.chat_server` provides `ChatRoom`, `ChatSession` and the
asyncio-based `ChatServer`. A room relays every message it receives to all
of its participants and replays the last 100 messages to anyone who
joins. The command runs one server per port given, listening on all
interfaces:

```
tplaynow-chat-server 9000 9001
```

`tplaynow.chat_client.ChatClient` connects to a server (trying each
resolved address in turn, 5 seconds each), prints every message body it
receives and sends messages with `write`. The command sends each line
typed on standard input:

```
tplaynow-chat-client 127.0.0.1 9000
```

## Framed message protocol

The second protocol frames each message with an 8-byte header (a 32-bit
message id and a 32-bit body size, little-endian) and starts every
connection with a handshake: the server sends a 64-bit challenge, the
client answers with `scramble(challenge)` (from `tplaynow.connection`),
and the server only starts reading messages from clients that answer
correctly.

Message bodies work as a stack of values packed with `struct` formats
(little-endian unless the format says otherwise):

```python
from tplaynow.message import Message

msg = Message()
msg.push("I", 42)
msg.push("d", 1.5)
msg.pop("d")   # 1.5 — values come back in reverse order
msg.pop("I")   # 42
```

To write your own server, subclass `ServerInterface` from
`tplaynow.net_server` and override `on_client_connect` (the default
rejects every client), `on_client_disconnect`, `on_message` and
`on_client_validated`. Call `start`, then `update` in a loop to hand
queued messages to `on_message`; `message_client` and
`message_all_clients` send to clients, and `stop` shuts everything down.
Accepted clients get ids counting up from 10000.

On the client side `ClientInterface` from `tplaynow.net_client` offers
`connect`, `send`, `is_connected` and `disconnect`, with received
messages collected in `incoming`, a `ThreadSafeQueue` from
`tplaynow.tsqueue`. Both interfaces can be used as context managers.

A ready-made pair is included in `tplaynow.simple_server` and
`tplaynow.simple_client`. Start the server (it listens on port 60000
unless a port is given):

```
tplaynow-simple-server
```

Then start the client, which connects to `127.0.0.1:60000` unless a host
and port are given. Press `1` to ping the server and see the round-trip
time, and `q` to quit:

```
tplaynow-simple-client
```

The example client uses `curses`, so it needs a terminal where Python's
`curses` module is available.

## What it does not do

There is no graphical interface: no login window or chat window, only
the terminal programs above. Messages are not stored anywhere beyond
the chat room's in-memory list of recent messages, and neither protocol
encrypts or authenticates its traffic — the handshake only checks that
the peer speaks the same protocol.

## Running the tests

```
pip install -e ".[test]"
pytest
```