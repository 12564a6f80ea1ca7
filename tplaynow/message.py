"""Binary messages: a fixed header (id, body size) and a stack-like body."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any

_HEADER = struct.Struct("<II")
_BYTE_ORDER_MARKS = "@=<>!"


def _normalise(fmt: str) -> str:
    return fmt if fmt and fmt[0] in _BYTE_ORDER_MARKS else "<" + fmt


@dataclass
class MessageHeader:
    """Message id and the size of the body that follows it."""

    id: int = 0
    size: int = 0

    SIZE = _HEADER.size

    def pack(self) -> bytes:
        """Return the eight-byte wire form of the header."""
        return _HEADER.pack(int(self.id), self.size)

    @classmethod
    def unpack(cls, data: bytes) -> "MessageHeader":
        """Read a header from the first eight bytes of ``data``."""
        if len(data) < _HEADER.size:
            raise ValueError(
                f"header needs {_HEADER.size} bytes, got {len(data)}"
            )
        msg_id, size = _HEADER.unpack_from(data)
        return cls(msg_id, size)


@dataclass
class Message:
    """A message whose body behaves as a stack of packed values."""

    header: MessageHeader = field(default_factory=MessageHeader)
    body: bytearray = field(default_factory=bytearray)

    def __post_init__(self) -> None:
        self.body = bytearray(self.body)
        self.header.size = len(self.body)

    def push(self, fmt: str, *args: Any) -> "Message":
        """Pack ``args`` with struct format ``fmt`` onto the end of the body."""
        self.body += struct.pack(_normalise(fmt), *args)
        self.header.size = len(self.body)
        return self

    def pop(self, fmt: str) -> Any:
        """Remove and return the values at the end of the body.

        A single value is returned bare; several come back as a tuple.
        """
        fmt = _normalise(fmt)
        size = struct.calcsize(fmt)
        if size > len(self.body):
            raise ValueError(
                f"cannot pop {size} bytes from a body of {len(self.body)}"
            )
        start = len(self.body) - size
        values = struct.unpack_from(fmt, self.body, start)
        del self.body[start:]
        self.header.size = len(self.body)
        return values[0] if len(values) == 1 else values

    def __len__(self) -> int:
        return len(self.body)

    def __str__(self) -> str:
        return f"ID: {int(self.header.id)} Size: {self.header.size}"


@dataclass
class OwnedMessage:
    """A message together with the connection it came from, if any."""

    remote: Any = None
    msg: Message = field(default_factory=Message)

    def __str__(self) -> str:
        return str(self.msg)