"""Length-prefixed chat messages: a four-character decimal header followed by the body."""

from __future__ import annotations

import re
from dataclasses import dataclass

HEADER_LENGTH = 4
MAX_BODY_LENGTH = 512

_ATOI = re.compile(r"\s*([+-]?\d+)")


class ChatMessageError(ValueError):
    """Raised when a header is malformed or announces too large a body."""


def encode_header(body_length: int) -> bytes:
    """Return the four-byte header announcing a body of ``body_length`` bytes."""
    if not 0 <= body_length <= MAX_BODY_LENGTH:
        raise ChatMessageError(
            f"body length {body_length} outside 0..{MAX_BODY_LENGTH}"
        )
    return f"{body_length:4d}".encode("ascii")


def decode_header(header: bytes) -> int:
    """Return the body length announced by ``header``.

    Only the first four bytes are looked at. As with C ``atoi``, leading
    whitespace is skipped, trailing garbage is ignored and a header with no
    digits means zero. Negative or oversized lengths are rejected.
    """
    text = bytes(header[:HEADER_LENGTH]).split(b"\0", 1)[0].decode("latin-1")
    match = _ATOI.match(text)
    length = int(match.group(1)) if match else 0
    if length < 0 or length > MAX_BODY_LENGTH:
        raise ChatMessageError(f"invalid body length in header {text!r}")
    return length


@dataclass
class ChatMessage:
    """A chat message body; bodies longer than the maximum are truncated."""

    body: bytes = b""

    def __post_init__(self) -> None:
        self.body = bytes(self.body[:MAX_BODY_LENGTH])

    @classmethod
    def from_text(cls, text: str) -> "ChatMessage":
        """Build a message from text encoded as UTF-8."""
        return cls(text.encode("utf-8"))

    def encode(self) -> bytes:
        """Return the wire form: header followed by body."""
        return encode_header(len(self.body)) + self.body

    def __len__(self) -> int:
        return HEADER_LENGTH + len(self.body)