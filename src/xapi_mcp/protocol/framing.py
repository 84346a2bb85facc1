"""Message framing for the xAPI text protocol.

Wire layout::

    +-------------------------------+------------+
    | JSON object, UTF-8, one line  | Terminator |
    | variable length               | 0x0A 0x0A  |
    +-------------------------------+------------+

- There is no length prefix: a message ends where two consecutive newline
  bytes are seen.
- The JSON text itself never contains a raw newline (JSON escapes them
  inside strings), so the terminator is unambiguous.
"""

from __future__ import annotations

import codecs

from ..errors import DecodeError

TERMINATOR = b"\n\n"
READ_CHUNK_SIZE = 2048


def encode_message(text: str) -> bytes:
    """Encode one JSON message and append the terminator.

    Raises:
        ValueError: If ``text`` contains a raw newline, which would corrupt
            the framing.
    """
    if "\n" in text:
        raise ValueError("Message text must not contain a raw newline")
    return text.encode("utf-8") + TERMINATOR


class MessageAccumulator:
    """Reassemble one terminated message from arbitrarily sized chunks.

    Each chunk is decoded as UTF-8 as it arrives. The decoder is
    incremental, so a multi-byte character split across two reads is
    handled, but bytes that can never form valid UTF-8 fail immediately.

    Usage::

        acc = MessageAccumulator()
        while (message := acc.feed(chunk)) is None:
            chunk = read_more()
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
        self._raw = bytearray()
        self._parts: list[str] = []

    @property
    def pending(self) -> int:
        """Number of bytes accumulated so far."""
        return len(self._raw)

    def feed(self, chunk: bytes) -> str | None:
        """Add a chunk; return the message text once the terminator is seen.

        Returns:
            The accumulated text with the two trailing newlines stripped, or
            ``None`` if the terminator has not arrived yet.

        Raises:
            DecodeError: If the accumulated bytes are not valid UTF-8.
        """
        self._raw += chunk
        try:
            self._parts.append(self._decoder.decode(chunk))
        except UnicodeDecodeError as e:
            raise DecodeError(f"Received bytes are not valid UTF-8: {e}") from e

        if not self._raw.endswith(TERMINATOR):
            return None

        # The terminator is ASCII, so the decoder holds no partial state here
        text = "".join(self._parts)
        self.reset()
        return text[: -len(TERMINATOR)]

    def reset(self) -> None:
        """Discard any partially received message."""
        self._decoder.reset()
        self._raw.clear()
        self._parts.clear()
