"""UTF-8 helpers for transports that receive raw byte views."""

from __future__ import annotations

import codecs
from typing import Any

Chunk = str | bytes | bytearray | memoryview


def _utf8_incremental_decoder() -> Any | None:
    try:
        return codecs.getincrementaldecoder("utf-8")(errors="replace")
    except LookupError:
        # Embedded interpreters can ship without the encodings package.
        return None


class Utf8StreamDecoder:
    """Decode a chunked byte stream as UTF-8 text.

    Multi-byte sequences split across chunks are held back until the rest
    arrives. When no UTF-8 codec is available the bytes are mapped one to
    one onto code points, which is exact for ASCII CoT traffic.
    """

    def __init__(self) -> None:
        self._decoder = _utf8_incremental_decoder()

    @property
    def has_codec(self) -> bool:
        return self._decoder is not None

    def decode(self, data: Chunk, *, final: bool = False) -> str:
        if isinstance(data, str):
            return data

        view = memoryview(data).cast("B")
        if self._decoder is None:
            return "".join(map(chr, view))
        return self._decoder.decode(bytes(view), final)


def encode_utf8(text: str | bytes | bytearray | memoryview) -> memoryview:
    """Return ``text`` as a read-only UTF-8 byte view."""
    if isinstance(text, str):
        try:
            data = text.encode("utf-8")
        except LookupError:
            data = bytes(ord(char) & 0xFF for char in text)
        return memoryview(data).toreadonly()
    return memoryview(text).cast("B").toreadonly()
