"""Codecs that turn byte buffers into frames and frames back into bytes.

Decoders work on a mutable ``bytearray``: they remove the bytes they consume
and leave any incomplete frame in place for the next call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

__all__ = ["Decoder", "Encoder", "BytesCodec", "LinesCodec"]


class Decoder(ABC):
    """Turns bytes from a read buffer into frames."""

    @abstractmethod
    def decode(self, src: bytearray) -> Any | None:
        """Decode one frame from ``src``, or return ``None`` if more data is needed."""

    def decode_eof(self, src: bytearray) -> Any | None:
        """Decode a frame once the underlying stream has ended.

        By default this is ``decode``; bytes left over that do not make a frame
        are an error.
        """
        frame = self.decode(src)
        if frame is not None:
            return frame
        if src:
            raise OSError("bytes remaining on stream")
        return None


class Encoder(ABC):
    """Turns frames into bytes appended to a write buffer."""

    @abstractmethod
    def encode(self, item: Any, dst: bytearray) -> None:
        """Append the encoded form of ``item`` to ``dst``."""


class BytesCodec(Decoder, Encoder):
    """Reads and writes chunks of bytes as they are."""

    def encode(self, item: bytes | bytearray | memoryview, dst: bytearray) -> None:
        dst.extend(item)

    def decode(self, src: bytearray) -> bytes | None:
        if not src:
            return None
        chunk = bytes(src)
        src.clear()
        return chunk

    def __repr__(self) -> str:
        return "BytesCodec()"


class LinesCodec(Decoder, Encoder):
    """Reads and writes newline-delimited strings.

    Input is split on LF or CRLF; a carriage return before the newline is not
    kept. Encoding appends a single LF.
    """

    def encode(self, item: str, dst: bytearray) -> None:
        dst.extend(item.encode("utf-8"))
        dst.append(0x0A)

    def decode(self, src: bytearray) -> str | None:
        if not src:
            return None
        end = src.find(b"\n")
        if end < 0:
            return None
        line = bytes(src[:end])
        del src[: end + 1]
        if line.endswith(b"\r"):
            line = line[:-1]
        return line.decode("utf-8")

    def decode_eof(self, src: bytearray) -> str | None:
        frame = self.decode(src)
        if frame is not None:
            return frame
        if not src:
            return None
        if src.endswith(b"\r"):
            # take everything up to the trailing CR and leave the CR behind
            rest = bytes(src[:-1])
            del src[:-1]
        else:
            rest = bytes(src)
            src.clear()
        if not rest:
            return None
        return rest.decode("utf-8")

    def __repr__(self) -> str:
        return "LinesCodec()"