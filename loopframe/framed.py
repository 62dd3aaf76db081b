"""A frame stream and sink layered over an asynchronous byte transport.

The transport is any object with these coroutine methods:

* ``read(n)`` returns up to ``n`` bytes, or ``b""`` at end of stream;
* ``write(data)`` writes a prefix of ``data`` and returns its length;
* ``flush()`` flushes the transport;
* ``shutdown()`` shuts the write side down.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

__all__ = ["Framed", "FramedParts", "HW"]

log = logging.getLogger(__name__)

#: High-water mark of the write buffer, and the size of each read.
HW = 8 * 1024


class _Flags(enum.Flag):
    NONE = 0
    EOF = enum.auto()
    READABLE = enum.auto()


@dataclass
class FramedParts:
    """The transport, codec and buffers taken out of a :class:`Framed`."""

    io: Any
    codec: Any
    read_buf: bytearray = field(default_factory=bytearray)
    write_buf: bytearray = field(default_factory=bytearray)
    _flags: _Flags = field(default=_Flags.NONE, init=False, repr=False)

    @classmethod
    def with_read_buf(cls, io: Any, codec: Any, read_buf: bytes | bytearray) -> FramedParts:
        """Create parts whose read buffer already holds ``read_buf``."""
        return cls(io, codec, bytearray(read_buf))


class Framed:
    """Reads frames from and writes frames to a byte transport using a codec.

    Iterate with ``async for`` to receive decoded frames; use ``send`` or
    ``write`` and ``flush`` to send encoded frames.
    """

    def __init__(self, io: Any, codec: Any) -> None:
        self._io = io
        self._codec = codec
        self._flags = _Flags.NONE
        self._read_buf = bytearray()
        self._write_buf = bytearray()

    @property
    def codec(self) -> Any:
        """The codec in use."""
        return self._codec

    @property
    def io(self) -> Any:
        """The underlying transport; reading from it directly may corrupt the frames."""
        return self._io

    def is_read_buf_empty(self) -> bool:
        return not self._read_buf

    def is_write_buf_empty(self) -> bool:
        return not self._write_buf

    def is_write_buf_full(self) -> bool:
        return len(self._write_buf) >= HW

    def is_write_ready(self) -> bool:
        """True while the write buffer is below the high-water mark."""
        return len(self._write_buf) < HW

    def _rebuild(self, io: Any, codec: Any) -> Framed:
        framed = type(self)(io, codec)
        framed._flags = self._flags
        framed._read_buf = self._read_buf
        framed._write_buf = self._write_buf
        return framed

    def replace_codec(self, codec: Any) -> Framed:
        """Return a new ``Framed`` with the same transport and buffers and another codec."""
        return self._rebuild(self._io, codec)

    def into_map_io(self, f: Callable[[Any], Any]) -> Framed:
        """Return a new ``Framed`` whose transport is ``f(io)``."""
        return self._rebuild(f(self._io), self._codec)

    def into_map_codec(self, f: Callable[[Any], Any]) -> Framed:
        """Return a new ``Framed`` whose codec is ``f(codec)``."""
        return self._rebuild(self._io, f(self._codec))

    def write(self, item: Any) -> None:
        """Encode ``item`` into the write buffer."""
        self._codec.encode(item, self._write_buf)

    async def next_item(self) -> Any | None:
        """Read from the transport until a frame decodes; ``None`` at end of stream."""
        while True:
            if _Flags.READABLE in self._flags:
                if _Flags.EOF in self._flags:
                    return self._codec.decode_eof(self._read_buf)

                log.debug("attempting to decode a frame")
                frame = self._codec.decode(self._read_buf)
                if frame is not None:
                    log.debug("frame decoded from buffer")
                    return frame

                self._flags &= ~_Flags.READABLE

            data = await self._io.read(HW)
            if data:
                self._read_buf.extend(data)
            else:
                self._flags |= _Flags.EOF
            self._flags |= _Flags.READABLE

    async def flush(self) -> None:
        """Write the whole write buffer to the transport, then flush it."""
        log.debug("flushing framed transport")
        while self._write_buf:
            log.debug("writing; remaining=%d", len(self._write_buf))
            written = await self._io.write(bytes(self._write_buf))
            if not written:
                raise OSError("failed to write frame to transport")
            del self._write_buf[:written]

        await self._io.flush()
        log.debug("framed transport flushed")

    async def close(self) -> None:
        """Flush and shut down the transport."""
        await self._io.flush()
        await self._io.shutdown()

    async def ready(self) -> None:
        """Wait until there is room in the write buffer, flushing if it is full."""
        if not self.is_write_ready():
            await self.flush()

    async def send(self, item: Any) -> None:
        """Wait for room in the write buffer, then encode ``item`` into it."""
        await self.ready()
        self.write(item)

    def __aiter__(self) -> Framed:
        return self

    async def __anext__(self) -> Any:
        frame = await self.next_item()
        if frame is None:
            raise StopAsyncIteration
        return frame

    @classmethod
    def from_parts(cls, parts: FramedParts) -> Framed:
        """Build a ``Framed`` from previously exported parts."""
        framed = cls(parts.io, parts.codec)
        framed._flags = parts._flags
        framed._read_buf = parts.read_buf
        framed._write_buf = parts.write_buf
        return framed

    def into_parts(self) -> FramedParts:
        """Export the transport, codec and buffers."""
        parts = FramedParts(self._io, self._codec, self._read_buf, self._write_buf)
        parts._flags = self._flags
        return parts

    def __repr__(self) -> str:
        return f"Framed(io={self._io!r}, codec={self._codec!r})"