import asyncio
import struct
from collections import deque

import pytest

from loopframe.codecs import BytesCodec, Decoder, Encoder, LinesCodec
from loopframe.framed import HW, Framed, FramedParts


class _WouldBlock:
    pass


WOULD_BLOCK = _WouldBlock()


class Bilateral:
    """Scripted transport: each read or write consumes the next call."""

    def __init__(self, calls):
        self.calls = deque(calls)
        self.unblocked = asyncio.Event()
        self.flushes = 0
        self.shutdowns = 0

    async def write(self, data):
        if not self.calls:
            raise AssertionError(f"unexpected write; {bytes(data)!r}")
        call = self.calls.popleft()
        if call is WOULD_BLOCK:
            await self.unblocked.wait()
            return await self.write(data)
        if isinstance(call, BaseException):
            raise call
        assert len(data) >= len(call)
        assert bytes(data[: len(call)]) == bytes(call)
        return len(call)

    async def read(self, n):
        if not self.calls:
            return b""
        call = self.calls.popleft()
        if call is WOULD_BLOCK:
            await self.unblocked.wait()
            return await self.read(n)
        if isinstance(call, BaseException):
            raise call
        assert len(call) <= n
        return bytes(call)

    async def flush(self):
        self.flushes += 1

    async def shutdown(self):
        self.shutdowns += 1


class U32(Decoder, Encoder):
    def encode(self, item, dst):
        dst.extend(struct.pack(">I", item))

    def decode(self, src):
        if len(src) < 4:
            return None
        (value,) = struct.unpack(">I", src[:4])
        del src[:4]
        return value


async def _spin():
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_write_hits_highwater_mark():
    iterations = 2 * 1024
    calls = [WOULD_BLOCK, bytearray()]
    for i in range(iterations + 1):
        chunk = struct.pack(">I", i)
        if len(calls[-1]) < iterations:
            calls[-1].extend(chunk)
            continue
        calls.append(bytearray(chunk))

    assert len(calls) == 6
    bi = Bilateral(calls)
    framed = Framed(bi, U32())

    for i in range(iterations):
        assert framed.is_write_ready()
        await framed.send(i)

    assert framed.is_write_buf_full()

    # the transport blocks on the first write of the forced flush
    pending = asyncio.create_task(framed.ready())
    await _spin()
    assert not pending.done()

    bi.unblocked.set()
    await asyncio.wait_for(pending, 1)
    assert framed.is_write_buf_empty()

    await framed.send(iterations)
    await framed.flush()

    assert len(framed.io.calls) == 0
    assert bi.flushes == 2


@pytest.mark.asyncio
async def test_lines_across_chunks():
    bi = Bilateral([b"hel", b"lo\nwor", b"ld"])
    framed = Framed(bi, LinesCodec())
    lines = [line async for line in framed]
    assert lines == ["hello", "world"]


@pytest.mark.asyncio
async def test_next_item_waits_for_data():
    bi = Bilateral([WOULD_BLOCK, b"x\n"])
    framed = Framed(bi, LinesCodec())
    pending = asyncio.create_task(framed.next_item())
    await _spin()
    assert not pending.done()
    bi.unblocked.set()
    assert await asyncio.wait_for(pending, 1) == "x"


@pytest.mark.asyncio
async def test_leftover_bytes_at_eof_is_error():
    bi = Bilateral([b"\x00\x00\x00\x01\x00\x00"])
    framed = Framed(bi, U32())
    assert await framed.next_item() == 1
    with pytest.raises(OSError, match="bytes remaining on stream"):
        await framed.next_item()


@pytest.mark.asyncio
async def test_read_error_propagates():
    bi = Bilateral([ConnectionResetError("reset")])
    framed = Framed(bi, LinesCodec())
    with pytest.raises(ConnectionResetError):
        await framed.next_item()


@pytest.mark.asyncio
async def test_zero_write_is_error():
    bi = Bilateral([b""])
    framed = Framed(bi, BytesCodec())
    framed.write(b"data")
    with pytest.raises(OSError, match="failed to write frame to transport"):
        await framed.flush()


@pytest.mark.asyncio
async def test_close_flushes_and_shuts_down_transport():
    bi = Bilateral([])
    framed = Framed(bi, BytesCodec())
    await framed.close()
    assert (bi.flushes, bi.shutdowns) == (1, 1)


@pytest.mark.asyncio
async def test_write_buffer_full_at_highwater_mark():
    framed = Framed(Bilateral([]), BytesCodec())
    framed.write(b"a" * (HW - 1))
    assert framed.is_write_ready()
    framed.write(b"a")
    assert framed.is_write_buf_full()
    assert not framed.is_write_ready()


@pytest.mark.asyncio
async def test_into_parts_keeps_unread_data():
    bi = Bilateral([b"abc\nrest"])
    framed = Framed(bi, LinesCodec())
    assert await framed.next_item() == "abc"
    assert not framed.is_read_buf_empty()
    parts = framed.into_parts()
    assert parts.read_buf == b"rest"
    assert parts.io is bi


@pytest.mark.asyncio
async def test_from_parts_with_read_buf():
    parts = FramedParts.with_read_buf(Bilateral([]), LinesCodec(), b"pre\n")
    framed = Framed.from_parts(parts)
    assert await framed.next_item() == "pre"
    assert await framed.next_item() is None


@pytest.mark.asyncio
async def test_replace_codec_keeps_buffers_and_state():
    bi = Bilateral([b"abc\nrest"])
    framed = Framed(bi, LinesCodec())
    assert await framed.next_item() == "abc"
    swapped = framed.replace_codec(BytesCodec())
    assert isinstance(swapped.codec, BytesCodec)
    assert await swapped.next_item() == b"rest"


@pytest.mark.asyncio
async def test_into_map_io_and_codec():
    bi = Bilateral([])
    other = Bilateral([b"q\n"])
    framed = Framed(bi, BytesCodec())
    mapped = framed.into_map_io(lambda io: other).into_map_codec(lambda c: LinesCodec())
    assert mapped.io is other
    assert await mapped.next_item() == "q"
    assert "Framed(io=" in repr(mapped)