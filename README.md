# loopframe

Small building blocks for framed asynchronous protocols on top of asyncio.

## What it provides

- **Codecs** (`loopframe.codecs`): abstract `Decoder` and `Encoder` bases.
  Decoders read from a mutable `bytearray` and remove the bytes they use.
  There are two ready-made codecs:
  - `BytesCodec` passes chunks of bytes through unchanged.
  - `LinesCodec` splits input on LF or CRLF and encodes strings as UTF-8
    followed by a single LF.

  `Decoder.decode_eof` is called once the stream has ended. By default it
  raises `OSError` if bytes are left over that do not form a frame.
  `LinesCodec.decode_eof` returns the trailing partial line instead.
- **Framed transports** (`loopframe.framed`): `Framed` puts a codec on top of an
  asynchronous byte transport. Incoming frames can be read with `async for`
  or `next_item()`. Outgoing frames are encoded with `write()` or `send()` and
  written out with `flush()`. `send()` flushes first when the write buffer has
  reached the high-water mark `HW` (8 KiB). `close()` flushes the transport
  and shuts it down. With `into_parts()` and `Framed.from_parts()` you can take
  a `Framed` apart and put it back together, and `replace_codec()`,
  `into_map_codec()` and `into_map_io()` keep the buffers when you swap the
  codec or the transport.
- **Runtime** (`loopframe.runtime`): `Runtime` owns one event loop and provides
  `spawn()`, `block_on()` and `close()`. It can also be used as a context
  manager. The module-level `spawn()` starts a task on the event loop that is
  running in the current thread and raises `RuntimeError` if none is running.
  `default_event_loop()` creates a fresh event loop.

## Installation

```
pip install loopframe
```

## Decoding lines

```python
from loopframe.codecs import LinesCodec

codec = LinesCodec()
buf = bytearray(b"line 1\nline 2\r\npartial")
codec.decode(buf)      # 'line 1'
codec.decode(buf)      # 'line 2'
codec.decode(buf)      # None: more data needed
codec.decode_eof(buf)  # 'partial'
```

## Framing a transport

The transport passed to `Framed` must have these coroutine methods:

- `read(n)` returns up to `n` bytes, or `b""` at end of stream.
- `write(data)` writes a prefix of `data` and returns how many bytes it wrote.
- `flush()` flushes the transport.
- `shutdown()` shuts down the write side.

```python
from loopframe.codecs import LinesCodec
from loopframe.framed import Framed


async def echo(transport):
    framed = Framed(transport, LinesCodec())
    async for line in framed:
        await framed.send(line.upper())
        await framed.flush()
    await framed.close()
```

## Running coroutines on a runtime

```python
import asyncio

from loopframe.runtime import Runtime, spawn


async def compute():
    await asyncio.sleep(0.01)
    return 42


async def main():
    task = spawn(compute())
    return await task


with Runtime() as rt:
    assert rt.block_on(rt.spawn(compute())) == 42
    assert rt.block_on(main()) == 42
```

When `block_on()` returns, tasks that are still pending stay on the runtime
and continue the next time it is driven. `close()` cancels them.

## What it does not do

loopframe runs one event loop per `Runtime`, on the thread that drives it. It
does not manage event loops on several threads, does not coordinate a
system-wide stop or exit code, and has no decorators for async entry points or
tests. It provides no network server and no command-line program. It works
with any transport object that has the methods listed above.

## Running the tests

```
pip install loopframe[test]
pytest
```