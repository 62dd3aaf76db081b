"""Byte codecs, framed asyncio transports and a single-threaded event-loop runtime."""

__version__ = "0.1.0"

__all__ = ["codecs", "framed", "runtime"]