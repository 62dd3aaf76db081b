"""A single-threaded runtime built around one asyncio event loop.

Everything spawned on a :class:`Runtime` runs on the thread that drives it,
so spawned coroutines need no thread-safety of their own.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Coroutine, TypeVar

__all__ = ["Runtime", "default_event_loop", "spawn"]

T = TypeVar("T")


def default_event_loop() -> asyncio.AbstractEventLoop:
    """Create a fresh event loop with the default configuration."""
    return asyncio.new_event_loop()


def spawn(coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
    """Spawn ``coro`` as a new task on the event loop running in this thread.

    Exceptions raised by the coroutine stay inside the task and come out when
    it is awaited; the task can be cancelled with ``Task.cancel``.

    Raises ``RuntimeError`` when no event loop is running.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        if inspect.iscoroutine(coro):
            coro.close()
        raise RuntimeError("no event loop is running in this thread") from None
    return loop.create_task(coro)


class Runtime:
    """Owns an event loop and runs futures on the current thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else default_event_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The underlying event loop."""
        return self._loop

    def spawn(self, coro: Awaitable[T]) -> asyncio.Future[T]:
        """Schedule ``coro`` on this runtime and return a task for its result.

        The task makes progress only while the runtime is driven by
        :meth:`block_on`.
        """
        if self._loop.is_closed():
            if inspect.iscoroutine(coro):
                coro.close()
            raise RuntimeError("runtime is closed")
        return asyncio.ensure_future(coro, loop=self._loop)

    def block_on(self, awaitable: Awaitable[T]) -> T:
        """Run the loop until ``awaitable`` completes and return its result.

        Other spawned tasks run meanwhile, but are not waited for; those still
        pending when this returns resume on the next call.
        """
        if self._loop.is_closed():
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError("runtime is closed")
        return self._loop.run_until_complete(awaitable)

    def close(self) -> None:
        """Cancel all pending tasks and close the event loop."""
        loop = self._loop
        if loop.is_closed():
            return
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()

    def __enter__(self) -> Runtime:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._loop.is_closed() else "open"
        return f"Runtime({state})"