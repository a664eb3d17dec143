"""Async single-consumer channels and a fan-out ``tee`` over an async source."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Generic, TypeVar

T = TypeVar("T")


class EventStream(Generic[T]):
    """Buffered channel with one producer and one consumer.

    The producer calls :meth:`push` any number of times, then exactly one of
    :meth:`end` or :meth:`fail`.  The consumer iterates with ``async for``.
    A failure is raised only once every item pushed before it has been
    delivered.
    """

    def __init__(self) -> None:
        self._items: deque[T] = deque()
        self._closed = False
        self._error: BaseException | None = None
        self._wakeup: asyncio.Future[None] | None = None
        # Task feeding this channel, when created by :func:`tee`.
        self.source_task: asyncio.Task[None] | None = None

    def push(self, item: T) -> None:
        """Append *item*; ignored once the channel is closed."""
        if self._closed:
            return
        self._items.append(item)
        self._notify()

    def end(self) -> None:
        self._close(None)

    def fail(self, error: BaseException) -> None:
        self._close(error)

    def _close(self, error: BaseException | None) -> None:
        if self._closed:
            return
        self._closed = True
        self._error = error
        self._notify()

    def _notify(self) -> None:
        if self._wakeup is not None and not self._wakeup.done():
            self._wakeup.set_result(None)

    @property
    def buffered(self) -> int:
        """Number of items pushed but not yet consumed."""
        return len(self._items)

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        while not self._items:
            if self._closed:
                if self._error is not None:
                    raise self._error
                raise StopAsyncIteration
            self._wakeup = asyncio.get_running_loop().create_future()
            try:
                await self._wakeup
            finally:
                self._wakeup = None
        return self._items.popleft()


def tee(source: AsyncIterator[T], n: int = 2) -> tuple[EventStream[T], ...]:
    """Duplicate *source* into *n* independently consumable channels.

    A background task drains *source* eagerly and pushes every item into
    each channel's own buffer, so a slow or abandoned consumer never stalls
    the others.  A source error reaches every channel after the items that
    preceded it.

    Must be called from within a running event loop.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        raise RuntimeError(
            "tee() must be called from within a running asyncio event loop"
        ) from None

    branches: tuple[EventStream[T], ...] = tuple(EventStream() for _ in range(n))

    async def _pump() -> None:
        error: BaseException | None = None
        try:
            async for item in source:
                for branch in branches:
                    branch.push(item)
        except Exception as exc:
            error = exc
        except asyncio.CancelledError as exc:
            error = exc
            raise
        finally:
            for branch in branches:
                if error is None:
                    branch.end()
                else:
                    branch.fail(error)

    task = loop.create_task(_pump())
    for branch in branches:
        branch.source_task = task
    return branches
