from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Union

from .filters import FilterQuery
from .models import ChangeEvent, TaskRecord
from .schemas import TaskInput, TaskPatch

_CLOSED = object()


# PUBLIC_INTERFACE
class Subscription:
    """
    Stream of change events from the remote store.

    Iterate with `async for`; iteration ends once the subscription is
    closed. Use it as an async context manager, or call `close()` on
    teardown, so the producer stops accumulating events for it.
    """

    def __init__(self, on_close: Optional[Callable[["Subscription"], None]] = None) -> None:
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: Union[ChangeEvent, str]) -> None:
        """
        Producer side: deliver one event. Ignored once closed.
        A str is a feed line the producer could not decode.
        """
        if self._closed:
            return
        self._queue.put_nowait(event)

    def end(self) -> None:
        """Producer side: no more events. Queued events are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)

    async def close(self) -> None:
        if self._closed:
            return
        # Drop undelivered events, then wake any reader.
        while not self._queue.empty():
            self._queue.get_nowait()
        self.end()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Union[ChangeEvent, str]:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


# PUBLIC_INTERFACE
class RemoteGateway(ABC):
    """
    Contract of the authoritative remote task store.

    Every call may fail with GatewayError. The remote side assigns canonical
    ids and server-computed fields (created_at, updated_at).
    """

    @abstractmethod
    async def list(self, query: Optional[FilterQuery] = None) -> List[TaskRecord]:
        """Return records matching the equality filters, in creation order."""

    @abstractmethod
    async def create(self, data: TaskInput, *, created_by: Optional[str] = None) -> TaskRecord:
        """Create a task and return its canonical record."""

    @abstractmethod
    async def update(self, task_id: str, data: TaskPatch) -> TaskRecord:
        """Apply a partial update and return the canonical record."""

    @abstractmethod
    async def delete(self, task_id: str) -> None:
        """Delete a task."""

    @abstractmethod
    def subscribe(self) -> Subscription:
        """
        Open a change feed carrying every insert, update and delete on the
        table by any client, including this one.
        """

    async def aclose(self) -> None:
        """Release transport resources. No-op by default."""
        return None
