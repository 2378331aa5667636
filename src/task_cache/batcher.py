"""
Change event batching.

Remote change events arrive in bursts (bulk edits, several clients at
once). Applying each one immediately would re-render the UI per event, so
events are queued and applied together on a trailing-edge timer: the first
event of a quiet period starts a window, every event arriving inside it
joins the same batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Optional, Protocol, Union

from .errors import MalformedEventError
from .models import OPERATIONS, ChangeEvent
from .schemas import event_from_json
from .store import LocalRecordStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 0.5

DiagnosticSink = Callable[[Any, MalformedEventError], None]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timer(Protocol):
    """Schedules a callback after a delay; injectable so tests control time."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle: ...


class LoopTimer:
    """Timer backed by the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


# PUBLIC_INTERFACE
class ChangeEventBatcher:
    """
    Buffers change events and applies them to a LocalRecordStore in
    coalesced batches.

    - enqueue() never blocks; it starts a flush timer only when none is pending.
    - flush() drains the queue in FIFO order inside a single store batch.
    - insert: unconditional upsert.
    - update: merge over the existing record; no-op if the id is unknown.
    - delete: remove; no-op if the id is unknown.
    - Events for the same id are applied in arrival order, no merge logic.
    - A raw str (feed line the gateway could not decode) is decoded here or reported.
    - Malformed events are dropped and reported; the rest of the queue is applied.
    """

    def __init__(
        self,
        store: LocalRecordStore,
        *,
        window: float = DEFAULT_WINDOW_SECONDS,
        timer: Optional[Timer] = None,
        on_malformed: Optional[DiagnosticSink] = None,
    ) -> None:
        self._store = store
        self._window = max(0.0, float(window))
        self._timer: Timer = timer or LoopTimer()
        self._on_malformed = on_malformed
        self._queue: Deque[Any] = deque()
        self._handle: Optional[TimerHandle] = None
        self.flush_count = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def scheduled(self) -> bool:
        return self._handle is not None

    def enqueue(self, event: Union[ChangeEvent, str]) -> None:
        self._queue.append(event)
        if self._handle is None:
            self._handle = self._timer.call_later(self._window, self._on_timer)

    def _on_timer(self) -> None:
        self._handle = None
        self.flush()

    def flush(self) -> int:
        """
        Apply every queued event; return how many were applied.

        Calling it directly also disarms the pending timer, so the next
        enqueue opens a fresh window.
        """
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if not self._queue:
            return 0
        applied = 0
        with self._store.batch():
            while self._queue:
                event = self._queue.popleft()
                try:
                    self._apply(event)
                except MalformedEventError as exc:
                    self._report(event, exc)
                    continue
                applied += 1
        self.flush_count += 1
        logger.debug("applied %d change event(s)", applied)
        return applied

    def close(self) -> None:
        """Cancel a pending flush and discard queued events."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._queue:
            logger.debug("discarding %d queued change event(s)", len(self._queue))
            self._queue.clear()

    def _apply(self, event: Any) -> None:
        if isinstance(event, str):
            try:
                event = event_from_json(event)
            except ValueError as exc:
                raise MalformedEventError(f"undecodable change event: {exc}", event) from exc
        if not isinstance(event, ChangeEvent):
            raise MalformedEventError("not a change event", event)
        if event.operation not in OPERATIONS:
            raise MalformedEventError(f"unknown operation {event.operation!r}", event)
        record_id = event.record_id
        if record_id is None:
            raise MalformedEventError("event carries no record id", event)

        if event.operation == "insert":
            self._store.upsert({**event.record, "id": record_id})  # type: ignore[typeddict-item]
        elif event.operation == "update":
            existing = self._store.get(record_id)
            if existing is None:
                logger.debug("update for unknown task %s ignored", record_id)
                return
            self._store.upsert({**existing, **event.record, "id": record_id})  # type: ignore[typeddict-item]
        else:
            self._store.remove(record_id)

    def _report(self, event: Any, exc: MalformedEventError) -> None:
        logger.warning("dropping malformed change event: %s", exc.reason)
        if self._on_malformed is None:
            return
        try:
            self._on_malformed(event, exc)
        except Exception:
            logger.exception("diagnostic sink failed")
