from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from .models import TaskRecord

logger = logging.getLogger(__name__)

Listener = Callable[[List[TaskRecord]], None]


@dataclass(frozen=True)
class Position:
    """Logical position of a record: its index and the id right before it."""

    index: int
    after_id: Optional[str]


# PUBLIC_INTERFACE
class LocalRecordStore:
    """
    In-memory, id-keyed collection of task records in creation order.

    The store is the single mutable source of truth observed by the
    rendering layer. Only the batcher and the mutation coordinator write to
    it; readers always receive copies.
    """

    def __init__(self, records: Optional[Iterable[TaskRecord]] = None) -> None:
        self._records: Dict[str, TaskRecord] = {}
        self._order: List[str] = []
        self._listeners: List[Listener] = []
        self._batch_depth = 0
        self._dirty = False
        for record in records or ():
            self._put(dict(record))  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    # ---- reads ----

    def get_all(self) -> List[TaskRecord]:
        return [self._records[i].copy() for i in self._order]

    def get(self, record_id: str) -> Optional[TaskRecord]:
        record = self._records.get(record_id)
        return None if record is None else record.copy()

    def ids(self) -> List[str]:
        return list(self._order)

    def locate(self, record_id: str) -> Optional[Position]:
        if record_id not in self._records:
            return None
        index = self._order.index(record_id)
        return Position(index=index, after_id=self._order[index - 1] if index > 0 else None)

    # ---- writes ----

    def upsert(self, record: TaskRecord) -> bool:
        """Insert at the end or replace in place. Returns False if nothing changed."""
        record_id = record["id"]
        if self._records.get(record_id) == record:
            return False
        self._put(dict(record))  # type: ignore[arg-type]
        self._changed()
        return True

    def remove(self, record_id: str) -> bool:
        if record_id not in self._records:
            return False
        del self._records[record_id]
        self._order.remove(record_id)
        self._changed()
        return True

    def replace_id(self, old_id: str, new_id: str, canonical: TaskRecord) -> None:
        """
        Swap a record's identity in place, storing canonical under new_id.

        If new_id is already present (its insert echo was applied first), that
        entry is dropped so exactly one record remains, at old_id's position.
        If old_id is gone, this degrades to an upsert of canonical.
        """
        record = dict(canonical)
        record["id"] = new_id
        if old_id not in self._records:
            self.upsert(record)  # type: ignore[arg-type]
            return
        if new_id != old_id and new_id in self._records:
            del self._records[new_id]
            self._order.remove(new_id)
        index = self._order.index(old_id)
        del self._records[old_id]
        self._order[index] = new_id
        self._records[new_id] = record  # type: ignore[assignment]
        self._changed()

    def restore(self, record: TaskRecord, position: Position) -> None:
        """Re-insert a removed record after its former predecessor, or at its index."""
        record_id = record["id"]
        if record_id in self._records:
            self._order.remove(record_id)
        if position.after_id is not None and position.after_id in self._records:
            index = self._order.index(position.after_id) + 1
        else:
            index = min(position.index, len(self._order))
        self._order.insert(index, record_id)
        self._records[record_id] = dict(record)  # type: ignore[assignment]
        self._changed()

    def replace_all(self, records: Iterable[TaskRecord]) -> None:
        self._records = {}
        self._order = []
        for record in records:
            self._put(dict(record))  # type: ignore[arg-type]
        self._changed()

    @contextmanager
    def batch(self) -> Iterator["LocalRecordStore"]:
        """Group writes so listeners are notified once, on exit, if anything changed."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._notify()

    # ---- observers ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ---- internals ----

    def _put(self, record: TaskRecord) -> None:
        if record["id"] not in self._records:
            self._order.append(record["id"])
        self._records[record["id"]] = record

    def _changed(self) -> None:
        self._dirty = True
        if self._batch_depth == 0:
            self._notify()

    def _notify(self) -> None:
        self._dirty = False
        if not self._listeners:
            return
        snapshot = self.get_all()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("store listener failed")
