from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .errors import GatewayError
from .filters import FilterQuery
from .gateway import RemoteGateway, Subscription
from .models import ChangeEvent, TaskRecord
from .schemas import TaskInput, TaskPatch

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class InMemoryGateway(RemoteGateway):
    """
    Authoritative in-process task table with a change feed.

    Suitable for tests and as the backing store of the reference REST
    service. Every write is published to all open subscriptions, including
    the writer's own.
    """

    def __init__(self) -> None:
        self._items: Dict[str, TaskRecord] = {}
        self._subscriptions: List[Subscription] = []

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _allocate_id(self) -> str:
        return str(uuid.uuid4())

    def _publish(self, event: ChangeEvent) -> None:
        for sub in list(self._subscriptions):
            sub.push(event)

    def _detach(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)
            logger.debug("subscription closed, %d open", len(self._subscriptions))

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def get(self, task_id: str) -> Optional[TaskRecord]:
        item = self._items.get(task_id)
        return None if item is None else item.copy()

    async def list(self, query: Optional[FilterQuery] = None) -> List[TaskRecord]:
        q = query or FilterQuery()
        return [t.copy() for t in self._items.values() if q.matches(t)]

    async def create(self, data: TaskInput, *, created_by: Optional[str] = None) -> TaskRecord:
        now = self._now()
        entity: TaskRecord = {
            "id": self._allocate_id(),
            "title": data.title,
            "description": data.description,
            "due_date": data.due_date,
            "priority": data.priority,
            "status": data.status,
            "assigned_to": data.assigned_to,
            "related_to_type": data.related_to_type,
            "related_to_id": data.related_to_id,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        }
        self._items[entity["id"]] = entity
        self._publish(ChangeEvent("insert", entity.copy()))
        return entity.copy()

    async def update(self, task_id: str, data: TaskPatch) -> TaskRecord:
        existing = self._items.get(task_id)
        if existing is None:
            raise GatewayError("Task not found", status_code=404)

        updated = existing.copy()
        updated.update(data.changes())  # type: ignore[typeddict-item]
        updated["updated_at"] = self._now()

        self._items[task_id] = updated
        self._publish(ChangeEvent("update", updated.copy(), previous_record=existing.copy()))
        return updated.copy()

    async def delete(self, task_id: str) -> None:
        existing = self._items.pop(task_id, None)
        if existing is None:
            raise GatewayError("Task not found", status_code=404)
        self._publish(ChangeEvent("delete", {"id": task_id}, previous_record=existing.copy()))

    def subscribe(self) -> Subscription:
        sub = Subscription(on_close=self._detach)
        self._subscriptions.append(sub)
        return sub

    async def aclose(self) -> None:
        for sub in list(self._subscriptions):
            await sub.close()
