from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, List, Optional, Tuple, Union

from task_cache.errors import GatewayError, MalformedEventError
from task_cache.filters import FilterQuery
from task_cache.gateway import RemoteGateway, Subscription
from task_cache.models import ChangeEvent, TaskRecord


def make_record(record_id: str, **overrides: Any) -> TaskRecord:
    ts = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
    record: TaskRecord = {
        "id": record_id,
        "title": f"Task {record_id}",
        "description": None,
        "due_date": date(2025, 2, 1),
        "priority": "medium",
        "status": "pending",
        "assigned_to": None,
        "related_to_type": None,
        "related_to_id": None,
        "created_by": "u1",
        "created_at": ts,
        "updated_at": ts,
    }
    record.update(overrides)  # type: ignore[typeddict-item]
    return record


async def settle(rounds: int = 5) -> None:
    """Let already-scheduled tasks run up to their next real suspension."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimer:
    """
    Timer whose callbacks only run when the test calls fire().
    Records every scheduling so tests can assert on window starts.
    """

    def __init__(self) -> None:
        self.scheduled: List[Tuple[float, Callable[[], Any], ManualHandle]] = []

    def call_later(self, delay: float, callback: Callable[[], Any]) -> ManualHandle:
        handle = ManualHandle()
        self.scheduled.append((delay, callback, handle))
        return handle

    @property
    def active(self) -> int:
        return sum(1 for _, _, h in self.scheduled if not h.cancelled)

    def fire(self) -> None:
        due, self.scheduled = self.scheduled, []
        for _, callback, handle in due:
            if not handle.cancelled:
                callback()


@dataclass
class PendingCall:
    op: str
    args: Tuple[Any, ...]
    future: "asyncio.Future[Any]"

    def succeed(self, value: Any = None) -> None:
        self.future.set_result(value)

    def fail(self, message: str = "boom") -> None:
        self.future.set_exception(GatewayError(message))


class ScriptedGateway(RemoteGateway):
    """
    Gateway whose mutation calls block until the test resolves them, so
    tests decide the order in which remote responses arrive.
    """

    def __init__(self, records: Optional[List[TaskRecord]] = None) -> None:
        self.records: List[TaskRecord] = list(records or [])
        self.list_error: Optional[str] = None
        self.list_queries: List[Optional[FilterQuery]] = []
        self.calls: List[PendingCall] = []
        self.subscriptions: List[Subscription] = []

    async def _wait(self, op: str, *args: Any) -> Any:
        call = PendingCall(op, args, asyncio.get_running_loop().create_future())
        self.calls.append(call)
        return await call.future

    def last(self, op: str) -> PendingCall:
        return [c for c in self.calls if c.op == op][-1]

    async def list(self, query: Optional[FilterQuery] = None) -> List[TaskRecord]:
        self.list_queries.append(query)
        if self.list_error is not None:
            raise GatewayError(self.list_error)
        q = query or FilterQuery()
        return [r.copy() for r in self.records if q.matches(r)]

    async def create(self, data, *, created_by=None):
        return await self._wait("create", data, created_by)

    async def update(self, task_id, data):
        return await self._wait("update", task_id, data)

    async def delete(self, task_id):
        return await self._wait("delete", task_id)

    def subscribe(self) -> Subscription:
        sub = Subscription(on_close=self.subscriptions.remove)
        self.subscriptions.append(sub)
        return sub

    def emit(self, event: Union[ChangeEvent, str]) -> None:
        for sub in list(self.subscriptions):
            sub.push(event)


@dataclass
class RecordingSink:
    """Diagnostic sink collecting malformed events."""

    reports: List[Tuple[Any, MalformedEventError]] = field(default_factory=list)

    def __call__(self, event: Any, exc: MalformedEventError) -> None:
        self.reports.append((event, exc))
