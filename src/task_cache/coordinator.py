"""
Optimistic mutations.

Each create/update/delete is applied to the local store before the remote
call is issued, so the caller's intent is visible immediately. The
in-flight mutation is tracked as a PendingMutation holding the pre-image
needed to undo it; when the remote call fails, rollback is computed from
that record alone.

Mutations on the same id are not serialized: whichever local write or
rollback happens last decides what is displayed. A rollback never
re-creates a record that disappeared in the meantime (e.g. removed by a
later delete), and never removes one that was re-added.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Awaitable, Dict, Literal, Mapping, Optional, TypeVar, Union

from .errors import (
    CreateFailed,
    DeleteFailed,
    GatewayError,
    RecordNotFound,
    UpdateFailed,
    ValidationError,
)
from .gateway import RemoteGateway
from .models import DEFAULT_TEMP_ID_PREFIX, TaskRecord, is_temporary_id
from .schemas import TaskInput, TaskPatch, validate_input, validate_patch
from .store import LocalRecordStore, Position

logger = logging.getLogger(__name__)

T = TypeVar("T")

MutationKind = Literal["create", "update", "delete"]


@dataclass(frozen=True)
class PendingMutation:
    """One in-flight mutation and the pre-image needed to undo it."""

    token: str
    kind: MutationKind
    record_id: str
    snapshot: Optional[TaskRecord] = None
    position: Optional[Position] = None
    changes: Optional[Dict[str, Any]] = None


def rollback(store: LocalRecordStore, pending: PendingMutation) -> None:
    """Undo a pending mutation's optimistic effect on the store."""
    if pending.kind == "create":
        store.remove(pending.record_id)
    elif pending.kind == "update":
        if pending.record_id in store and pending.snapshot is not None:
            store.upsert(pending.snapshot)
    elif pending.kind == "delete":
        if pending.record_id not in store and pending.snapshot is not None:
            store.restore(pending.snapshot, pending.position or Position(index=len(store), after_id=None))


# PUBLIC_INTERFACE
class OptimisticMutationCoordinator:
    """Local-first create/update/delete against a RemoteGateway."""

    def __init__(
        self,
        store: LocalRecordStore,
        gateway: RemoteGateway,
        *,
        user_id: Optional[str] = None,
        temp_id_prefix: str = DEFAULT_TEMP_ID_PREFIX,
        request_timeout: Optional[float] = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._user_id = user_id
        self._temp_id_prefix = temp_id_prefix
        self._request_timeout = request_timeout
        self._pending: Dict[str, PendingMutation] = {}

    @property
    def pending(self) -> Mapping[str, PendingMutation]:
        """In-flight mutations keyed by correlation token."""
        return MappingProxyType(self._pending)

    def is_pending_create(self, record_id: str) -> bool:
        return any(p.kind == "create" and p.record_id == record_id for p in self._pending.values())

    def replay_pending(self) -> None:
        """
        Re-apply in-flight updates and deletes after the store was reloaded
        from the remote list. Pre-images are re-taken from the reloaded
        records, so a later rollback restores the refreshed server state.
        Records still pending creation are left to the caller.
        """
        for token, pending in list(self._pending.items()):
            if pending.kind == "create":
                continue
            current = self._store.get(pending.record_id)
            if current is None:
                continue
            if pending.kind == "update":
                self._pending[token] = replace(pending, snapshot=current)
                self._store.upsert({**current, **(pending.changes or {})})  # type: ignore[typeddict-item]
            else:
                position = self._store.locate(pending.record_id)
                self._pending[token] = replace(pending, snapshot=current, position=position)
                self._store.remove(pending.record_id)

    # ---- operations ----

    async def create(self, data: Union[TaskInput, Mapping[str, Any]]) -> TaskRecord:
        """
        Add a task locally under a temporary id, then create it remotely.

        On success the temporary record is swapped for the canonical one. On
        failure it is removed and CreateFailed is raised.
        """
        task_input = validate_input(data)

        temp_id = self._new_temp_id()
        now = datetime.now(timezone.utc)
        local: TaskRecord = {
            "id": temp_id,
            "title": task_input.title,
            "description": task_input.description,
            "due_date": task_input.due_date,
            "priority": task_input.priority,
            "status": task_input.status,
            "assigned_to": task_input.assigned_to,
            "related_to_type": task_input.related_to_type,
            "related_to_id": task_input.related_to_id,
            "created_by": self._user_id,
            "created_at": now,
            "updated_at": now,
        }
        self._store.upsert(local)
        pending = self._track("create", temp_id)

        try:
            canonical = await self._call(self._gateway.create(task_input, created_by=self._user_id))
        except GatewayError as exc:
            self._fail(pending, exc)
            raise CreateFailed(task_input.model_dump(), exc) from exc
        except asyncio.CancelledError:
            self._fail(pending, None)
            raise
        finally:
            self._pending.pop(pending.token, None)

        self._store.replace_id(temp_id, canonical["id"], canonical)
        logger.info("created task %s (was %s)", canonical["id"], temp_id)
        return canonical

    async def update(self, record_id: str, patch: Union[TaskPatch, Mapping[str, Any]]) -> TaskRecord:
        """
        Apply a patch locally, then remotely.

        On success the canonical response wins for every field it carries.
        On failure the exact pre-patch record is restored and UpdateFailed is
        raised.
        """
        task_patch = validate_patch(patch)
        current = self._require_confirmed(record_id)

        changes = task_patch.changes()
        self._store.upsert({**current, **changes})  # type: ignore[typeddict-item]
        pending = self._track("update", record_id, snapshot=current, changes=changes)

        try:
            canonical = await self._call(self._gateway.update(record_id, task_patch))
        except GatewayError as exc:
            self._fail(pending, exc)
            raise UpdateFailed(record_id, exc) from exc
        except asyncio.CancelledError:
            self._fail(pending, None)
            raise
        finally:
            self._pending.pop(pending.token, None)

        latest = self._store.get(record_id)
        if latest is None:
            logger.info("task %s removed while its update was in flight", record_id)
        else:
            self._store.upsert({**latest, **canonical})  # type: ignore[typeddict-item]
        return canonical

    async def delete(self, record_id: str) -> None:
        """
        Remove a task locally, then remotely.

        On failure the record is reinstated at its former position and
        DeleteFailed is raised.
        """
        current = self._require_confirmed(record_id)
        position = self._store.locate(record_id)

        self._store.remove(record_id)
        pending = self._track("delete", record_id, snapshot=current, position=position)

        try:
            await self._call(self._gateway.delete(record_id))
        except GatewayError as exc:
            self._fail(pending, exc)
            raise DeleteFailed(record_id, exc) from exc
        except asyncio.CancelledError:
            self._fail(pending, None)
            raise
        finally:
            self._pending.pop(pending.token, None)

        logger.info("deleted task %s", record_id)

    # ---- internals ----

    def _new_temp_id(self) -> str:
        return f"{self._temp_id_prefix}{uuid.uuid4().hex}"

    def _track(
        self,
        kind: MutationKind,
        record_id: str,
        snapshot: Optional[TaskRecord] = None,
        position: Optional[Position] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> PendingMutation:
        pending = PendingMutation(
            token=uuid.uuid4().hex,
            kind=kind,
            record_id=record_id,
            snapshot=snapshot,
            position=position,
            changes=changes,
        )
        self._pending[pending.token] = pending
        return pending

    def _fail(self, pending: PendingMutation, exc: Optional[GatewayError]) -> None:
        # replay_pending may have re-taken the pre-image since the call started.
        pending = self._pending.get(pending.token, pending)
        rollback(self._store, pending)
        if exc is None:
            logger.info("%s of task %s cancelled; rolled back", pending.kind, pending.record_id)
        else:
            logger.warning("%s of task %s failed: %s; rolled back", pending.kind, pending.record_id, exc.message)

    def _require_confirmed(self, record_id: str) -> TaskRecord:
        if is_temporary_id(record_id, self._temp_id_prefix):
            raise ValidationError(f"Task {record_id!r} has not been confirmed by the server yet")
        current = self._store.get(record_id)
        if current is None:
            raise RecordNotFound(record_id)
        return current

    async def _call(self, call: Awaitable[T]) -> T:
        if self._request_timeout is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self._request_timeout)
        except asyncio.TimeoutError as exc:
            raise GatewayError(f"Request timed out after {self._request_timeout:g}s") from exc
