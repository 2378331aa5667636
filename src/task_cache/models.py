from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Literal, Optional, Tuple, TypedDict

Priority = Literal["high", "medium", "low"]
Status = Literal["pending", "in_progress", "completed", "cancelled"]
Operation = Literal["insert", "update", "delete"]

PRIORITIES: Tuple[str, ...] = ("high", "medium", "low")
STATUSES: Tuple[str, ...] = ("pending", "in_progress", "completed", "cancelled")
OPERATIONS: Tuple[str, ...] = ("insert", "update", "delete")

DEFAULT_TEMP_ID_PREFIX = "temp-"

# Full or partial record payload, as carried by change events.
RecordPayload = Dict[str, Any]


# PUBLIC_INTERFACE
class TaskRecord(TypedDict):
    """
    A task as held by the local cache.

    Fields:
    - id: Server-canonical id, or a client temporary id (see is_temporary_id)
    - title: Non-empty short title
    - description: Optional detailed description
    - due_date: Optional due date
    - priority: One of PRIORITIES
    - status: One of STATUSES
    - assigned_to: Optional assignee id
    - related_to_type / related_to_id: Optional polymorphic relation
    - created_by: Id of the creating user (None while unknown)
    - created_at / updated_at: Timestamps, server-computed once confirmed
    """

    id: str
    title: str
    description: Optional[str]
    due_date: Optional[date]
    priority: Priority
    status: Status
    assigned_to: Optional[str]
    related_to_type: Optional[str]
    related_to_id: Optional[str]
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class ChangeEvent:
    """
    A notification that a row changed in the authoritative store.

    `record` is the new row (full for inserts, full or partial for updates).
    Delete notifications may only carry the id in `previous_record`.
    """

    operation: str
    record: RecordPayload
    previous_record: Optional[RecordPayload] = None

    @property
    def record_id(self) -> Optional[str]:
        """Id the event refers to, or None when the payload carries none."""
        for payload in (self.record, self.previous_record):
            if isinstance(payload, dict) and payload.get("id") not in (None, ""):
                return str(payload["id"])
        return None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"operation": self.operation, "record": self.record}
        if self.previous_record is not None:
            data["previous_record"] = self.previous_record
        return data


# PUBLIC_INTERFACE
def is_temporary_id(record_id: str, prefix: str = DEFAULT_TEMP_ID_PREFIX) -> bool:
    """Return True if record_id was synthesized locally for a pending creation."""
    return isinstance(record_id, str) and record_id.startswith(prefix)
