from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaValidationError

from .errors import ValidationError
from .models import ChangeEvent, Priority, RecordPayload, Status, TaskRecord

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _parse_due_date(value: Optional[DueDateInput]) -> Optional[date]:
    """
    Internal helper to normalize due_date input into a date.
    - If value is a string, accept an ISO date or an ISO datetime (time is dropped).
    - If value is a datetime, keep its date part.
    - If value is a date, return as-is.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            try:
                return datetime.fromisoformat(s).date()
            except ValueError as e:
                raise ValueError(
                    "Invalid due_date format. Use an ISO8601 date or datetime string (e.g., '2025-01-31')."
                ) from e

    raise ValueError("Invalid type for due_date; expected date, datetime, or ISO8601 string.")


def _clean_title(v: str) -> str:
    s = v.strip()
    if not (1 <= len(s) <= 200):
        raise ValueError("title length must be between 1 and 200 characters")
    return s


# PUBLIC_INTERFACE
class TaskInput(BaseModel):
    """
    Fields accepted when creating a task.
    Defaults follow the task form: medium priority, pending status.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Call client",
                "description": "Follow up on the proposal",
                "due_date": "2025-02-01",
                "priority": "high",
                "status": "pending",
            }
        }
    )

    title: str = Field(..., description="Short title for the task", min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    due_date: Optional[date] = Field(default=None, description="Due date (ISO8601 date or datetime)")
    priority: Priority = Field(default="medium", description="high, medium or low")
    status: Status = Field(default="pending", description="pending, in_progress, completed or cancelled")
    assigned_to: Optional[str] = Field(default=None, description="Assignee id")
    related_to_type: Optional[str] = Field(default=None, description="Kind of the related entity")
    related_to_id: Optional[str] = Field(default=None, description="Id of the related entity")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Strip whitespace and enforce 1..200 length."""
        if v is None:
            raise ValueError("title is required")
        return _clean_title(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)


# PUBLIC_INTERFACE
class TaskPatch(BaseModel):
    """
    Partial update of a task.
    Only explicitly provided fields are part of the patch; an explicit null
    clears an optional field.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    assigned_to: Optional[str] = None
    related_to_type: Optional[str] = None
    related_to_id: Optional[str] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> str:
        # Validators only run for provided values, so None here is an explicit null.
        if v is None:
            raise ValueError("title cannot be cleared")
        return _clean_title(v)

    @field_validator("priority", "status")
    @classmethod
    def reject_null(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("field cannot be cleared")
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)

    def changes(self) -> Dict[str, Any]:
        """Return only the fields that were explicitly set."""
        return self.model_dump(exclude_unset=True)


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """A full task record as exchanged with the remote store."""

    id: str = Field(..., description="Unique identifier of the task")
    title: str
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Priority
    status: Status
    assigned_to: Optional[str] = None
    related_to_type: Optional[str] = None
    related_to_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)

    def to_record(self) -> TaskRecord:
        return self.model_dump()  # type: ignore[return-value]


class TaskPartial(BaseModel):
    """Any subset of TaskOut fields, used for change event payloads."""

    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    assigned_to: Optional[str] = None
    related_to_type: Optional[str] = None
    related_to_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("due_date", mode="before")
    @classmethod
    def parse_due_date(cls, v: Optional[DueDateInput]) -> Optional[date]:
        return _parse_due_date(v)


def _as_validation_error(exc: SchemaValidationError, what: str) -> ValidationError:
    return ValidationError(f"Invalid {what}", errors=exc.errors(include_url=False))


# PUBLIC_INTERFACE
def validate_input(data: Union[TaskInput, Mapping[str, Any]]) -> TaskInput:
    """Return a TaskInput or raise task_cache ValidationError."""
    if isinstance(data, TaskInput):
        return data
    try:
        return TaskInput.model_validate(dict(data))
    except SchemaValidationError as exc:
        raise _as_validation_error(exc, "task input") from exc


# PUBLIC_INTERFACE
def validate_patch(data: Union[TaskPatch, Mapping[str, Any]]) -> TaskPatch:
    """Return a non-empty TaskPatch or raise task_cache ValidationError."""
    if isinstance(data, TaskPatch):
        patch = data
    else:
        try:
            patch = TaskPatch.model_validate(dict(data))
        except SchemaValidationError as exc:
            raise _as_validation_error(exc, "task patch") from exc
    if not patch.model_fields_set:
        raise ValidationError("Task patch has no fields to update")
    return patch


# PUBLIC_INTERFACE
def record_from_json(data: Mapping[str, Any]) -> TaskRecord:
    """Parse a full JSON record into a TaskRecord with native date types."""
    return TaskOut.model_validate(dict(data)).to_record()


# PUBLIC_INTERFACE
def payload_from_json(data: Mapping[str, Any]) -> RecordPayload:
    """Parse a full or partial JSON payload, keeping only the keys present."""
    return TaskPartial.model_validate(dict(data)).model_dump(exclude_unset=True)


# PUBLIC_INTERFACE
def payload_to_json(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Serialize a full or partial payload to JSON-compatible values."""
    return TaskPartial.model_validate(dict(payload)).model_dump(mode="json", exclude_unset=True)


# PUBLIC_INTERFACE
def event_to_json(event: ChangeEvent) -> str:
    """Encode a change event as one NDJSON line (without the newline)."""
    data: Dict[str, Any] = {"operation": event.operation, "record": payload_to_json(event.record)}
    if event.previous_record is not None:
        data["previous_record"] = payload_to_json(event.previous_record)
    return json.dumps(data, separators=(",", ":"))


# PUBLIC_INTERFACE
def event_from_json(line: str) -> ChangeEvent:
    """
    Decode one NDJSON change event line.
    Raises ValueError for undecodable input. A payload without an id is
    returned as-is; the batcher reports it as malformed.
    """
    data = json.loads(line)
    if not isinstance(data, dict):
        raise ValueError("change event must be a JSON object")
    operation = data.get("operation")
    record = data.get("record")
    previous = data.get("previous_record")
    if not isinstance(operation, str):
        raise ValueError("change event has no operation")
    if not isinstance(record, dict):
        raise ValueError("change event has no record object")
    if previous is not None and not isinstance(previous, dict):
        raise ValueError("previous_record must be an object")
    return ChangeEvent(
        operation=operation,
        record=payload_from_json(record),
        previous_record=payload_from_json(previous) if previous is not None else None,
    )
