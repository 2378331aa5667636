from __future__ import annotations

import json
from datetime import date, datetime, timezone

import pytest

from task_cache.errors import ValidationError
from task_cache.models import ChangeEvent
from task_cache.schemas import (
    TaskInput,
    event_from_json,
    event_to_json,
    record_from_json,
    validate_input,
    validate_patch,
)

from .fakes import make_record


class TestTaskInput:
    def test_defaults_and_trimming(self):
        data = validate_input({"title": "  Call client  "})
        assert data.title == "Call client"
        assert data.priority == "medium"
        assert data.status == "pending"
        assert data.due_date is None

    def test_due_date_forms(self):
        assert validate_input({"title": "a", "due_date": "2025-01-31"}).due_date == date(2025, 1, 31)
        assert validate_input({"title": "a", "due_date": "2025-01-31T13:45:00"}).due_date == date(2025, 1, 31)
        assert validate_input({"title": "a", "due_date": ""}).due_date is None

    def test_rejections(self):
        for bad in ({"title": ""}, {"title": "   "}, {"title": "a", "priority": "urgent"},
                    {"title": "a", "due_date": "soon"}, {}):
            with pytest.raises(ValidationError) as info:
                validate_input(bad)
            assert info.value.errors

    def test_model_passthrough(self):
        model = TaskInput(title="x")
        assert validate_input(model) is model


class TestTaskPatch:
    def test_only_set_fields(self):
        patch = validate_patch({"status": "completed", "assigned_to": None})
        assert patch.changes() == {"status": "completed", "assigned_to": None}

    def test_cannot_clear_required_fields(self):
        for bad in ({"title": None}, {"priority": None}, {"status": None}):
            with pytest.raises(ValidationError):
                validate_patch(bad)

    def test_empty_patch(self):
        with pytest.raises(ValidationError):
            validate_patch({})


class TestWireFormat:
    def test_record_from_json_parses_dates(self):
        record = record_from_json(
            {
                "id": "srv-1",
                "title": "t",
                "priority": "low",
                "status": "pending",
                "due_date": "2025-03-01",
                "created_at": "2025-01-01T09:00:00+00:00",
                "updated_at": "2025-01-01T09:00:00+00:00",
            }
        )
        assert record["due_date"] == date(2025, 3, 1)
        assert record["created_at"] == datetime(2025, 1, 1, 9, tzinfo=timezone.utc)
        assert record["assigned_to"] is None

    def test_event_line_keeps_partial_payload_partial(self):
        line = event_to_json(ChangeEvent("update", {"id": "srv-1", "status": "completed"}))
        assert json.loads(line) == {"operation": "update", "record": {"id": "srv-1", "status": "completed"}}

        event = event_from_json(line)
        assert event.record == {"id": "srv-1", "status": "completed"}
        assert event.previous_record is None

    def test_event_line_with_full_record(self):
        record = make_record("srv-1")
        event = event_from_json(event_to_json(ChangeEvent("delete", {"id": "srv-1"}, previous_record=record)))
        assert event.operation == "delete"
        assert event.previous_record == record

    def test_event_without_id_still_decodes(self):
        event = event_from_json('{"operation": "insert", "record": {"title": "x"}}')
        assert event.record_id is None

    @pytest.mark.parametrize(
        "line",
        ["not json", "[]", '{"record": {}}', '{"operation": "insert"}', '{"operation": "insert", "record": {"priority": "urgent"}}'],
    )
    def test_undecodable_lines(self, line):
        with pytest.raises(ValueError):
            event_from_json(line)
