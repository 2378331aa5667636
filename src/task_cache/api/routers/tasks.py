from __future__ import annotations

from functools import lru_cache
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ...errors import GatewayError, ValidationError
from ...filters import FilterQuery
from ...memory_gateway import InMemoryGateway
from ...schemas import TaskInput, TaskOut, TaskPatch, event_to_json

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


class TaskCreateRequest(TaskInput):
    """TaskInput plus the id of the creating user."""

    created_by: Optional[str] = Field(default=None, description="Id of the creating user")


class TaskListEnvelope(BaseModel):
    """
    Envelope for list responses.
    """
    items: List[TaskOut] = Field(..., description="Tasks matching the filters")
    total: int = Field(..., description="Number of tasks returned")


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_gateway() -> InMemoryGateway:
    """Process-wide task table backing the service."""
    return InMemoryGateway()


def _not_found(exc: GatewayError) -> HTTPException:
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return HTTPException(status_code=exc.status_code or 500, detail=exc.message)


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TaskListEnvelope,
    summary="List Tasks",
    description=(
        "List tasks in creation order with optional equality filters.\n\n"
        "Query parameters:\n"
        "- status: pending, in_progress, completed or cancelled\n"
        "- priority: high, medium or low\n"
        "- assigned_to: assignee id"
    ),
    responses={
        200: {"description": "List retrieved successfully"},
        400: {"description": "Invalid filter value"},
    },
)
async def list_tasks(
    status_: Optional[str] = Query(None, alias="status", description="Filter by status"),
    priority: Optional[str] = Query(None, description="Filter by priority"),
    assigned_to: Optional[str] = Query(None, description="Filter by assignee"),
    gateway: InMemoryGateway = Depends(get_gateway),
) -> TaskListEnvelope:
    try:
        query = FilterQuery(status=status_, priority=priority, assigned_to=assigned_to)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    items = await gateway.list(query)
    return TaskListEnvelope(items=[TaskOut(**it) for it in items], total=len(items))


# PUBLIC_INTERFACE
@router.get(
    "/changes",
    summary="Change Feed",
    description="Stream of change events, one JSON object per line (NDJSON).",
    response_class=StreamingResponse,
)
async def stream_changes(gateway: InMemoryGateway = Depends(get_gateway)) -> StreamingResponse:
    sub = gateway.subscribe()

    async def lines() -> AsyncIterator[str]:
        async with sub:
            async for event in sub:
                yield event_to_json(event) + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    responses={
        200: {"description": "Task found"},
        404: {"description": "Task not found"},
    },
)
async def get_task(task_id: str, gateway: InMemoryGateway = Depends(get_gateway)) -> TaskOut:
    item = gateway.get(task_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return TaskOut(**item)


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    responses={
        201: {"description": "Task created successfully"},
        422: {"description": "Validation error"},
    },
)
async def create_task(payload: TaskCreateRequest, gateway: InMemoryGateway = Depends(get_gateway)) -> TaskOut:
    data = TaskInput.model_validate(payload.model_dump(exclude={"created_by"}))
    created = await gateway.create(data, created_by=payload.created_by)
    return TaskOut(**created)


# PUBLIC_INTERFACE
@router.patch(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description="Partially update fields of a task.",
    responses={
        200: {"description": "Task updated"},
        404: {"description": "Task not found"},
    },
)
async def patch_task(task_id: str, payload: TaskPatch, gateway: InMemoryGateway = Depends(get_gateway)) -> TaskOut:
    try:
        updated = await gateway.update(task_id, payload)
    except GatewayError as exc:
        raise _not_found(exc) from exc
    return TaskOut(**updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    responses={
        204: {"description": "Task deleted"},
        404: {"description": "Task not found"},
    },
)
async def delete_task(task_id: str, gateway: InMemoryGateway = Depends(get_gateway)) -> None:
    try:
        await gateway.delete(task_id)
    except GatewayError as exc:
        raise _not_found(exc) from exc
    return None
