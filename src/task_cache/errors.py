"""Error taxonomy for the task cache."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional


class TaskCacheError(Exception):
    """Base class for every error raised by task_cache."""


class ValidationError(TaskCacheError, ValueError):
    """Local pre-flight rejection; the remote gateway is never called."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors: List[Dict[str, Any]] = list(errors or [])


class RecordNotFound(TaskCacheError, LookupError):
    """The id is not present in the local store."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Task {record_id!r} is not in the local store")
        self.record_id = record_id


class GatewayError(TaskCacheError):
    """A remote call failed (network error, timeout or rejection)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MutationFailed(TaskCacheError):
    """An optimistic mutation was rolled back after a remote failure."""

    def __init__(self, message: str, cause: GatewayError) -> None:
        super().__init__(f"{message}: {cause.message}")
        self.cause = cause


class CreateFailed(MutationFailed):
    def __init__(self, input: Mapping[str, Any], cause: GatewayError) -> None:
        super().__init__("Failed to create task", cause)
        self.input = dict(input)


class UpdateFailed(MutationFailed):
    def __init__(self, id: str, cause: GatewayError) -> None:
        super().__init__(f"Failed to update task {id!r}", cause)
        self.id = id


class DeleteFailed(MutationFailed):
    def __init__(self, id: str, cause: GatewayError) -> None:
        super().__init__(f"Failed to delete task {id!r}", cause)
        self.id = id


class MalformedEventError(TaskCacheError):
    """A change event could not be interpreted; it is dropped by the batcher."""

    def __init__(self, reason: str, event: Any = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.event = event
