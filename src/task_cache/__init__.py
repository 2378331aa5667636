"""
Client-side task cache kept consistent with a remote task store.

Local writes are applied optimistically and rolled back on failure; remote
change events are batched into the same store.
"""

from .batcher import ChangeEventBatcher, LoopTimer
from .coordinator import OptimisticMutationCoordinator, PendingMutation
from .errors import (
    CreateFailed,
    DeleteFailed,
    GatewayError,
    MalformedEventError,
    MutationFailed,
    RecordNotFound,
    TaskCacheError,
    UpdateFailed,
    ValidationError,
)
from .filters import FilterQuery
from .gateway import RemoteGateway, Subscription
from .memory_gateway import InMemoryGateway
from .models import ChangeEvent, TaskRecord, is_temporary_id
from .schemas import TaskInput, TaskPatch
from .store import LocalRecordStore
from .sync import TaskSync

__all__ = [
    "ChangeEvent",
    "ChangeEventBatcher",
    "CreateFailed",
    "DeleteFailed",
    "FilterQuery",
    "GatewayError",
    "InMemoryGateway",
    "LocalRecordStore",
    "LoopTimer",
    "MalformedEventError",
    "MutationFailed",
    "OptimisticMutationCoordinator",
    "PendingMutation",
    "RecordNotFound",
    "RemoteGateway",
    "Subscription",
    "TaskCacheError",
    "TaskInput",
    "TaskPatch",
    "TaskRecord",
    "TaskSync",
    "UpdateFailed",
    "ValidationError",
    "is_temporary_id",
]
