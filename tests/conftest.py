from __future__ import annotations

import os

import pytest

# Fixed defaults so tests do not depend on the caller's environment.
os.environ.setdefault("TASK_CACHE_BATCH_WINDOW_MS", "500")
os.environ.setdefault("TASK_CACHE_TEMP_ID_PREFIX", "temp-")
os.environ.setdefault("CORS_ALLOW_ORIGINS", "*")

from task_cache.batcher import ChangeEventBatcher  # noqa: E402
from task_cache.coordinator import OptimisticMutationCoordinator  # noqa: E402
from task_cache.store import LocalRecordStore  # noqa: E402

from .fakes import ManualTimer, RecordingSink, ScriptedGateway  # noqa: E402


@pytest.fixture()
def store() -> LocalRecordStore:
    return LocalRecordStore()


@pytest.fixture()
def timer() -> ManualTimer:
    return ManualTimer()


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def batcher(store: LocalRecordStore, timer: ManualTimer, sink: RecordingSink) -> ChangeEventBatcher:
    return ChangeEventBatcher(store, window=0.5, timer=timer, on_malformed=sink)


@pytest.fixture()
def gateway() -> ScriptedGateway:
    return ScriptedGateway()


@pytest.fixture()
def coordinator(store: LocalRecordStore, gateway: ScriptedGateway) -> OptimisticMutationCoordinator:
    return OptimisticMutationCoordinator(store, gateway, user_id="u1")
