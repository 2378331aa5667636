"""
Task list kept in sync with a remote store.

TaskSync wires the pieces together for one gateway and one user: an
initial (or filtered) full refresh, the change feed pumped into the
batcher, and optimistic mutations through the coordinator.

    async with TaskSync(gateway, user_id="u1") as tasks:
        await tasks.start()
        record = await tasks.create({"title": "Call client", "priority": "high"})
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, List, Mapping, Optional, Union

from .batcher import ChangeEventBatcher, DiagnosticSink, Timer
from .coordinator import OptimisticMutationCoordinator
from .errors import GatewayError
from .filters import FilterQuery
from .gateway import RemoteGateway, Subscription
from .models import TaskRecord, is_temporary_id
from .schemas import TaskInput, TaskPatch
from .settings import Settings, get_settings
from .store import LocalRecordStore

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class TaskSync:
    """Local task cache bound to a RemoteGateway."""

    def __init__(
        self,
        gateway: RemoteGateway,
        *,
        user_id: Optional[str] = None,
        settings: Optional[Settings] = None,
        store: Optional[LocalRecordStore] = None,
        timer: Optional[Timer] = None,
        on_malformed: Optional[DiagnosticSink] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._gateway = gateway
        self.store = store or LocalRecordStore()
        self.batcher = ChangeEventBatcher(
            self.store,
            window=self._settings.batch_window,
            timer=timer,
            on_malformed=on_malformed,
        )
        self.coordinator = OptimisticMutationCoordinator(
            self.store,
            gateway,
            user_id=user_id,
            temp_id_prefix=self._settings.temp_id_prefix,
            request_timeout=self._settings.request_timeout,
        )
        self.loading = False
        self.error: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._pump: Optional["asyncio.Task[None]"] = None

    @property
    def tasks(self) -> List[TaskRecord]:
        return self.store.get_all()

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    async def start(self, query: Optional[FilterQuery] = None) -> None:
        """Open the change feed, then load the initial task list."""
        if self._subscription is None:
            self._subscription = self._gateway.subscribe()
            self._pump = asyncio.get_running_loop().create_task(self._consume(self._subscription))
        await self.refresh(query)

    async def refresh(self, query: Optional[FilterQuery] = None) -> List[TaskRecord]:
        """
        Replace the store with the remote list. Records still pending
        creation are kept and in-flight updates and deletes are re-applied
        on top. On failure `error` holds the message and the GatewayError
        propagates.
        """
        self.loading = True
        try:
            records = await self._gateway.list(query)
        except GatewayError as exc:
            self.error = exc.message
            logger.warning("refresh failed: %s", exc.message)
            raise
        finally:
            self.loading = False

        self.error = None
        prefix = self._settings.temp_id_prefix
        in_flight = [r for r in self.store.get_all() if is_temporary_id(r["id"], prefix)]
        with self.store.batch():
            self.store.replace_all([*records, *in_flight])
            self.coordinator.replay_pending()
        logger.debug("refreshed %d task(s)", len(records))
        return self.store.get_all()

    async def create(self, data: Union[TaskInput, Mapping[str, Any]]) -> TaskRecord:
        return await self.coordinator.create(data)

    async def update(self, record_id: str, patch: Union[TaskPatch, Mapping[str, Any]]) -> TaskRecord:
        return await self.coordinator.update(record_id, patch)

    async def delete(self, record_id: str) -> None:
        await self.coordinator.delete(record_id)

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            self.batcher.enqueue(event)
        logger.debug("change feed ended")

    async def aclose(self) -> None:
        """Stop consuming the change feed and release the subscription."""
        if self._pump is not None:
            self._pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump
            self._pump = None
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        self.batcher.close()

    async def __aenter__(self) -> "TaskSync":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
