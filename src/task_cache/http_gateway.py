"""RemoteGateway over the task REST service, using httpx."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

import httpx

from .errors import GatewayError
from .filters import FilterQuery
from .gateway import RemoteGateway, Subscription
from .models import TaskRecord
from .schemas import TaskInput, TaskPatch, event_from_json, record_from_json

logger = logging.getLogger(__name__)

TASKS_PATH = "/api/v1/tasks/"
CHANGES_PATH = "/api/v1/tasks/changes"


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str):
            return detail
        if isinstance(body.get("message"), str):
            return body["message"]
    return f"HTTP {resp.status_code}: {resp.text[:200]}"


class _FeedSubscription(Subscription):
    """Subscription fed by a background task reading the NDJSON change feed."""

    def __init__(self) -> None:
        super().__init__(on_close=_FeedSubscription._stop_reader)
        self.reader: Optional["asyncio.Task[None]"] = None

    def _stop_reader(self) -> None:
        reader = self.reader
        if reader is not None and not reader.done() and reader is not asyncio.current_task():
            reader.cancel()


# PUBLIC_INTERFACE
class HttpGateway(RemoteGateway):
    """
    Talks to the task REST service.

    Pass an existing httpx.AsyncClient to share connection pools (or to use
    an ASGI transport in tests); otherwise one is created for base_url and
    closed by aclose().
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        if client is None:
            if not base_url:
                raise ValueError("base_url is required when no client is given")
            client = httpx.AsyncClient(base_url=base_url, timeout=timeout)
            self._owns_client = True
        else:
            self._owns_client = False
        self._client = client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise GatewayError(f"{method} {url} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise GatewayError(_error_message(resp), status_code=resp.status_code)
        return resp

    def _record(self, resp: httpx.Response) -> TaskRecord:
        try:
            return record_from_json(resp.json())
        except ValueError as exc:
            raise GatewayError(f"Invalid task record in response: {exc}") from exc

    async def list(self, query: Optional[FilterQuery] = None) -> List[TaskRecord]:
        params = query.as_params() if query is not None else {}
        resp = await self._request("GET", TASKS_PATH, params=params)
        try:
            return [record_from_json(item) for item in resp.json()["items"]]
        except (ValueError, KeyError, TypeError) as exc:
            raise GatewayError(f"Invalid task list in response: {exc}") from exc

    async def create(self, data: TaskInput, *, created_by: Optional[str] = None) -> TaskRecord:
        body = data.model_dump(mode="json")
        body["created_by"] = created_by
        resp = await self._request("POST", TASKS_PATH, json=body)
        return self._record(resp)

    async def update(self, task_id: str, data: TaskPatch) -> TaskRecord:
        body = data.model_dump(mode="json", exclude_unset=True)
        resp = await self._request("PATCH", f"{TASKS_PATH}{task_id}", json=body)
        return self._record(resp)

    async def delete(self, task_id: str) -> None:
        await self._request("DELETE", f"{TASKS_PATH}{task_id}")

    def subscribe(self) -> Subscription:
        sub = _FeedSubscription()
        sub.reader = asyncio.get_running_loop().create_task(self._read_feed(sub))
        return sub

    async def _read_feed(self, sub: Subscription) -> None:
        try:
            async with self._client.stream("GET", CHANGES_PATH, timeout=None) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    logger.warning("change feed refused: %s", _error_message(resp))
                    return
                logger.info("change feed connected")
                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        event = event_from_json(line)
                    except ValueError as exc:
                        # Passed on raw so the consumer reports it as malformed.
                        logger.debug("undecodable change event: %s", exc)
                        sub.push(line)
                        continue
                    sub.push(event)
        except httpx.HTTPError as exc:
            logger.warning("change feed disconnected: %s", exc)
        finally:
            sub.end()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
