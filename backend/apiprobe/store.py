import asyncio
import logging
from typing import Any, Dict, List, Optional, Set, Union

import httpx

from .config import settings
from .exceptions import HistoryWriteError, StoreError
from .schemas import HistoryItem

logger = logging.getLogger("apiprobe.store")


class StoreClient:
    """Wrapper for the history and collections store API"""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = None, timeout: float = None):
        self.client = http_client
        self.base_url = (base_url or settings.STORE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.STORE_TIMEOUT

    async def _call(self, operation: str, method: str, path: str, user_id: Optional[str] = None, **kwargs):
        headers = {"user-id": user_id} if user_id else {}
        try:
            response = await self.client.request(
                method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(operation, e) from e
        return response

    async def list_history(self, user_id: str) -> List[HistoryItem]:
        response = await self._call("list_history", "GET", "/history", user_id)
        return [HistoryItem(**item) for item in response.json()]

    async def delete_history_item(self, item_id: Union[int, str], user_id: str):
        await self._call("delete_history_item", "DELETE", f"/history/{item_id}", user_id)

    async def clear_history(self, user_id: str):
        await self._call("clear_history", "DELETE", "/history", user_id)

    async def record_history(self, url: str, method: str, user_id: str):
        try:
            await self._call(
                "record_history",
                "POST",
                "/history",
                user_id,
                json={"url": url, "method": method, "user_id": user_id},
            )
        except StoreError as e:
            raise HistoryWriteError(e.cause) from e

    async def list_collections(self, user_id: str) -> List[Dict[str, Any]]:
        response = await self._call("list_collections", "GET", "/collections", user_id)
        return response.json()

    async def create_collection(self, name: str, user_id: str) -> Any:
        response = await self._call(
            "create_collection", "POST", "/collections", user_id, json={"name": name, "user_id": user_id}
        )
        return response.json() if response.content else None

    async def save_collection_item(self, item: Dict[str, Any]) -> Any:
        response = await self._call(
            "save_collection_item", "POST", "/collection-items", item.get("user_id"), json=item
        )
        return response.json() if response.content else None


class HistoryRecorder:
    """
    Fire-and-forget history writes.

    Each write runs as its own task so a send never waits on it. Failures are
    logged and dropped. ``drain`` lets shutdown (and tests) wait for whatever
    is still in flight.
    """

    def __init__(self, store: StoreClient):
        self.store = store
        self._pending: Set[asyncio.Task] = set()

    def schedule(self, url: str, method: str, user_id: str) -> asyncio.Task:
        task = asyncio.create_task(self._record(url, method, user_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _record(self, url: str, method: str, user_id: str):
        try:
            await self.store.record_history(url, method, user_id)
        except HistoryWriteError as e:
            logger.warning("History entry for %s %s not recorded: %s", method, url, e.cause)
        except Exception:
            logger.exception("Unexpected failure while recording history for %s %s", method, url)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self):
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
