# src/timesync_client/mutators.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from .auth_store import AuthStateProvider
from .data_store import (
    ARCHIVED_MESSAGES,
    ASSIGNMENTS_COLLECTION,
    CUSTOMERS,
    CUSTOMERS_COLLECTION,
    HOUR_LOGS,
    HOUR_LOGS_COLLECTION,
    MESSAGES,
    MESSAGES_COLLECTION,
    PRODUCT_LOGS_COLLECTION,
    READ_MESSAGES,
    DataStore,
    Record,
)
from .errors import InvalidInput
from .timesheet import hours_between

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEffect:
    """Views a successful write makes stale, and which of them to re-fetch right away."""

    invalidate: Tuple[str, ...] = ()
    refresh: Tuple[str, ...] = ()


ALL_MESSAGE_VIEWS = (MESSAGES, READ_MESSAGES, ARCHIVED_MESSAGES)

CACHE_EFFECTS: Dict[str, CacheEffect] = {
    "create_message": CacheEffect(invalidate=(MESSAGES, READ_MESSAGES)),
    "mark_message_as_read": CacheEffect(
        invalidate=(MESSAGES, READ_MESSAGES), refresh=(MESSAGES, READ_MESSAGES)
    ),
    "archive_message": CacheEffect(invalidate=ALL_MESSAGE_VIEWS, refresh=(MESSAGES, READ_MESSAGES)),
    "delete_message": CacheEffect(invalidate=ALL_MESSAGE_VIEWS),
    "create_hour_log": CacheEffect(invalidate=(HOUR_LOGS,)),
    "update_hour_log": CacheEffect(invalidate=(HOUR_LOGS,), refresh=(HOUR_LOGS,)),
    "delete_hour_log": CacheEffect(invalidate=(HOUR_LOGS,), refresh=(HOUR_LOGS,)),
    "create_customer": CacheEffect(invalidate=(CUSTOMERS,)),
    "update_customer": CacheEffect(invalidate=(CUSTOMERS,)),
    "delete_customer": CacheEffect(invalidate=(CUSTOMERS,)),
    # No cached view reads these collections.
    "create_product_log": CacheEffect(),
    "assign_customer": CacheEffect(),
    "unassign_customer": CacheEffect(),
}


class Mutators:
    """
    Writes against the backend. Remote failures reach the caller untouched; only a
    successful write invalidates (and possibly re-fetches) the affected views.
    """

    def __init__(self, client: Any, auth: AuthStateProvider, data_store: DataStore):
        self._client = client
        self._auth = auth
        self._data = data_store

    async def _mutate(self, operation: str, call: Callable[[], Awaitable[Any]]) -> Any:
        self._auth.require_session()
        try:
            result = await call()
        except Exception as e:
            logger.error("Mutators: Error in %s: %s", operation, e)
            raise

        effect = CACHE_EFFECTS[operation]
        for view in effect.invalidate:
            self._data.invalidate(view)
        if effect.refresh:
            # Re-fetch failures are logged only; the write itself succeeded.
            outcomes = await asyncio.gather(
                *(self._data.fetch(view, force_refresh=True) for view in effect.refresh),
                return_exceptions=True,
            )
            for view, outcome in zip(effect.refresh, outcomes):
                if isinstance(outcome, Exception):
                    logger.warning("Mutators: Refresh of %s after %s failed: %s", view, operation, outcome)
        return result

    # --- Messages ---

    async def create_message(self, data: Dict[str, Any]) -> Record:
        return await self._mutate(
            "create_message", lambda: self._client.create(MESSAGES_COLLECTION, data)
        )

    async def mark_message_as_read(self, message_id: str) -> Record:
        return await self._mutate(
            "mark_message_as_read",
            lambda: self._client.update(MESSAGES_COLLECTION, message_id, {"read": True}),
        )

    async def archive_message(self, message_id: str) -> Record:
        return await self._mutate(
            "archive_message",
            lambda: self._client.update(MESSAGES_COLLECTION, message_id, {"archived": True}),
        )

    async def delete_message(self, message_id: str) -> None:
        await self._mutate(
            "delete_message", lambda: self._client.delete(MESSAGES_COLLECTION, message_id)
        )

    # --- Hour logs ---

    async def create_hour_log(self, data: Dict[str, Any]) -> Record:
        if not data.get("kunde"):
            raise InvalidInput("Customer ID is required")
        payload = dict(data)
        if payload.get("totalsum") is None and payload.get("start_time") and payload.get("end_time"):
            payload["totalsum"] = hours_between(payload["start_time"], payload["end_time"])
        return await self._mutate(
            "create_hour_log", lambda: self._client.create(HOUR_LOGS_COLLECTION, payload)
        )

    async def update_hour_log(self, log_id: str, data: Dict[str, Any]) -> Record:
        return await self._mutate(
            "update_hour_log", lambda: self._client.update(HOUR_LOGS_COLLECTION, log_id, data)
        )

    async def delete_hour_log(self, log_id: str) -> None:
        await self._mutate(
            "delete_hour_log", lambda: self._client.delete(HOUR_LOGS_COLLECTION, log_id)
        )

    # --- Customers ---

    async def create_customer(self, data: Dict[str, Any]) -> Record:
        return await self._mutate(
            "create_customer", lambda: self._client.create(CUSTOMERS_COLLECTION, data)
        )

    async def update_customer(self, customer_id: str, data: Dict[str, Any]) -> Record:
        return await self._mutate(
            "update_customer",
            lambda: self._client.update(CUSTOMERS_COLLECTION, customer_id, data),
        )

    async def delete_customer(self, customer_id: str) -> None:
        await self._mutate(
            "delete_customer", lambda: self._client.delete(CUSTOMERS_COLLECTION, customer_id)
        )

    # --- Product sales ---

    async def create_product_log(self, data: Dict[str, Any]) -> Record:
        return await self._mutate(
            "create_product_log", lambda: self._client.create(PRODUCT_LOGS_COLLECTION, data)
        )

    # --- Customer assignments ---

    async def assign_customer(self, customer_id: str, user_id: Optional[str] = None) -> Record:
        user = user_id or self._auth.require_session().user.id
        return await self._mutate(
            "assign_customer",
            lambda: self._client.create(ASSIGNMENTS_COLLECTION, {"user": user, "kunde": customer_id}),
        )

    async def unassign_customer(self, assignment_id: str) -> None:
        await self._mutate(
            "unassign_customer", lambda: self._client.delete(ASSIGNMENTS_COLLECTION, assignment_id)
        )
