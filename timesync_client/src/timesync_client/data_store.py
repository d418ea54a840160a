# src/timesync_client/data_store.py

"""
Cache-backed access to the PocketBase collections the app reads.

Each logical view (unread messages, read messages, hour logs, ...) has its own cache
entry and TTL, and its own Observable that UI code reads from. A fresh entry is
served without a network call; a failed refresh falls back to whatever the entry
last held, so the app keeps working on stale data while the backend is unreachable.
"""

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .auth_store import AuthStateProvider
from .config import settings
from .errors import InvalidInput, NetworkException, UpstreamFailure
from .observable import Observable
from .pocketbase_client import quote_filter_value
from .session_data import AuthState, Session
from .timesheet import annotate_hour_log

logger = logging.getLogger(__name__)

Record = Dict[str, Any]

CUSTOMERS = "customers"
MESSAGES = "messages"
READ_MESSAGES = "read_messages"
ARCHIVED_MESSAGES = "archived_messages"
USERS = "users"
HOUR_LOGS = "hour_logs"

VIEW_NAMES = (CUSTOMERS, MESSAGES, READ_MESSAGES, ARCHIVED_MESSAGES, USERS, HOUR_LOGS)

# PocketBase collection names
CUSTOMERS_COLLECTION = "kunder"
MESSAGES_COLLECTION = "messages"
USERS_COLLECTION = "users"
HOUR_LOGS_COLLECTION = "log"
PRODUCT_LOGS_COLLECTION = "product_logs"
ASSIGNMENTS_COLLECTION = "user_customer_assignments"


@dataclass
class CacheEntry:
    ttl: float
    data: Optional[List[Record]] = None
    fetched_at: float = 0.0

    def is_fresh(self, now: float) -> bool:
        if self.data is None:
            return False
        return now - self.fetched_at < self.ttl


@dataclass(frozen=True)
class ViewQuery:
    collection: str
    filter: Optional[str] = None  # "{user}" is replaced with the quoted current user id
    sort: Optional[str] = None
    expand: Optional[str] = None


VIEW_QUERIES: Dict[str, ViewQuery] = {
    CUSTOMERS: ViewQuery(CUSTOMERS_COLLECTION, sort="navn"),
    MESSAGES: ViewQuery(
        MESSAGES_COLLECTION,
        filter="recipient = {user} && archived = false && read = false",
        sort="-created",
        expand="sender",
    ),
    READ_MESSAGES: ViewQuery(
        MESSAGES_COLLECTION,
        filter="recipient = {user} && archived = false && read = true",
        sort="-created",
        expand="sender",
    ),
    ARCHIVED_MESSAGES: ViewQuery(
        MESSAGES_COLLECTION,
        filter="recipient = {user} && archived = true",
        sort="-created",
        expand="sender",
    ),
    USERS: ViewQuery(USERS_COLLECTION, sort="name"),
    HOUR_LOGS: ViewQuery(HOUR_LOGS_COLLECTION, sort="-dato", expand="kunde"),
}


def _without_current_user(records: List[Record], session: Session) -> List[Record]:
    return [r for r in records if r.get("id") != session.user.id]


def _with_decimal_hours(records: List[Record], session: Session) -> List[Record]:
    return [annotate_hour_log(r) for r in records]


VIEW_POST_PROCESSORS: Dict[str, Callable[[List[Record], Session], List[Record]]] = {
    USERS: _without_current_user,
    HOUR_LOGS: _with_decimal_hours,
}


class DataStore:
    def __init__(
        self,
        client: Any,
        auth: AuthStateProvider,
        ttls: Optional[Dict[str, float]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._auth = auth
        self._clock = clock
        view_ttls = {**settings.view_ttls, **(ttls or {})}
        self._cache: Dict[str, CacheEntry] = {
            name: CacheEntry(ttl=view_ttls[name]) for name in VIEW_NAMES
        }
        self.containers: Dict[str, Observable[List[Record]]] = {
            name: Observable([]) for name in VIEW_NAMES
        }
        self.is_loading: Observable[bool] = Observable(False)
        self.error: Observable[Optional[str]] = Observable(None)
        self._inflight = 0
        # Cached views belong to one user; any change of user drops them.
        self._owner: Optional[str] = auth.state.get().user_id
        auth.state.subscribe(self._on_auth_state)

    def _on_auth_state(self, state: AuthState) -> None:
        if state.user_id == self._owner:
            return
        logger.debug("DataStore: Session user changed from %s to %s, dropping cache", self._owner, state.user_id)
        self._owner = state.user_id
        self.reset()

    def _entry(self, view: str) -> CacheEntry:
        entry = self._cache.get(view)
        if entry is None:
            raise InvalidInput(f"Unknown data view: {view}")
        return entry

    def entry(self, view: str) -> CacheEntry:
        """Snapshot of a view's cache entry."""
        return dataclasses.replace(self._entry(view))

    def container(self, view: str) -> Observable[List[Record]]:
        self._entry(view)
        return self.containers[view]

    def _loading_started(self) -> None:
        self._inflight += 1
        self.is_loading.set(True)

    def _loading_finished(self) -> None:
        self._inflight -= 1
        if self._inflight == 0:
            self.is_loading.set(False)

    async def _query(self, view: str, session: Session) -> List[Record]:
        query = VIEW_QUERIES[view]
        record_filter = None
        if query.filter:
            record_filter = query.filter.format(user=quote_filter_value(session.user.id))
        records = await self._client.get_full_list(
            query.collection,
            filter=record_filter,
            sort=query.sort,
            expand=query.expand,
        )
        post_process = VIEW_POST_PROCESSORS.get(view)
        return post_process(records, session) if post_process else records

    async def fetch(self, view: str, force_refresh: bool = False) -> List[Record]:
        entry = self._entry(view)
        container = self.containers[view]

        if not force_refresh and entry.is_fresh(self._clock()):
            logger.debug("DataStore: Using cached data for %s", view)
            container.set(entry.data)
            return entry.data

        session = self._auth.require_session()

        self._loading_started()
        self.error.set(None)
        try:
            logger.debug("DataStore: Fetching fresh data for %s", view)
            data = await self._query(view, session)
            if session.user.id != self._owner:
                logger.debug("DataStore: Discarding %s fetched for a previous session", view)
                return data
            entry.data = data
            entry.fetched_at = self._clock()
            container.set(data)
            return data
        except (UpstreamFailure, NetworkException) as e:
            logger.error("DataStore: Error fetching %s: %s", view, e)
            self.error.set(str(e))
            if entry.data is not None:
                logger.warning("DataStore: Using stale cached data for %s due to error", view)
                container.set(entry.data)
                return entry.data
            raise
        finally:
            self._loading_finished()

    async def fetch_customers(self, force_refresh: bool = False) -> List[Record]:
        return await self.fetch(CUSTOMERS, force_refresh)

    async def fetch_messages(self, force_refresh: bool = False) -> List[Record]:
        return await self.fetch(MESSAGES, force_refresh)

    async def fetch_read_messages(self, force_refresh: bool = False) -> List[Record]:
        return await self.fetch(READ_MESSAGES, force_refresh)

    async def fetch_archived_messages(self, force_refresh: bool = False) -> List[Record]:
        return await self.fetch(ARCHIVED_MESSAGES, force_refresh)

    async def fetch_users(self, force_refresh: bool = False) -> List[Record]:
        return await self.fetch(USERS, force_refresh)

    async def fetch_hour_logs(self, force_refresh: bool = False) -> List[Record]:
        return await self.fetch(HOUR_LOGS, force_refresh)

    async def assigned_customers(
        self, user_id: Optional[str] = None, force_refresh: bool = False
    ) -> List[Record]:
        """
        Customers the user may log time against. Admins see every customer.
        The assignment lookup is not cached; only the customer list underneath is.
        """
        all_customers = await self.fetch(CUSTOMERS, force_refresh)
        session = self._auth.require_session()
        if session.user.is_admin:
            return all_customers

        assignments = await self._client.get_full_list(
            ASSIGNMENTS_COLLECTION,
            filter=f"user = {quote_filter_value(user_id or session.user.id)}",
            fields="kunde",
        )
        assigned_ids = {a.get("kunde") for a in assignments if a.get("kunde")}
        if not assigned_ids:
            return []
        return [c for c in all_customers if c.get("id") in assigned_ids]

    def invalidate(self, view: str) -> None:
        self._entry(view).fetched_at = 0.0
        logger.debug("DataStore: Invalidated cache for %s", view)

    def clear(self, view: Optional[str] = None) -> None:
        views = [view] if view else list(VIEW_NAMES)
        for name in views:
            entry = self._entry(name)
            entry.data = None
            entry.fetched_at = 0.0
        logger.debug("DataStore: Cleared cache for %s", view or "all views")

    async def refresh(self, view: str) -> List[Record]:
        return await self.fetch(view, force_refresh=True)

    def reset(self) -> None:
        """Drops every cached entry and empties the containers, e.g. after logout."""
        self.clear()
        for container in self.containers.values():
            container.set([])
        self.error.set(None)
