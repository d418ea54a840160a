# src/timesync_client/context.py

"""
Process-wide wiring of the client data layer.

One AppContext owns the PocketBase client, the auth provider, the data store and the
mutators. Components receive it (or its parts) explicitly instead of importing
module-level globals, so tests can build a fresh context per case.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .auth_store import AuthStateProvider
from .config import Settings, settings as default_settings
from .data_store import DataStore
from .mutators import Mutators
from .pocketbase_client import PocketBaseClient
from .token_store import TokenStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    client: Any
    auth: AuthStateProvider
    data: DataStore
    mutators: Mutators

    async def start(self) -> None:
        """Restores the persisted session and starts the periodic token refresh."""
        await self.auth.initialize()
        self.auth.start_auto_refresh(self.settings.AUTH_REFRESH_INTERVAL_SECONDS)

    def logout(self) -> None:
        self.auth.logout()
        self.data.reset()

    def reset(self) -> None:
        """Back to a clean slate: no session in memory, no cached data."""
        self.auth.stop_auto_refresh()
        self.auth.reset()
        self.data.reset()

    async def aclose(self) -> None:
        self.auth.stop_auto_refresh()
        close = getattr(self.client, "aclose", None)
        if close is not None:
            await close()


def create_context(
    settings: Optional[Settings] = None,
    client: Any = None,
    ttls: Optional[Dict[str, float]] = None,
    clock: Callable[[], float] = time.time,
) -> AppContext:
    settings = settings or default_settings
    if client is None:
        client = PocketBaseClient(
            base_url=settings.POCKETBASE_URL,
            token_store=TokenStore(settings.TOKEN_FILE),
            page_size=settings.PAGE_SIZE,
            timeout_seconds=settings.HTTP_TIMEOUT_SECONDS,
        )
    auth = AuthStateProvider(client, refresh_interval_seconds=settings.AUTH_REFRESH_INTERVAL_SECONDS)
    data = DataStore(client, auth, ttls={**settings.view_ttls, **(ttls or {})}, clock=clock)
    mutators = Mutators(client, auth, data)
    logger.debug("Context: Created client context for %s", settings.POCKETBASE_URL)
    return AppContext(settings=settings, client=client, auth=auth, data=data, mutators=mutators)
