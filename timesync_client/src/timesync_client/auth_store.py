# src/timesync_client/auth_store.py

import asyncio
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .config import settings
from .errors import (
    AuthRequired,
    ConcurrentOperation,
    InvalidCredentials,
    InvalidInput,
    TimesyncError,
    UpstreamFailure,
)
from .observable import Observable
from .pocketbase_client import USERS_COLLECTION
from .session_data import AuthPhase, AuthState, Session, UserRecord

logger = logging.getLogger(__name__)

BUSY_PHASES = (AuthPhase.INITIALIZING, AuthPhase.REFRESHING, AuthPhase.LOGGING_IN)

# Statuses PocketBase uses to reject an identity/password pair.
REJECTED_CREDENTIAL_STATUSES = (400, 401, 403)


class AuthStateProvider:
    """
    Owns the single Session of this client and publishes every transition on `state`.

    Only one of initialize, login and refresh runs at a time. Concurrent initialize()
    callers share the in-flight run; a login or refresh started while another exclusive
    operation is running fails with ConcurrentOperation.
    """

    def __init__(self, client: Any, refresh_interval_seconds: Optional[float] = None):
        self._client = client
        self.state: Observable[AuthState] = Observable(AuthState())
        self._initialized = False
        self._init_future: Optional[asyncio.Future] = None
        self._busy: Optional[AuthPhase] = None
        self._refresh_interval = refresh_interval_seconds or settings.AUTH_REFRESH_INTERVAL_SECONDS
        self._refresh_task: Optional[asyncio.Task] = None

    # --- Derived projections ---

    @property
    def session(self) -> Optional[Session]:
        return self.state.get().session

    @property
    def user(self) -> Optional[UserRecord]:
        session = self.session
        return session.user if session else None

    @property
    def is_authenticated(self) -> bool:
        return self.state.get().is_authenticated

    @property
    def is_admin(self) -> bool:
        return self.state.get().is_admin

    @property
    def in_progress(self) -> bool:
        return self._busy is not None

    def require_session(self) -> Session:
        session = self.session
        if session is None:
            raise AuthRequired()
        return session

    # --- State transitions ---

    def _begin(self, phase: AuthPhase) -> None:
        self._busy = phase
        self.state.set(self.state.get().model_copy(update={"phase": phase, "error": None}))

    def _end(self) -> None:
        self._busy = None
        current = self.state.get()
        if current.phase in BUSY_PHASES:
            settled = AuthPhase.AUTHENTICATED if current.session else AuthPhase.UNAUTHENTICATED
            self.state.set(current.model_copy(update={"phase": settled}))

    def _set_session(self, token: str, record: Dict[str, Any]) -> Session:
        try:
            user = UserRecord.model_validate(record)
        except ValidationError as e:
            raise UpstreamFailure(500, f"Authentication failed - invalid user record: {e}") from e
        session = Session(token=token, user=user)
        self.state.set(AuthState(session=session, phase=AuthPhase.AUTHENTICATED))
        logger.info("AuthStore: User authenticated: %s", session.user.display_name)
        return session

    def _clear_session(self, error: Optional[str] = None) -> None:
        self.state.set(AuthState(phase=AuthPhase.UNAUTHENTICATED, error=error))

    # --- Operations ---

    async def initialize(self) -> Optional[UserRecord]:
        """
        Restores the persisted session if the backend still accepts it.
        Safe to call from many places at once: they all await the same probe.
        """
        if self._init_future is not None:
            return await asyncio.shield(self._init_future)
        if self._busy is not None or self._initialized:
            return self.user

        self._begin(AuthPhase.INITIALIZING)
        self._init_future = asyncio.ensure_future(self._perform_initialization())
        try:
            result = await asyncio.shield(self._init_future)
            self._initialized = True
            return result
        finally:
            self._init_future = None

    async def _perform_initialization(self) -> Optional[UserRecord]:
        store = self._client.auth_store
        try:
            record = store.record or {}
            if not store.is_valid or not record.get("id"):
                self._clear_session()
                return None
            try:
                fresh = await self._client.get_one(USERS_COLLECTION, record["id"])
                session = self._set_session(store.token, fresh if isinstance(fresh, dict) else record)
            except TimesyncError as e:
                logger.warning("AuthStore: Auth token verification failed: %s", e)
                store.clear()
                self._clear_session()
                return None
            return session.user
        finally:
            self._end()

    async def login(self, identifier: str, secret: str) -> Session:
        if self._busy is not None:
            raise ConcurrentOperation("Login already in progress")
        if not identifier or not identifier.strip() or not secret:
            raise InvalidInput("Email and password are required")

        self._begin(AuthPhase.LOGGING_IN)
        try:
            try:
                result = await self._client.auth_with_password(identifier.strip(), secret)
            except UpstreamFailure as e:
                if e.status in REJECTED_CREDENTIAL_STATUSES:
                    raise InvalidCredentials(e.message) from e
                raise
            session = self._set_session(result["token"], result["record"])
            self._initialized = True
            return session
        except TimesyncError as e:
            logger.warning("AuthStore: Login error: %s", e)
            self._clear_session(error=str(e))
            raise
        finally:
            self._end()

    def logout(self) -> None:
        """Drops the session locally no matter what; token cleanup problems are only logged."""
        try:
            self._client.auth_store.clear()
        except Exception:
            logger.exception("AuthStore: Could not clear persisted token during logout")
        finally:
            self._initialized = False
            self._clear_session()
            logger.info("AuthStore: User logged out")

    async def refresh(self) -> bool:
        """Renews the token. A rejected refresh logs the user out and returns False."""
        if not self._client.auth_store.is_valid:
            return False
        if self._busy is not None:
            raise ConcurrentOperation("Another authentication operation is in progress")

        self._begin(AuthPhase.REFRESHING)
        try:
            result = await self._client.auth_refresh()
            self._set_session(result["token"], result["record"])
            return True
        except TimesyncError as e:
            logger.warning("AuthStore: Auth refresh failed: %s", e)
            self.logout()
            return False
        finally:
            self._end()

    def reset(self) -> None:
        """Forgets the in-memory session; the persisted token is left alone."""
        self._initialized = False
        self._clear_session()

    # --- Periodic refresh ---

    def start_auto_refresh(self, interval_seconds: Optional[float] = None) -> asyncio.Task:
        if self._refresh_task is not None and not self._refresh_task.done():
            return self._refresh_task
        interval = interval_seconds or self._refresh_interval
        self._refresh_task = asyncio.create_task(self._refresh_loop(interval))
        return self._refresh_task

    def stop_auto_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def _refresh_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except ConcurrentOperation:
                logger.debug("AuthStore: Skipping scheduled refresh, another auth operation is running")
            except Exception:
                logger.exception("AuthStore: Scheduled refresh failed")
