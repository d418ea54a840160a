"""Shared fakes for the client data layer tests."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import pytest
from jose import jwt

from timesync_client.context import create_context
from timesync_client.token_store import TokenStore

ALICE = {"id": "usr_alice", "name": "Alice", "email": "alice@example.com", "admin": False}
BOSS = {"id": "usr_boss", "name": "Boss", "email": "boss@example.com", "role": "admin"}


def make_token(user_id: str = ALICE["id"], expires_in: float = 3600) -> str:
    return jwt.encode({"id": user_id, "exp": int(time.time() + expires_in)}, "test-secret", algorithm="HS256")


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend:
    """In-memory stand-in for PocketBaseClient that records every call."""

    def __init__(self, token_store: TokenStore | None = None):
        self.auth_store = token_store or TokenStore()
        self.records: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[Any, ...]] = []
        # Keyed by "method" or "method:collection"
        self.exceptions: dict[str, Exception] = {}
        self.gate: asyncio.Event | None = None
        self.users: dict[str, dict[str, Any]] = {}
        self.refresh_token_value = "refreshed-token"

    def _maybe_raise(self, method: str, collection: str | None = None) -> None:
        for key in (f"{method}:{collection}", method):
            if key in self.exceptions:
                raise self.exceptions[key]

    async def _wait_gate(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    def calls_to(self, method: str, collection: str | None = None) -> list[tuple[Any, ...]]:
        return [
            c for c in self.calls
            if c[0] == method and (collection is None or c[1] == collection)
        ]

    async def get_full_list(self, collection, filter=None, sort=None, expand=None, fields=None):
        self.calls.append(("get_full_list", collection, filter, sort, expand, fields))
        await self._wait_gate()
        self._maybe_raise("get_full_list", collection)
        return [dict(r) for r in self.records.get(collection, [])]

    async def get_one(self, collection, record_id, expand=None):
        self.calls.append(("get_one", collection, record_id))
        await self._wait_gate()
        self._maybe_raise("get_one", collection)
        return dict(self.users.get(record_id, {"id": record_id}))

    async def create(self, collection, data):
        self.calls.append(("create", collection, data))
        self._maybe_raise("create", collection)
        return {"id": f"new_{len(self.calls)}", **data}

    async def update(self, collection, record_id, data):
        self.calls.append(("update", collection, record_id, data))
        self._maybe_raise("update", collection)
        return {"id": record_id, **data}

    async def delete(self, collection, record_id):
        self.calls.append(("delete", collection, record_id))
        self._maybe_raise("delete", collection)

    async def auth_with_password(self, identity, password):
        self.calls.append(("auth_with_password", identity))
        await self._wait_gate()
        self._maybe_raise("auth_with_password")
        record = next(
            (u for u in self.users.values() if u.get("email") == identity),
            {**ALICE, "email": identity},
        )
        result = {"token": make_token(record["id"]), "record": dict(record)}
        self.auth_store.save(result["token"], result["record"])
        return result

    async def auth_refresh(self):
        self.calls.append(("auth_refresh",))
        self._maybe_raise("auth_refresh")
        result = {"token": self.refresh_token_value, "record": dict(self.auth_store.record or {})}
        self.auth_store.save(result["token"], result["record"])
        return result


@pytest.fixture
def backend() -> FakeBackend:
    fake = FakeBackend()
    fake.users = {ALICE["id"]: dict(ALICE), BOSS["id"]: dict(BOSS)}
    return fake


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ctx(backend, clock):
    return create_context(client=backend, clock=clock)


async def sign_in(ctx, user: dict[str, Any] = ALICE):
    """Logs in through the auth provider and forgets the login call."""
    session = await ctx.auth.login(user["email"], "secret")
    ctx.client.calls.clear()
    return session
