from __future__ import annotations

import asyncio

import pytest

from conftest import ALICE, BOSS, sign_in
from timesync_client.data_store import (
    ARCHIVED_MESSAGES,
    CUSTOMERS,
    HOUR_LOGS,
    MESSAGES,
    USERS,
    VIEW_NAMES,
)
from timesync_client.errors import AuthRequired, InvalidInput, NetworkException, UpstreamFailure

CUSTOMER_ROWS = [
    {"id": "c1", "navn": "Andersen ApS"},
    {"id": "c2", "navn": "Bager Hansen"},
    {"id": "c3", "navn": "Cykel Co"},
]


@pytest.fixture
def seeded(backend):
    backend.records["kunder"] = [dict(c) for c in CUSTOMER_ROWS]
    backend.records["messages"] = [{"id": "m1", "recipient": ALICE["id"], "read": False}]
    backend.records["users"] = [dict(ALICE), dict(BOSS)]
    backend.records["log"] = [
        {"id": "l1", "start_time": "08:00", "end_time": "09:30", "kunde": "c1"},
        {"id": "l2", "totalsum": 0.75, "kunde": "c2"},
    ]
    return backend


@pytest.mark.asyncio
async def test_fetch_within_ttl_makes_no_remote_call(ctx, seeded, clock):
    await sign_in(ctx)
    first = await ctx.data.fetch(CUSTOMERS)
    clock.advance(60)
    second = await ctx.data.fetch(CUSTOMERS)

    assert second is first
    assert len(seeded.calls_to("get_full_list", "kunder")) == 1


@pytest.mark.asyncio
async def test_fetch_after_ttl_makes_exactly_one_call(ctx, seeded, clock):
    await sign_in(ctx)
    await ctx.data.fetch(CUSTOMERS)
    clock.advance(ctx.data.entry(CUSTOMERS).ttl)
    await ctx.data.fetch(CUSTOMERS)

    assert len(seeded.calls_to("get_full_list", "kunder")) == 2


@pytest.mark.asyncio
async def test_views_expire_independently(ctx, seeded, clock):
    await sign_in(ctx)
    await ctx.data.fetch(MESSAGES)
    await ctx.data.fetch(CUSTOMERS)
    clock.advance(45)
    await ctx.data.fetch(MESSAGES)
    await ctx.data.fetch(CUSTOMERS)

    assert len(seeded.calls_to("get_full_list", "messages")) == 2
    assert len(seeded.calls_to("get_full_list", "kunder")) == 1


@pytest.mark.asyncio
async def test_invalidate_forces_remote_call_within_ttl(ctx, seeded):
    await sign_in(ctx)
    await ctx.data.fetch(CUSTOMERS)
    ctx.data.invalidate(CUSTOMERS)

    assert ctx.data.entry(CUSTOMERS).data is not None
    await ctx.data.fetch(CUSTOMERS)
    assert len(seeded.calls_to("get_full_list", "kunder")) == 2


@pytest.mark.asyncio
async def test_force_refresh_bypasses_fresh_entry(ctx, seeded):
    await sign_in(ctx)
    await ctx.data.fetch_customers()
    await ctx.data.fetch_customers(force_refresh=True)
    await ctx.data.refresh(CUSTOMERS)

    assert len(seeded.calls_to("get_full_list", "kunder")) == 3


@pytest.mark.asyncio
async def test_failed_refresh_serves_stale_data(ctx, seeded):
    await sign_in(ctx)
    original = await ctx.data.fetch(CUSTOMERS)
    ctx.data.invalidate(CUSTOMERS)
    ctx.data.containers[CUSTOMERS].set([])
    seeded.exceptions["get_full_list"] = UpstreamFailure(502, "bad gateway")

    result = await ctx.data.fetch(CUSTOMERS)

    assert result == original
    assert ctx.data.containers[CUSTOMERS].get() == original
    assert ctx.data.error.get() == "502: bad gateway"
    assert ctx.data.is_loading.get() is False


@pytest.mark.asyncio
async def test_network_failure_without_prior_entry_propagates(ctx, seeded):
    await sign_in(ctx)
    seeded.exceptions["get_full_list"] = NetworkException("offline")

    with pytest.raises(NetworkException):
        await ctx.data.fetch(HOUR_LOGS)
    assert ctx.data.error.get() == "offline"


@pytest.mark.asyncio
async def test_clear_removes_fallback(ctx, seeded):
    await sign_in(ctx)
    await ctx.data.fetch(CUSTOMERS)
    ctx.data.clear(CUSTOMERS)
    seeded.exceptions["get_full_list"] = UpstreamFailure(500, "down")

    with pytest.raises(UpstreamFailure):
        await ctx.data.fetch(CUSTOMERS)


@pytest.mark.asyncio
async def test_clear_all_views(ctx, seeded):
    await sign_in(ctx)
    await ctx.data.fetch(CUSTOMERS)
    await ctx.data.fetch(MESSAGES)
    ctx.data.clear()

    assert all(ctx.data.entry(view).data is None for view in VIEW_NAMES)


@pytest.mark.asyncio
async def test_fetch_requires_session(ctx, seeded):
    with pytest.raises(AuthRequired):
        await ctx.data.fetch(CUSTOMERS)
    assert seeded.calls == []


@pytest.mark.asyncio
async def test_unknown_view_rejected(ctx):
    with pytest.raises(InvalidInput):
        await ctx.data.fetch("invoices")


@pytest.mark.asyncio
async def test_message_views_filter_on_current_user(ctx, seeded):
    await sign_in(ctx)
    await ctx.data.fetch_messages()
    await ctx.data.fetch_read_messages()
    await ctx.data.fetch_archived_messages()

    filters = [c[2] for c in seeded.calls_to("get_full_list", "messages")]
    assert filters == [
        'recipient = "usr_alice" && archived = false && read = false',
        'recipient = "usr_alice" && archived = false && read = true',
        'recipient = "usr_alice" && archived = true',
    ]
    assert all(c[3] == "-created" and c[4] == "sender" for c in seeded.calls_to("get_full_list", "messages"))
    assert ctx.data.containers[ARCHIVED_MESSAGES].get() == seeded.records["messages"]


@pytest.mark.asyncio
async def test_users_view_excludes_current_user(ctx, seeded):
    await sign_in(ctx)
    users = await ctx.data.fetch_users()

    assert [u["id"] for u in users] == [BOSS["id"]]
    assert ctx.data.containers[USERS].get() == users


@pytest.mark.asyncio
async def test_hour_logs_carry_decimal_hours(ctx, seeded):
    await sign_in(ctx)
    logs = await ctx.data.fetch_hour_logs()

    assert [log["decimal_hours"] for log in logs] == [1.5, 0.75]
    call = seeded.calls_to("get_full_list", "log")[0]
    assert call[3] == "-dato" and call[4] == "kunde"


@pytest.mark.asyncio
async def test_assigned_customers_for_admin_is_unfiltered(ctx, seeded):
    await sign_in(ctx, BOSS)
    customers = await ctx.data.assigned_customers()

    assert customers == await ctx.data.fetch(CUSTOMERS)
    assert seeded.calls_to("get_full_list", "user_customer_assignments") == []


@pytest.mark.asyncio
async def test_assigned_customers_joins_assignments_every_call(ctx, seeded):
    seeded.records["user_customer_assignments"] = [{"kunde": "c1"}, {"kunde": "c3"}]
    await sign_in(ctx)

    first = await ctx.data.assigned_customers()
    second = await ctx.data.assigned_customers()

    assert [c["id"] for c in first] == ["c1", "c3"]
    assert second == first
    assignment_calls = seeded.calls_to("get_full_list", "user_customer_assignments")
    assert len(assignment_calls) == 2
    assert assignment_calls[0][2] == 'user = "usr_alice"'
    assert assignment_calls[0][5] == "kunde"
    assert len(seeded.calls_to("get_full_list", "kunder")) == 1


@pytest.mark.asyncio
async def test_assigned_customers_without_assignments_is_empty(ctx, seeded):
    await sign_in(ctx)
    assert await ctx.data.assigned_customers() == []


@pytest.mark.asyncio
async def test_cache_hit_republishes_to_container(ctx, seeded):
    await sign_in(ctx)
    data = await ctx.data.fetch(CUSTOMERS)
    seen = []
    ctx.data.containers[CUSTOMERS].subscribe(seen.append)
    await ctx.data.fetch(CUSTOMERS)

    assert seen == [data, data]
    assert ctx.data.is_loading.get() is False


@pytest.mark.asyncio
async def test_rejected_refresh_drops_previous_users_views(ctx, seeded):
    seeded.records["messages"] = [{"id": "m_secret", "recipient": ALICE["id"]}]
    await sign_in(ctx)
    await ctx.data.fetch(MESSAGES)
    seeded.exceptions["auth_refresh"] = UpstreamFailure(401, "expired")
    assert await ctx.auth.refresh() is False
    del seeded.exceptions["auth_refresh"]

    assert ctx.data.entry(MESSAGES).data is None
    assert ctx.data.containers[MESSAGES].get() == []

    await sign_in(ctx, BOSS)
    await ctx.data.fetch(MESSAGES)
    boss_calls = seeded.calls_to("get_full_list", "messages")
    assert len(boss_calls) == 1
    assert boss_calls[0][2].startswith('recipient = "usr_boss"')


@pytest.mark.asyncio
async def test_login_as_other_user_drops_cached_views(ctx, seeded):
    await sign_in(ctx)
    await ctx.data.fetch(CUSTOMERS)
    await ctx.data.fetch(HOUR_LOGS)

    await sign_in(ctx, BOSS)

    assert all(ctx.data.entry(view).data is None for view in VIEW_NAMES)


@pytest.mark.asyncio
async def test_token_refresh_for_same_user_keeps_cache(ctx, seeded):
    await sign_in(ctx)
    cached = await ctx.data.fetch(CUSTOMERS)
    assert await ctx.auth.refresh() is True

    assert await ctx.data.fetch(CUSTOMERS) is cached
    assert len(seeded.calls_to("get_full_list", "kunder")) == 1


@pytest.mark.asyncio
async def test_fetch_finishing_after_logout_is_not_cached(ctx, seeded):
    await sign_in(ctx)
    seeded.gate = asyncio.Event()
    pending = asyncio.ensure_future(ctx.data.fetch(MESSAGES))
    await asyncio.sleep(0)

    ctx.auth.logout()
    seeded.gate.set()
    await pending

    assert ctx.data.entry(MESSAGES).data is None
    assert ctx.data.containers[MESSAGES].get() == []
