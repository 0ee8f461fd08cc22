"""Tests for the SQLite storage layer."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from autoflow.storage import (
    IntegrityError,
    StatusRegressionError,
    StorageError,
    clear_expired_cache,
    create_execution,
    create_workflow,
    delete_cache_value,
    get_all_executions,
    get_all_workflows,
    get_cache_value,
    get_execution,
    get_workflow,
    set_cache_value,
    update_execution,
)


# -----------------------------------------------------------------------------
# Executions
# -----------------------------------------------------------------------------


def test_create_execution_assigns_id_and_defaults(conn):
    record = create_execution(conn, {"input": {"prompt": "hi"}})

    assert record.id
    assert record.status == "pending"
    assert record.input == {"prompt": "hi"}
    assert record.execution_time == 0
    assert record.created_at


def test_create_execution_duplicate_id(conn):
    create_execution(conn, {"status": "running"}, execution_id="exec-1")
    with pytest.raises(IntegrityError):
        create_execution(conn, {"status": "running"}, execution_id="exec-1")


def test_create_execution_unknown_status(conn):
    with pytest.raises(StorageError):
        create_execution(conn, {"status": "paused"})


def test_update_execution_partial(conn):
    record = create_execution(conn, {"status": "running", "steps": [{"step": 1}]})

    updated = update_execution(conn, record.id, {"status": "completed", "output": {"ok": True}, "bogus": 1})

    assert updated.status == "completed"
    assert updated.output == {"ok": True}
    assert updated.steps == [{"step": 1}]
    assert get_execution(conn, record.id).status == "completed"


def test_update_execution_missing_returns_none(conn):
    assert update_execution(conn, "nope", {"status": "completed"}) is None


@pytest.mark.parametrize(
    "start,target",
    [("running", "pending"), ("completed", "running"), ("completed", "failed"), ("failed", "completed")],
)
def test_update_execution_status_never_regresses(conn, start, target):
    record = create_execution(conn, {"status": start})
    with pytest.raises(StatusRegressionError):
        update_execution(conn, record.id, {"status": target})
    assert get_execution(conn, record.id).status == start


def test_get_all_executions_most_recent_first(conn):
    ids = [create_execution(conn, {"status": "running"}).id for _ in range(3)]

    records = get_all_executions(conn)
    assert [r.id for r in records] == list(reversed(ids))
    assert len(get_all_executions(conn, limit=2)) == 2


def test_workflow_round_trip_and_link(conn):
    workflow = create_workflow(conn, {"plan": {"workflow": []}, "request": "do it", "source": "llm"})
    execution = create_execution(conn, {"status": "running", "workflow_id": workflow.id})

    assert get_workflow(conn, workflow.id).request == "do it"
    assert execution.workflow_id == workflow.id
    assert [w.id for w in get_all_workflows(conn)] == [workflow.id]


def test_create_workflow_requires_plan(conn):
    with pytest.raises(StorageError):
        create_workflow(conn, {"request": "x"})


# -----------------------------------------------------------------------------
# Cache
# -----------------------------------------------------------------------------


def test_cache_hit_within_ttl(conn):
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    set_cache_value(conn, "k", {"a": 1}, ttl_seconds=60, now=now)

    assert get_cache_value(conn, "k", now=now + timedelta(seconds=59)) == {"a": 1}


def test_cache_expired_entry_is_evicted_on_read(conn):
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    set_cache_value(conn, "k", {"a": 1}, ttl_seconds=60, now=now)

    assert get_cache_value(conn, "k", now=now + timedelta(seconds=60)) is None
    row = conn.execute("SELECT COUNT(*) FROM cache WHERE key = 'k'").fetchone()[0]
    assert row == 0


def test_cache_overwrite_replaces_value(conn):
    set_cache_value(conn, "k", 1)
    set_cache_value(conn, "k", 2)
    assert get_cache_value(conn, "k") == 2


def test_cache_without_ttl_never_expires(conn):
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    set_cache_value(conn, "k", "v", ttl_seconds=None, now=now)
    assert get_cache_value(conn, "k", now=now + timedelta(days=3650)) == "v"


def test_clear_expired_cache(conn):
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    set_cache_value(conn, "old", 1, ttl_seconds=10, now=now)
    set_cache_value(conn, "new", 2, ttl_seconds=1000, now=now)

    assert clear_expired_cache(conn, now=now + timedelta(seconds=30)) == 1
    assert get_cache_value(conn, "new", now=now + timedelta(seconds=30)) == 2


def test_delete_cache_value(conn):
    set_cache_value(conn, "k", 1)
    assert delete_cache_value(conn, "k") is True
    assert delete_cache_value(conn, "k") is False


# -----------------------------------------------------------------------------
# Async store
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_store_execution_lifecycle(store):
    record = await store.create_execution({"status": "running", "input": {"prompt": "p"}})
    updated = await store.update_execution(record.id, {"status": "failed", "execution_time": 12})

    assert updated.status == "failed"
    assert updated.execution_time == 12
    assert (await store.get_execution(record.id)).status == "failed"
    assert [r.id for r in await store.get_all_executions(limit=5)] == [record.id]


@pytest.mark.asyncio
async def test_store_cache(store):
    await store.set_cache_value("k", {"plan": 1}, 60)
    assert await store.get_cache_value("k") == {"plan": 1}
    assert await store.get_cache_value("missing") is None


@pytest.mark.asyncio
async def test_store_wraps_integrity_error(store):
    workflow = await store.create_workflow({"plan": {"workflow": []}})
    assert (await store.get_workflow(workflow.id)).plan == {"workflow": []}

    with pytest.raises(StorageError):
        await store.create_execution({"status": "running", "workflow_id": "missing-workflow"})


@pytest.mark.asyncio
async def test_memory_store_shares_connection():
    from autoflow.storage import SQLiteStore

    store = SQLiteStore(":memory:")
    try:
        record = await store.create_execution({"status": "running"})
        assert (await store.get_execution(record.id)) is not None
    finally:
        store.close()
