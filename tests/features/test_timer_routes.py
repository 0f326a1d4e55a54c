"""
Test Timer Routes and Registry

This module tests the timer HTTP surface including:
- Status with reconciliation
- Start/stop responses and error codes
- Detach
- One engine per user and activity
"""

import asyncio
from datetime import timedelta

import pytest

from tests.helpers import OTHER_USER, T0, TEST_USER, auth_headers
from timekeep.features.timer.registry import TimerRegistry


def store_running_entry(store, activity_id, seconds_ago):
    return asyncio.run(
        store.insert_entry(TEST_USER, activity_id, T0 - timedelta(seconds=seconds_ago), is_running=True)
    )


def test_status_of_idle_timer(test_client, headers, tree):
    _, _, activity = tree

    response = test_client.get(f"/api/timer/{activity.id}", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == "stopped"
    assert data["clock"] == "00:00:00"
    assert data["entry_id"] is None


def test_status_reconciles_running_entry(test_client, headers, tree, store):
    _, _, activity = tree
    entry = store_running_entry(store, activity.id, seconds_ago=125)

    response = test_client.get(f"/api/timer/{activity.id}", headers=headers)

    data = response.json()
    assert data["state"] == "running"
    assert data["entry_id"] == entry.id
    assert data["display_seconds"] == 125
    assert data["formatted"] == "2m 5s"
    assert data["clock"] == "00:02:05"


def test_start_and_stop(test_client, headers, tree, store, clock):
    _, _, activity = tree

    started = test_client.post(f"/api/timer/{activity.id}/start", headers=headers)
    assert started.status_code == 200
    assert started.json()["is_running"] is True

    clock.advance(3725)
    stopped = test_client.post(f"/api/timer/{activity.id}/stop", headers=headers)

    assert stopped.status_code == 200
    data = stopped.json()
    assert data["id"] == started.json()["id"]
    assert data["duration"] == 3725
    assert data["is_running"] is False
    assert store.running() == []


def test_only_running_timers_stay_registered(test_client, headers, tree, store):
    _, _, activity = tree
    timers = test_client.app.state.timers

    test_client.get(f"/api/timer/{activity.id}", headers=headers)
    assert len(timers) == 0

    test_client.post(f"/api/timer/{activity.id}/start", headers=headers)
    assert len(timers) == 1

    test_client.post(f"/api/timer/{activity.id}/stop", headers=headers)
    assert len(timers) == 0

    store.fail("insert_entry")
    test_client.post(f"/api/timer/{activity.id}/start", headers=headers)
    assert len(timers) == 0


def test_start_twice_conflicts(test_client, headers, tree):
    _, _, activity = tree
    test_client.post(f"/api/timer/{activity.id}/start", headers=headers)

    response = test_client.post(f"/api/timer/{activity.id}/start", headers=headers)

    assert response.status_code == 409


def test_stop_idle_timer_conflicts(test_client, headers, tree):
    _, _, activity = tree

    response = test_client.post(f"/api/timer/{activity.id}/stop", headers=headers)

    assert response.status_code == 409


def test_start_store_failure_asks_to_retry(test_client, headers, tree, store):
    _, _, activity = tree
    store.fail("insert_entry")

    response = test_client.post(f"/api/timer/{activity.id}/start", headers=headers)

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to start timer. Please try again."
    status = test_client.get(f"/api/timer/{activity.id}", headers=headers).json()
    assert status["state"] == "stopped"


def test_stop_store_failure_keeps_timer_running(test_client, headers, tree, store, clock):
    _, _, activity = tree
    test_client.post(f"/api/timer/{activity.id}/start", headers=headers)
    clock.advance(10)
    store.fail("update_entry")

    response = test_client.post(f"/api/timer/{activity.id}/stop", headers=headers)

    assert response.status_code == 502
    assert "still running" in response.json()["detail"]
    status = test_client.get(f"/api/timer/{activity.id}", headers=headers).json()
    assert status["state"] == "running"
    assert status["display_seconds"] == 10


def test_timer_of_other_users_activity_is_not_found(test_client, tree):
    _, _, activity = tree

    response = test_client.get(f"/api/timer/{activity.id}", headers=auth_headers(OTHER_USER))

    assert response.status_code == 404


def test_detach(test_client, headers, tree, store, clock):
    _, _, activity = tree
    started = test_client.post(f"/api/timer/{activity.id}/start", headers=headers).json()
    clock.advance(42)

    response = test_client.delete(f"/api/timer/{activity.id}", headers=headers)

    assert response.status_code == 200
    entry = store.entries[started["id"]]
    assert entry.is_running
    assert entry.duration == 42

    again = test_client.delete(f"/api/timer/{activity.id}", headers=headers)
    assert again.status_code == 404


def test_timer_requires_token(test_client, tree):
    _, _, activity = tree

    response = test_client.get(f"/api/timer/{activity.id}")

    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_registry_reuses_engine_per_user_and_activity(store, clock):
    registry = TimerRegistry(store, clock=clock, tick_interval=3600, checkpoint_interval=3600)

    first = await registry.get(TEST_USER, "a1")
    assert await registry.get(TEST_USER, "a1") is first
    assert await registry.get(OTHER_USER, "a1") is not first
    assert len(registry) == 2

    assert await registry.release(TEST_USER, "a1") is True
    assert await registry.release(TEST_USER, "a1") is False
    await registry.shutdown()
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_registry_reattach_picks_up_timer_started_elsewhere(store, clock):
    registry = TimerRegistry(store, clock=clock, tick_interval=3600, checkpoint_interval=3600)
    engine = await registry.get(TEST_USER, "a1")
    assert not engine.is_running

    entry = await store.insert_entry(TEST_USER, "a1", T0, is_running=True)
    engine = await registry.get(TEST_USER, "a1")

    assert engine.is_running
    assert engine.current_entry_id == entry.id
    await registry.shutdown()


@pytest.mark.asyncio
async def test_registry_release_activity_checkpoints_running_timer(store, clock):
    registry = TimerRegistry(store, clock=clock, tick_interval=3600, checkpoint_interval=3600)
    engine = await registry.get(TEST_USER, "a1")
    entry = await engine.start()
    clock.advance(75)

    await registry.release_activity("a1")

    assert len(registry) == 0
    assert store.entries[entry.id].duration == 75
    assert store.entries[entry.id].is_running


@pytest.mark.asyncio
async def test_registry_discards_only_idle_engines(store, clock):
    registry = TimerRegistry(store, clock=clock, tick_interval=3600, checkpoint_interval=3600)
    idle = await registry.get(TEST_USER, "a1")
    busy = await registry.get(TEST_USER, "a2")
    await busy.start()

    assert await registry.discard_idle(TEST_USER, "a1") is True
    assert await registry.discard_idle(TEST_USER, "a2") is False
    assert await registry.discard_idle(TEST_USER, "missing") is False

    assert idle.activity_id is None
    assert len(registry) == 1
    await registry.shutdown()
