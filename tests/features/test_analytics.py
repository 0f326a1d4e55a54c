"""
Test Analytics

This module tests the analytics reductions and the analytics route.
"""

import asyncio
from datetime import timedelta

import pytest

from tests.helpers import T0, TEST_USER
from timekeep.features.analytics.aggregation import (
    aggregate_by_activity,
    aggregate_by_day,
    aggregate_by_project,
    completed,
    filter_by_range,
    summarize,
)
from timekeep.shared.clock import utcnow
from timekeep.shared.models import Activity, Client, EntryContext, Project, TimeEntry, ViewMetric

CLIENT = Client(id="c1", user_id=TEST_USER, name="Acme", hourly_rate=100)
SITE = Project(id="p1", user_id=TEST_USER, name="Website", client_id="c1", color="#111111")
APP = Project(id="p2", user_id=TEST_USER, name="App", client_id="c1", hourly_rate=10)
DEV = Activity(id="a1", user_id=TEST_USER, name="Development", project_id="p1")
QA = Activity(id="a2", user_id=TEST_USER, name="QA", project_id="p2")

_counter = iter(range(1000))


def context(activity, project, seconds, days_ago=0, running=False):
    start = T0 - timedelta(days=days_ago)
    entry = TimeEntry(
        id=f"e{next(_counter)}",
        user_id=TEST_USER,
        activity_id=activity.id,
        start_time=start,
        end_time=None if running else start + timedelta(seconds=seconds),
        duration=seconds,
        is_running=running,
    )
    return EntryContext(entry=entry, activity=activity, project=project, client=CLIENT)


@pytest.fixture
def contexts():
    return [
        context(DEV, SITE, 3600),               # $100
        context(DEV, SITE, 1800, days_ago=1),   # $50
        context(QA, APP, 7200, days_ago=1),     # $20
        context(QA, APP, 999, running=True),    # ignored
        context(DEV, SITE, 3600, days_ago=40),  # outside 30 days
    ]


def test_running_entries_are_not_folded(contexts):
    assert len(completed(contexts)) == 4
    assert summarize(contexts).entry_count == 4


def test_filter_by_range(contexts):
    assert len(filter_by_range(contexts, 7, now=T0)) == 3
    assert len(filter_by_range(contexts, 90, now=T0)) == 4
    with pytest.raises(ValueError):
        filter_by_range(contexts, 0, now=T0)


def test_by_project_sorted_by_metric(contexts):
    window = filter_by_range(contexts, 7, now=T0)

    by_time = aggregate_by_project(window, ViewMetric.TIME)
    by_money = aggregate_by_project(window, ViewMetric.EARNINGS)

    assert [s.name for s in by_time] == ["App", "Website"]
    assert [s.name for s in by_money] == ["Website", "App"]
    website = by_money[0]
    assert website.time == 5400
    assert website.earnings == pytest.approx(150.0)
    assert website.entries == 2
    assert website.color == "#111111"


def test_by_day(contexts):
    window = filter_by_range(contexts, 7, now=T0)

    stats = aggregate_by_day(window, ViewMetric.TIME)

    assert [(s.key, s.time, s.entries) for s in stats] == [("2024-01-14", 9000, 2), ("2024-01-15", 3600, 1)]
    assert stats[1].name == "1/15/2024"
    by_money = aggregate_by_day(window, ViewMetric.EARNINGS)
    assert [s.key for s in by_money] == ["2024-01-15", "2024-01-14"]


def test_by_activity_limit(contexts):
    stats = aggregate_by_activity(contexts, ViewMetric.TIME, limit=1)

    assert len(stats) == 1
    assert stats[0].name == "Development"
    assert stats[0].project_name == "Website"
    assert len(aggregate_by_activity(contexts, limit=None)) == 2


def test_summary(contexts):
    summary = summarize(filter_by_range(contexts, 7, now=T0))

    assert summary.total_time == 12600
    assert summary.total_earnings == pytest.approx(170.0)
    assert summary.entry_count == 3
    assert summary.average_session == 4200
    assert summary.average_hourly_rate == pytest.approx(170.0 / 3.5)


def test_empty_summary():
    summary = summarize([])

    assert summary.total_time == 0
    assert summary.average_session == 0
    assert summary.average_hourly_rate == 0.0


def test_analytics_route(test_client, headers, tree, store):
    _, _, activity = tree
    now = utcnow()
    asyncio.run(store.insert_entry(
        TEST_USER, activity.id, now - timedelta(hours=3), end_time=now - timedelta(hours=1), duration=7200
    ))

    response = test_client.get("/api/analytics?days=7&metric=earnings", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["metric"] == "earnings"
    assert data["summary"]["total_time"] == 7200
    assert data["summary"]["total_earnings_formatted"] == "$200.00"
    assert data["summary"]["total_time_formatted"] == "2h 0m 0s"
    assert data["by_project"][0]["name"] == "Website"
    assert data["by_activity"][0]["entries"] == 1


def test_analytics_route_validates_query(test_client, headers):
    assert test_client.get("/api/analytics?days=0", headers=headers).status_code == 422
    assert test_client.get("/api/analytics?metric=sessions", headers=headers).status_code == 422

def test_analytics_route_groups_days_in_requested_timezone(test_client, headers, tree, store):
    _, _, activity = tree
    start = (utcnow() - timedelta(days=2)).replace(hour=2, minute=0, second=0, microsecond=0)
    asyncio.run(store.insert_entry(
        TEST_USER, activity.id, start, end_time=start + timedelta(hours=1), duration=3600
    ))

    utc_days = test_client.get("/api/analytics", headers=headers).json()["by_day"]
    local_days = test_client.get("/api/analytics?tz=Pacific/Honolulu", headers=headers).json()["by_day"]

    assert utc_days[0]["key"] == start.date().isoformat()
    assert local_days[0]["key"] == (start.date() - timedelta(days=1)).isoformat()
    assert test_client.get("/api/analytics?tz=Mars/Olympus", headers=headers).status_code == 422
