"""
Test Helpers

Shared test doubles and builders: an in-memory entry store with failure
injection, a controllable clock, bearer token helpers and record seeding.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import jwt
from bson import ObjectId

from timekeep.shared import config
from timekeep.shared.clock import elapsed_seconds, utcnow
from timekeep.shared.errors import NotFound, StoreWriteError
from timekeep.shared.models import Activity, Client, EntryContext, Project, TimeEntry

config.JWT_SECRET = "timekeep-test-secret-0123456789abcdef"

TEST_USER = "test_user"
OTHER_USER = "other_user"
T0 = datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock returning a fixed instant until advanced."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeEntryStore:
    """
    In-memory stand-in for ``EntryStore``.

    ``fail(method)`` makes the next calls of a method raise; ``pause(method)``
    returns an event the method waits on, to hold an operation in flight.
    """

    def __init__(self):
        self.clients: Dict[str, Client] = {}
        self.projects: Dict[str, Project] = {}
        self.activities: Dict[str, Activity] = {}
        self.entries: Dict[str, TimeEntry] = {}
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.pauses: Dict[str, asyncio.Event] = {}

    def fail(self, method: str, error: Optional[Exception] = None) -> None:
        self.failures[method] = error or StoreWriteError(f"{method} failed")

    def recover(self, method: str) -> None:
        self.failures.pop(method, None)

    def pause(self, method: str) -> asyncio.Event:
        event = asyncio.Event()
        self.pauses[method] = event
        return event

    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        if method in self.pauses:
            await self.pauses.pop(method).wait()
        if method in self.failures:
            raise self.failures[method]

    def running(self, activity_id: Optional[str] = None) -> List[TimeEntry]:
        return [
            e for e in self.entries.values()
            if e.is_running and (activity_id is None or e.activity_id == activity_id)
        ]

    def _owned(self, records: Dict[str, Any], record_id: str, user_id: str, kind: str):
        record = records.get(record_id)
        if record is None or record.user_id != user_id:
            raise NotFound(f"{kind} {record_id} not found")
        return record

    # --- time entries ---

    async def insert_entry(self, user_id, activity_id, start_time, *, end_time=None, duration=0,
                           description=None, is_running=False):
        await self._enter("insert_entry")
        entry = TimeEntry(
            id=str(ObjectId()), user_id=user_id, activity_id=activity_id, start_time=start_time,
            end_time=end_time, duration=int(duration), description=description, is_running=is_running,
            created_at=utcnow(), updated_at=utcnow(),
        )
        self.entries[entry.id] = entry
        return entry

    async def update_entry(self, entry_id, user_id, fields):
        await self._enter("update_entry")
        entry = self._owned(self.entries, entry_id, user_id, "Time entry")
        updated = entry.model_copy(update={**fields, "updated_at": utcnow()})
        self.entries[entry_id] = updated
        return updated

    async def checkpoint_entry(self, entry_id, user_id, duration):
        await self._enter("checkpoint_entry")
        entry = self.entries.get(entry_id)
        if entry is None or entry.user_id != user_id or not entry.is_running:
            return False
        self.entries[entry_id] = entry.model_copy(update={"duration": int(duration)})
        return True

    async def close_running_entries(self, activity_id, user_id, now):
        await self._enter("close_running_entries")
        closed = []
        for entry in self.running(activity_id):
            if entry.user_id != user_id:
                continue
            duration = elapsed_seconds(entry.start_time, now)
            done = entry.model_copy(update={
                "is_running": False,
                "duration": duration,
                "end_time": entry.start_time + timedelta(seconds=duration),
            })
            self.entries[entry.id] = done
            closed.append(done)
        return closed

    async def find_running_entry(self, activity_id, user_id):
        await self._enter("find_running_entry")
        running = [e for e in self.running(activity_id) if e.user_id == user_id]
        return max(running, key=lambda e: e.start_time) if running else None

    async def get_entry(self, entry_id, user_id):
        await self._enter("get_entry")
        return self._owned(self.entries, entry_id, user_id, "Time entry")

    async def list_entries(self, user_id, activity_id=None):
        await self._enter("list_entries")
        entries = [
            e for e in self.entries.values()
            if e.user_id == user_id and (activity_id is None or e.activity_id == activity_id)
        ]
        return sorted(entries, key=lambda e: e.start_time, reverse=True)

    async def delete_entry(self, entry_id, user_id):
        await self._enter("delete_entry")
        self._owned(self.entries, entry_id, user_id, "Time entry")
        del self.entries[entry_id]

    async def insert_entries(self, user_id, payloads, batch_id):
        await self._enter("insert_entries")
        ids = []
        for payload in payloads:
            entry = TimeEntry(
                id=str(ObjectId()), user_id=user_id, is_running=False, import_batch=batch_id, **payload
            )
            self.entries[entry.id] = entry
            ids.append(entry.id)
        return ids

    async def delete_import_batch(self, user_id, batch_id):
        await self._enter("delete_import_batch")
        doomed = [k for k, e in self.entries.items() if e.user_id == user_id and e.import_batch == batch_id]
        for key in doomed:
            del self.entries[key]
        return len(doomed)

    # --- catalog ---

    async def create_client(self, user_id, data):
        await self._enter("create_client")
        client = Client(id=str(ObjectId()), user_id=user_id, **data)
        self.clients[client.id] = client
        return client

    async def list_clients(self, user_id):
        await self._enter("list_clients")
        return sorted((c for c in self.clients.values() if c.user_id == user_id), key=lambda c: c.name)

    async def get_client(self, client_id, user_id):
        await self._enter("get_client")
        return self._owned(self.clients, client_id, user_id, "Client")

    async def update_client(self, client_id, user_id, fields):
        await self._enter("update_client")
        client = self._owned(self.clients, client_id, user_id, "Client")
        self.clients[client_id] = client.model_copy(update=fields)
        return self.clients[client_id]

    async def delete_client(self, client_id, user_id):
        await self._enter("delete_client")
        self._owned(self.clients, client_id, user_id, "Client")
        for project in [p for p in self.projects.values() if p.client_id == client_id]:
            await self.delete_project(project.id, user_id)
        del self.clients[client_id]

    async def create_project(self, user_id, data):
        await self._enter("create_project")
        self._owned(self.clients, data["client_id"], user_id, "Client")
        project = Project(id=str(ObjectId()), user_id=user_id, **data)
        self.projects[project.id] = project
        return project

    async def list_projects(self, user_id, client_id=None):
        await self._enter("list_projects")
        projects = [
            p for p in self.projects.values()
            if p.user_id == user_id and (client_id is None or p.client_id == client_id)
        ]
        return sorted(projects, key=lambda p: p.name)

    async def get_project(self, project_id, user_id):
        await self._enter("get_project")
        return self._owned(self.projects, project_id, user_id, "Project")

    async def update_project(self, project_id, user_id, fields):
        await self._enter("update_project")
        project = self._owned(self.projects, project_id, user_id, "Project")
        self.projects[project_id] = project.model_copy(update=fields)
        return self.projects[project_id]

    async def delete_project(self, project_id, user_id):
        await self._enter("delete_project")
        self._owned(self.projects, project_id, user_id, "Project")
        for activity in [a for a in self.activities.values() if a.project_id == project_id]:
            await self.delete_activity(activity.id, user_id)
        del self.projects[project_id]

    async def create_activity(self, user_id, data):
        await self._enter("create_activity")
        self._owned(self.projects, data["project_id"], user_id, "Project")
        activity = Activity(id=str(ObjectId()), user_id=user_id, **data)
        self.activities[activity.id] = activity
        return activity

    async def list_activities(self, user_id, project_id=None):
        await self._enter("list_activities")
        activities = [
            a for a in self.activities.values()
            if a.user_id == user_id and (project_id is None or a.project_id == project_id)
        ]
        return sorted(activities, key=lambda a: a.name)

    async def get_activity(self, activity_id, user_id):
        await self._enter("get_activity")
        return self._owned(self.activities, activity_id, user_id, "Activity")

    async def update_activity(self, activity_id, user_id, fields):
        await self._enter("update_activity")
        activity = self._owned(self.activities, activity_id, user_id, "Activity")
        self.activities[activity_id] = activity.model_copy(update=fields)
        return self.activities[activity_id]

    async def delete_activity(self, activity_id, user_id):
        await self._enter("delete_activity")
        self._owned(self.activities, activity_id, user_id, "Activity")
        for key in [k for k, e in self.entries.items() if e.activity_id == activity_id]:
            del self.entries[key]
        del self.activities[activity_id]

    async def load_entry_contexts(self, user_id, client_id=None, project_id=None):
        await self._enter("load_entry_contexts")
        contexts = []
        for entry in sorted(self.entries.values(), key=lambda e: e.start_time):
            if entry.user_id != user_id:
                continue
            activity = self.activities.get(entry.activity_id)
            project = self.projects.get(activity.project_id) if activity else None
            if activity is None or project is None:
                continue
            if client_id and project.client_id != client_id:
                continue
            if project_id and project.id != project_id:
                continue
            client = self.clients.get(project.client_id)
            contexts.append(EntryContext(entry=entry, activity=activity, project=project, client=client))
        return contexts


def make_token(user_id: Optional[str] = TEST_USER, **claims) -> str:
    payload = {"email": f"{user_id}@example.com", **claims}
    if user_id:
        payload["sub"] = user_id
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def auth_headers(user_id: Optional[str] = TEST_USER) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


async def seed_tree(store: FakeEntryStore, user_id: str = TEST_USER, client_rate: float = 100.0,
                    project_rate: Optional[float] = None, activity_rate: Optional[float] = None):
    """Create one client, project and activity; returns the three records."""
    client = await store.create_client(user_id, {"name": "Acme", "hourly_rate": client_rate})
    project = await store.create_project(
        user_id, {"name": "Website", "client_id": client.id, "hourly_rate": project_rate}
    )
    activity = await store.create_activity(
        user_id, {"name": "Development", "project_id": project.id, "hourly_rate": activity_rate}
    )
    return client, project, activity


