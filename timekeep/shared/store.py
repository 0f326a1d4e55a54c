"""
Entry Store Module

This module wraps the MongoDB collections that hold clients, projects,
activities and time entries. Every operation is scoped to a user id so
one user can never read or change another user's records.

Features:
- Time entry insert/update/query
- Running entry cleanup and lookup
- Bulk insert and rollback of import batches
- Catalog CRUD with cascading deletes
- Joined entry contexts for analytics and export

Data Model:
- clients: Client documents
- projects: Project documents (client_id)
- activities: Activity documents (project_id)
- time_entries: TimeEntry documents (activity_id)

Dependencies:
- Motor for async MongoDB
- PyMongo for errors and index helpers
- bson for ObjectId handling
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from timekeep.shared.clock import as_utc, elapsed_seconds, utcnow
from timekeep.shared.errors import NotFound, StoreReadError, StoreWriteError
from timekeep.shared.models import Activity, Client, EntryContext, Project, TimeEntry

logger = logging.getLogger(__name__)

ENTRY_FIELDS = {"start_time", "end_time", "duration", "description", "is_running", "activity_id"}


def to_object_id(id_str: str) -> ObjectId:
    """Convert a path id into an ObjectId; malformed ids behave like missing records."""
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise NotFound(f"Invalid id: {id_str}")


@contextmanager
def _writing(action: str):
    try:
        yield
    except PyMongoError as e:
        logger.error(f"Store write failed ({action}): {str(e)}")
        raise StoreWriteError(f"{action} failed: {str(e)}") from e


@contextmanager
def _reading(action: str):
    try:
        yield
    except PyMongoError as e:
        logger.error(f"Store read failed ({action}): {str(e)}")
        raise StoreReadError(f"{action} failed: {str(e)}") from e


class EntryStore:
    """
    User-scoped persistence for the tracker records.

    Args:
        db: A Motor database handle
    """

    def __init__(self, db):
        self.db = db
        self.clients = db["clients"]
        self.projects = db["projects"]
        self.activities = db["activities"]
        self.time_entries = db["time_entries"]

    async def ensure_indexes(self) -> None:
        with _writing("create indexes"):
            await self.projects.create_index([("user_id", ASCENDING), ("client_id", ASCENDING)])
            await self.activities.create_index([("user_id", ASCENDING), ("project_id", ASCENDING)])
            await self.time_entries.create_index(
                [("user_id", ASCENDING), ("activity_id", ASCENDING), ("is_running", ASCENDING)]
            )
            await self.time_entries.create_index([("import_batch", ASCENDING)], sparse=True)

    # --- time entries ---

    async def insert_entry(
        self,
        user_id: str,
        activity_id: str,
        start_time: datetime,
        *,
        end_time: Optional[datetime] = None,
        duration: int = 0,
        description: Optional[str] = None,
        is_running: bool = False,
    ) -> TimeEntry:
        now = utcnow()
        doc = {
            "activity_id": activity_id,
            "user_id": user_id,
            "start_time": start_time,
            "end_time": end_time,
            "duration": int(duration),
            "description": description,
            "is_running": is_running,
            "created_at": now,
            "updated_at": now,
        }
        with _writing("insert time entry"):
            result = await self.time_entries.insert_one(doc)
        doc["_id"] = result.inserted_id
        return TimeEntry.from_document(doc)

    async def update_entry(self, entry_id: str, user_id: str, fields: Dict[str, Any]) -> TimeEntry:
        """
        Set fields on one entry and return the updated record.

        Raises:
            NotFound: When the entry does not exist for this user
            StoreWriteError: When the update fails
        """
        unknown = set(fields) - ENTRY_FIELDS
        if unknown:
            raise ValueError(f"Invalid entry fields: {sorted(unknown)}")
        update = {**fields, "updated_at": utcnow()}
        with _writing("update time entry"):
            doc = await self.time_entries.find_one_and_update(
                {"_id": to_object_id(entry_id), "user_id": user_id},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise NotFound(f"Time entry {entry_id} not found")
        return TimeEntry.from_document(doc)

    async def checkpoint_entry(self, entry_id: str, user_id: str, duration: int) -> bool:
        """
        Write a running entry's in-progress duration.

        Only touches entries that are still running, so a checkpoint that
        lands after a stop cannot overwrite the final duration.

        Returns:
            bool: True when a running entry was updated
        """
        with _writing("checkpoint time entry"):
            result = await self.time_entries.update_one(
                {"_id": to_object_id(entry_id), "user_id": user_id, "is_running": True},
                {"$set": {"duration": int(duration), "updated_at": utcnow()}},
            )
        return result.matched_count > 0

    async def close_running_entries(self, activity_id: str, user_id: str, now: datetime) -> List[TimeEntry]:
        """
        Close every running entry of an activity.

        Each closed entry gets an ``end_time`` synthesized from its own
        ``start_time`` so ``end_time - start_time`` equals its duration.
        """
        closed = []
        with _writing("close running entries"):
            cursor = self.time_entries.find(
                {"activity_id": activity_id, "user_id": user_id, "is_running": True}
            )
            running = await cursor.to_list(length=None)
            for doc in running:
                start_time = as_utc(doc["start_time"])
                duration = elapsed_seconds(start_time, now)
                update = {
                    "is_running": False,
                    "end_time": start_time + timedelta(seconds=duration),
                    "duration": duration,
                    "updated_at": utcnow(),
                }
                result = await self.time_entries.update_one(
                    {"_id": doc["_id"], "is_running": True}, {"$set": update}
                )
                if result.modified_count:
                    closed.append(TimeEntry.from_document({**doc, **update}))
        if closed:
            logger.warning(f"Closed {len(closed)} stale running entries for activity {activity_id}")
        return closed

    async def find_running_entry(self, activity_id: str, user_id: str) -> Optional[TimeEntry]:
        with _reading("find running entry"):
            doc = await self.time_entries.find_one(
                {"activity_id": activity_id, "user_id": user_id, "is_running": True},
                sort=[("start_time", -1)],
            )
        return TimeEntry.from_document(doc) if doc else None

    async def get_entry(self, entry_id: str, user_id: str) -> TimeEntry:
        with _reading("get time entry"):
            doc = await self.time_entries.find_one({"_id": to_object_id(entry_id), "user_id": user_id})
        if not doc:
            raise NotFound(f"Time entry {entry_id} not found")
        return TimeEntry.from_document(doc)

    async def list_entries(self, user_id: str, activity_id: Optional[str] = None) -> List[TimeEntry]:
        query = {"user_id": user_id}
        if activity_id:
            query["activity_id"] = activity_id
        with _reading("list time entries"):
            docs = await self.time_entries.find(query).sort("start_time", -1).to_list(length=None)
        return [TimeEntry.from_document(doc) for doc in docs]

    async def delete_entry(self, entry_id: str, user_id: str) -> None:
        with _writing("delete time entry"):
            result = await self.time_entries.delete_one({"_id": to_object_id(entry_id), "user_id": user_id})
        if result.deleted_count == 0:
            raise NotFound(f"Time entry {entry_id} not found")

    async def insert_entries(self, user_id: str, payloads: Iterable[Dict[str, Any]], batch_id: str) -> List[str]:
        """Insert a batch of completed entries tagged with ``batch_id``."""
        now = utcnow()
        docs = [
            {
                **payload,
                "user_id": user_id,
                "is_running": False,
                "import_batch": batch_id,
                "created_at": now,
                "updated_at": now,
            }
            for payload in payloads
        ]
        if not docs:
            return []
        with _writing("insert time entries"):
            result = await self.time_entries.insert_many(docs, ordered=True)
        return [str(inserted_id) for inserted_id in result.inserted_ids]

    async def delete_import_batch(self, user_id: str, batch_id: str) -> int:
        with _writing("delete import batch"):
            result = await self.time_entries.delete_many({"user_id": user_id, "import_batch": batch_id})
        return result.deleted_count

    # --- clients ---

    async def create_client(self, user_id: str, data: Dict[str, Any]) -> Client:
        doc = self._new_doc(user_id, data)
        with _writing("create client"):
            result = await self.clients.insert_one(doc)
        doc["_id"] = result.inserted_id
        return Client.from_document(doc)

    async def list_clients(self, user_id: str) -> List[Client]:
        with _reading("list clients"):
            docs = await self.clients.find({"user_id": user_id}).sort("name", 1).to_list(length=None)
        return [Client.from_document(doc) for doc in docs]

    async def get_client(self, client_id: str, user_id: str) -> Client:
        doc = await self._get(self.clients, client_id, user_id, "Client")
        return Client.from_document(doc)

    async def update_client(self, client_id: str, user_id: str, fields: Dict[str, Any]) -> Client:
        doc = await self._update(self.clients, client_id, user_id, fields, "Client")
        return Client.from_document(doc)

    async def delete_client(self, client_id: str, user_id: str) -> None:
        await self.get_client(client_id, user_id)
        with _reading("list client projects"):
            projects = await self.projects.find({"client_id": client_id, "user_id": user_id}).to_list(length=None)
        for project in projects:
            await self.delete_project(str(project["_id"]), user_id)
        with _writing("delete client"):
            await self.clients.delete_one({"_id": to_object_id(client_id), "user_id": user_id})

    # --- projects ---

    async def create_project(self, user_id: str, data: Dict[str, Any]) -> Project:
        await self.get_client(data["client_id"], user_id)
        doc = self._new_doc(user_id, data)
        with _writing("create project"):
            result = await self.projects.insert_one(doc)
        doc["_id"] = result.inserted_id
        return Project.from_document(doc)

    async def list_projects(self, user_id: str, client_id: Optional[str] = None) -> List[Project]:
        query = {"user_id": user_id}
        if client_id:
            query["client_id"] = client_id
        with _reading("list projects"):
            docs = await self.projects.find(query).sort("name", 1).to_list(length=None)
        return [Project.from_document(doc) for doc in docs]

    async def get_project(self, project_id: str, user_id: str) -> Project:
        doc = await self._get(self.projects, project_id, user_id, "Project")
        return Project.from_document(doc)

    async def update_project(self, project_id: str, user_id: str, fields: Dict[str, Any]) -> Project:
        doc = await self._update(self.projects, project_id, user_id, fields, "Project")
        return Project.from_document(doc)

    async def delete_project(self, project_id: str, user_id: str) -> None:
        await self.get_project(project_id, user_id)
        with _reading("list project activities"):
            activities = await self.activities.find(
                {"project_id": project_id, "user_id": user_id}
            ).to_list(length=None)
        for activity in activities:
            await self.delete_activity(str(activity["_id"]), user_id)
        with _writing("delete project"):
            await self.projects.delete_one({"_id": to_object_id(project_id), "user_id": user_id})

    # --- activities ---

    async def create_activity(self, user_id: str, data: Dict[str, Any]) -> Activity:
        await self.get_project(data["project_id"], user_id)
        doc = self._new_doc(user_id, data)
        with _writing("create activity"):
            result = await self.activities.insert_one(doc)
        doc["_id"] = result.inserted_id
        return Activity.from_document(doc)

    async def list_activities(self, user_id: str, project_id: Optional[str] = None) -> List[Activity]:
        query = {"user_id": user_id}
        if project_id:
            query["project_id"] = project_id
        with _reading("list activities"):
            docs = await self.activities.find(query).sort("name", 1).to_list(length=None)
        return [Activity.from_document(doc) for doc in docs]

    async def get_activity(self, activity_id: str, user_id: str) -> Activity:
        doc = await self._get(self.activities, activity_id, user_id, "Activity")
        return Activity.from_document(doc)

    async def update_activity(self, activity_id: str, user_id: str, fields: Dict[str, Any]) -> Activity:
        doc = await self._update(self.activities, activity_id, user_id, fields, "Activity")
        return Activity.from_document(doc)

    async def delete_activity(self, activity_id: str, user_id: str) -> None:
        await self.get_activity(activity_id, user_id)
        with _writing("delete activity"):
            await self.time_entries.delete_many({"activity_id": activity_id, "user_id": user_id})
            await self.activities.delete_one({"_id": to_object_id(activity_id), "user_id": user_id})

    # --- joined views ---

    async def load_entry_contexts(
        self,
        user_id: str,
        client_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ) -> List[EntryContext]:
        """
        Load entries joined with their activity, project and client.

        Args:
            user_id (str): Owner
            client_id (Optional[str]): Restrict to one client's tree
            project_id (Optional[str]): Restrict to one project's tree
        """
        clients = {client.id: client for client in await self.list_clients(user_id)}
        projects = {project.id: project for project in await self.list_projects(user_id, client_id)}
        if project_id:
            projects = {pid: p for pid, p in projects.items() if pid == project_id}
        activities = {
            activity.id: activity
            for activity in await self.list_activities(user_id)
            if activity.project_id in projects
        }
        if not activities:
            return []
        with _reading("load entry contexts"):
            docs = await self.time_entries.find(
                {"user_id": user_id, "activity_id": {"$in": list(activities)}}
            ).sort("start_time", 1).to_list(length=None)
        contexts = []
        for doc in docs:
            entry = TimeEntry.from_document(doc)
            activity = activities[entry.activity_id]
            project = projects.get(activity.project_id)
            client = clients.get(project.client_id) if project else None
            contexts.append(EntryContext(entry=entry, activity=activity, project=project, client=client))
        return contexts

    # --- helpers ---

    @staticmethod
    def _new_doc(user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        return {**data, "user_id": user_id, "created_at": now, "updated_at": now}

    async def _get(self, collection, record_id: str, user_id: str, kind: str) -> Dict[str, Any]:
        with _reading(f"get {kind.lower()}"):
            doc = await collection.find_one({"_id": to_object_id(record_id), "user_id": user_id})
        if not doc:
            raise NotFound(f"{kind} {record_id} not found")
        return doc

    async def _update(self, collection, record_id: str, user_id: str, fields: Dict[str, Any], kind: str):
        update = {key: value for key, value in fields.items() if key not in {"_id", "id", "user_id"}}
        update["updated_at"] = utcnow()
        with _writing(f"update {kind.lower()}"):
            doc = await collection.find_one_and_update(
                {"_id": to_object_id(record_id), "user_id": user_id},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise NotFound(f"{kind} {record_id} not found")
        return doc
