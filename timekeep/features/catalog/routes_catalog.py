"""
Catalog Routes Module

This module handles CRUD for the billing hierarchy: clients own projects,
projects own activities.

Features:
- Client, project and activity creation
- Listing with parent filtering
- Partial updates
- Cascading deletes

Security:
- Authentication required
- Every query is scoped to the caller's user ID

Dependencies:
- FastAPI for routing
- Entry store for persistence
- Timer registry to release timers of deleted activities
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from timekeep.features.catalog.models import (
    ActivityCreate,
    ActivityUpdate,
    ClientCreate,
    ClientUpdate,
    ProjectCreate,
    ProjectUpdate,
)
from timekeep.features.timer.registry import TimerRegistry
from timekeep.features.timer.routes_timer import get_timers
from timekeep.shared.auth import get_current_user
from timekeep.shared.database import get_store
from timekeep.shared.errors import TimekeepError
from timekeep.shared.http import http_error
from timekeep.shared.models import Activity, Client, Project
from timekeep.shared.store import EntryStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])


def _changes(update: BaseModel, nullable: Iterable[str] = ()) -> Dict[str, Any]:
    """Fields the caller sent; explicit nulls are kept only for nullable fields."""
    allowed = set(nullable)
    return {
        key: value
        for key, value in update.model_dump(exclude_unset=True).items()
        if value is not None or key in allowed
    }


async def _release(timers: TimerRegistry, activities: List[Activity]) -> None:
    for activity in activities:
        await timers.release_activity(activity.id)


# --- clients ---

@router.post("/clients", response_model=Client)
async def create_client(
    payload: ClientCreate,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        client = await store.create_client(auth_data["user_id"], payload.model_dump())
        logger.info(f"Created client {client.id}")
        return client
    except TimekeepError as e:
        logger.error(f"Error creating client: {str(e)}")
        raise http_error(e)


@router.get("/clients", response_model=List[Client])
async def list_clients(
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.list_clients(auth_data["user_id"])
    except TimekeepError as e:
        raise http_error(e)


@router.get("/clients/{client_id}", response_model=Client)
async def get_client(
    client_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.get_client(client_id, auth_data["user_id"])
    except TimekeepError as e:
        raise http_error(e)


@router.put("/clients/{client_id}", response_model=Client)
async def update_client(
    client_id: str,
    payload: ClientUpdate,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.update_client(client_id, auth_data["user_id"], _changes(payload))
    except TimekeepError as e:
        logger.error(f"Error updating client {client_id}: {str(e)}")
        raise http_error(e)


@router.delete("/clients/{client_id}")
async def delete_client(
    client_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
    timers: TimerRegistry = Depends(get_timers),
):
    """
    Delete a client with its projects, activities and time entries.

    Notes:
        - Timers attached to any affected activity are released first
    """
    user_id = auth_data["user_id"]
    try:
        await store.get_client(client_id, user_id)
        for project in await store.list_projects(user_id, client_id):
            await _release(timers, await store.list_activities(user_id, project.id))
        await store.delete_client(client_id, user_id)
    except TimekeepError as e:
        logger.error(f"Error deleting client {client_id}: {str(e)}")
        raise http_error(e)
    logger.info(f"Deleted client {client_id}")
    return {"status": "success", "message": "Client deleted"}


# --- projects ---

@router.post("/projects", response_model=Project)
async def create_project(
    payload: ProjectCreate,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.create_project(auth_data["user_id"], payload.model_dump())
    except TimekeepError as e:
        logger.error(f"Error creating project: {str(e)}")
        raise http_error(e)


@router.get("/projects", response_model=List[Project])
async def list_projects(
    client_id: Optional[str] = None,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.list_projects(auth_data["user_id"], client_id)
    except TimekeepError as e:
        raise http_error(e)


@router.get("/projects/{project_id}", response_model=Project)
async def get_project(
    project_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.get_project(project_id, auth_data["user_id"])
    except TimekeepError as e:
        raise http_error(e)


@router.put("/projects/{project_id}", response_model=Project)
async def update_project(
    project_id: str,
    payload: ProjectUpdate,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        changes = _changes(payload, nullable=["hourly_rate", "description"])
        return await store.update_project(project_id, auth_data["user_id"], changes)
    except TimekeepError as e:
        logger.error(f"Error updating project {project_id}: {str(e)}")
        raise http_error(e)


@router.delete("/projects/{project_id}")
async def delete_project(
    project_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
    timers: TimerRegistry = Depends(get_timers),
):
    user_id = auth_data["user_id"]
    try:
        await store.get_project(project_id, user_id)
        await _release(timers, await store.list_activities(user_id, project_id))
        await store.delete_project(project_id, user_id)
    except TimekeepError as e:
        logger.error(f"Error deleting project {project_id}: {str(e)}")
        raise http_error(e)
    return {"status": "success", "message": "Project deleted"}


# --- activities ---

@router.post("/activities", response_model=Activity)
async def create_activity(
    payload: ActivityCreate,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.create_activity(auth_data["user_id"], payload.model_dump())
    except TimekeepError as e:
        logger.error(f"Error creating activity: {str(e)}")
        raise http_error(e)


@router.get("/activities", response_model=List[Activity])
async def list_activities(
    project_id: Optional[str] = None,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.list_activities(auth_data["user_id"], project_id)
    except TimekeepError as e:
        raise http_error(e)


@router.get("/activities/{activity_id}", response_model=Activity)
async def get_activity(
    activity_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.get_activity(activity_id, auth_data["user_id"])
    except TimekeepError as e:
        raise http_error(e)


@router.put("/activities/{activity_id}", response_model=Activity)
async def update_activity(
    activity_id: str,
    payload: ActivityUpdate,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        changes = _changes(payload, nullable=["hourly_rate", "description"])
        return await store.update_activity(activity_id, auth_data["user_id"], changes)
    except TimekeepError as e:
        logger.error(f"Error updating activity {activity_id}: {str(e)}")
        raise http_error(e)


@router.delete("/activities/{activity_id}")
async def delete_activity(
    activity_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
    timers: TimerRegistry = Depends(get_timers),
):
    user_id = auth_data["user_id"]
    try:
        await store.get_activity(activity_id, user_id)
        await timers.release_activity(activity_id)
        await store.delete_activity(activity_id, user_id)
    except TimekeepError as e:
        logger.error(f"Error deleting activity {activity_id}: {str(e)}")
        raise http_error(e)
    return {"status": "success", "message": "Activity deleted"}
