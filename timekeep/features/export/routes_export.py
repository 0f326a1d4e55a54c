"""
Export Routes Module

This module serves billing CSVs for clients and projects, and a JSON
backup of all of the caller's records.

Security:
- Authentication required
- Only the caller's records are exported

Dependencies:
- FastAPI for routing
- pytz for the optional ?tz= zone (via shared.http)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from timekeep.features.export.csv_export import export_filename, generate_client_csv, generate_project_csv
from timekeep.features.export.data_export import build_data_export, data_export_filename
from timekeep.shared.auth import get_current_user
from timekeep.shared.database import get_store
from timekeep.shared.errors import TimekeepError
from timekeep.shared.http import http_error, resolve_timezone
from timekeep.shared.store import EntryStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/export",
    tags=["export"]
)


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/clients/{client_id}")
async def export_client(
    client_id: str,
    tz: Optional[str] = None,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    """Download every completed entry under a client as CSV."""
    zone = resolve_timezone(tz)
    user_id = auth_data["user_id"]
    try:
        client = await store.get_client(client_id, user_id)
        contexts = await store.load_entry_contexts(user_id, client_id=client_id)
        content = generate_client_csv(client, contexts, zone)
    except TimekeepError as e:
        logger.error(f"Error exporting client {client_id}: {str(e)}")
        raise http_error(e)
    return _csv_response(content, export_filename(client.name))


@router.get("/projects/{project_id}")
async def export_project(
    project_id: str,
    tz: Optional[str] = None,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    """Download every completed entry under a project as CSV."""
    zone = resolve_timezone(tz)
    user_id = auth_data["user_id"]
    try:
        project = await store.get_project(project_id, user_id)
        contexts = await store.load_entry_contexts(user_id, project_id=project_id)
        content = generate_project_csv(project, contexts, zone)
    except TimekeepError as e:
        logger.error(f"Error exporting project {project_id}: {str(e)}")
        raise http_error(e)
    return _csv_response(content, export_filename(project.name))


@router.get("/all")
async def export_all_data(
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    """Download every client, project, activity and time entry as nested JSON."""
    user_id = auth_data["user_id"]
    try:
        clients = await store.list_clients(user_id)
        projects = await store.list_projects(user_id)
        activities = await store.list_activities(user_id)
        entries = await store.list_entries(user_id)
    except TimekeepError as e:
        logger.error(f"Error exporting data for user {user_id}: {str(e)}")
        raise http_error(e)

    return JSONResponse(
        content=build_data_export(clients, projects, activities, entries),
        headers={"Content-Disposition": f'attachment; filename="{data_export_filename()}"'},
    )
