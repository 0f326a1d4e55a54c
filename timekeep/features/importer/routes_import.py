"""
Import Routes Module

This module handles CSV imports into a project or a single activity.

Features:
- Project imports with activity resolution
- Activity imports
- Dry-run planning
- Template downloads

Security:
- Authentication required
- Targets must belong to the caller

Dependencies:
- FastAPI for routing
- Importer pipeline
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from timekeep.features.importer.csv_import import build_import_plan, execute_import, parse_csv
from timekeep.features.importer.models import ImportRequest
from timekeep.features.importer.templates import CSV_TEMPLATES, find_template, render_template
from timekeep.shared.auth import get_current_user
from timekeep.shared.database import get_store
from timekeep.shared.errors import ImportBatchFailure, TimekeepError
from timekeep.shared.http import http_error
from timekeep.shared.store import EntryStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/import",
    tags=["import"]
)


@router.get("/templates")
async def list_templates():
    return {"templates": [t.model_dump() for t in CSV_TEMPLATES]}


@router.get("/templates/{filename}")
async def download_template(filename: str):
    template = find_template(filename)
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return Response(
        content=render_template(template),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{template.filename}"'},
    )


@router.post("/projects/{project_id}")
async def import_into_project(
    project_id: str,
    payload: ImportRequest,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    """
    Import CSV rows into a project.

    Notes:
        - Activity column names are matched against the project's activities
        - Unknown names become new activities, once per name
        - All-or-nothing: a failed insert leaves nothing behind
    """
    user_id = auth_data["user_id"]
    try:
        await store.get_project(project_id, user_id)
        existing = await store.list_activities(user_id, project_id)
        _, rows = parse_csv(payload.csv)
        plan = build_import_plan(rows, payload.mapping, existing)
        if payload.dry_run:
            return plan
        return await execute_import(store, user_id, project_id, plan)
    except ImportBatchFailure as e:
        raise http_error(e)
    except TimekeepError as e:
        logger.error(f"Error importing into project {project_id}: {str(e)}")
        raise http_error(e)


@router.post("/activities/{activity_id}")
async def import_into_activity(
    activity_id: str,
    payload: ImportRequest,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    """Import CSV rows as entries of one activity."""
    user_id = auth_data["user_id"]
    try:
        activity = await store.get_activity(activity_id, user_id)
        _, rows = parse_csv(payload.csv)
        plan = build_import_plan(rows, payload.mapping, [], activity_id=activity.id)
        if payload.dry_run:
            return plan
        return await execute_import(store, user_id, activity.project_id, plan)
    except ImportBatchFailure as e:
        raise http_error(e)
    except TimekeepError as e:
        logger.error(f"Error importing into activity {activity_id}: {str(e)}")
        raise http_error(e)
