"""
Data Export Module

Builds a full backup of a user's records as nested JSON:
clients -> projects -> activities -> time_entries.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from timekeep.shared.models import Activity, Client, Project, TimeEntry


def _group(records: Iterable, key: str) -> Dict[str, list]:
    grouped = defaultdict(list)
    for record in records:
        grouped[getattr(record, key)].append(record)
    return grouped


def build_data_export(
    clients: Iterable[Client],
    projects: Iterable[Project],
    activities: Iterable[Activity],
    entries: Iterable[TimeEntry],
) -> List[Dict[str, Any]]:
    """
    Nest every record under its parent.

    Records whose parent is missing are left out, the same as a join from
    clients downward would.

    Returns:
        List[Dict[str, Any]]: One JSON-ready dict per client
    """
    projects_by_client = _group(projects, "client_id")
    activities_by_project = _group(activities, "project_id")
    entries_by_activity = _group(entries, "activity_id")

    def entry_data(entry: TimeEntry) -> Dict[str, Any]:
        return entry.model_dump(mode="json")

    def activity_data(activity: Activity) -> Dict[str, Any]:
        data = activity.model_dump(mode="json")
        data["time_entries"] = [entry_data(e) for e in entries_by_activity.get(activity.id, [])]
        return data

    def project_data(project: Project) -> Dict[str, Any]:
        data = project.model_dump(mode="json")
        data["activities"] = [activity_data(a) for a in activities_by_project.get(project.id, [])]
        return data

    result = []
    for client in clients:
        data = client.model_dump(mode="json")
        data["projects"] = [project_data(p) for p in projects_by_client.get(client.id, [])]
        result.append(data)
    return result


def data_export_filename(when: Optional[datetime] = None) -> str:
    stamp = (when or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    return f"timekeep-data-{stamp}.json"
