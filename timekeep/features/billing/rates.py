"""
Rate Resolution Module

Resolves the effective hourly rate for a time entry. An activity's own
rate wins, then its project's, then the client's, then zero. A rate of
``None`` is unset; ``0`` is a real override.
"""

from typing import Optional

from timekeep.shared.models import Activity, Client, EntryContext, Project


def resolve_hourly_rate(
    activity: Activity,
    project: Optional[Project] = None,
    client: Optional[Client] = None,
) -> float:
    """
    Effective hourly rate by override precedence.

    Args:
        activity (Activity): Activity the entry belongs to
        project (Optional[Project]): The activity's project
        client (Optional[Client]): The project's client

    Returns:
        float: activity rate, else project rate, else client rate, else 0
    """
    for source in (activity, project, client):
        if source is not None and source.hourly_rate is not None:
            return float(source.hourly_rate)
    return 0.0


def context_rate(context: EntryContext) -> float:
    return resolve_hourly_rate(context.activity, context.project, context.client)
