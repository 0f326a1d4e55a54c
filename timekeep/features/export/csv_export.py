"""
CSV Export Module

Builds billing CSVs for a client or a project from joined entry contexts.
Only completed entries (with an ``end_time``) are exported. Every cell is
quoted; rows are comma-delimited with one header row.
"""

import csv
import io
import logging
from datetime import datetime, timezone, tzinfo
from typing import Iterable, List, Optional

from timekeep.features.billing.formatting import calculate_earnings, format_duration, format_hours
from timekeep.features.billing.rates import context_rate
from timekeep.shared.errors import ExportError
from timekeep.shared.models import Client, EntryContext, Project

logger = logging.getLogger(__name__)

CLIENT_HEADERS = [
    "Date",
    "Project",
    "Activity",
    "Start Time",
    "End Time",
    "Duration (Hours)",
    "Duration (Formatted)",
    "Hourly Rate",
    "Earnings",
    "Description",
]
PROJECT_HEADERS = [header for header in CLIENT_HEADERS if header != "Project"]


def _month_day_year(local: datetime) -> str:
    return f"{local.month}/{local.day}/{local.year}"


def format_date(value: datetime, tz: Optional[tzinfo] = None) -> str:
    return _month_day_year(value.astimezone(tz or timezone.utc))


def format_datetime(value: datetime, tz: Optional[tzinfo] = None) -> str:
    local = value.astimezone(tz or timezone.utc)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{_month_day_year(local)}, {hour}:{local.minute:02d}:{local.second:02d} {suffix}"


def format_rate(rate: float) -> str:
    return str(int(rate)) if float(rate).is_integer() else repr(float(rate))


def _completed(contexts: Iterable[EntryContext]) -> List[EntryContext]:
    done = [c for c in contexts if c.entry.end_time is not None]
    return sorted(
        done,
        key=lambda c: (c.project.name if c.project else "", c.activity.name, c.entry.start_time),
    )


def _row(context: EntryContext, include_project: bool, tz: Optional[tzinfo]) -> List[str]:
    entry = context.entry
    rate = context_rate(context)
    duration = entry.duration or 0
    row = [format_date(entry.start_time, tz)]
    if include_project:
        row.append(context.project.name if context.project else "")
    row.extend([
        context.activity.name,
        format_datetime(entry.start_time, tz),
        format_datetime(entry.end_time, tz) if entry.end_time else "",
        format_hours(duration),
        format_duration(duration),
        format_rate(rate),
        f"{calculate_earnings(duration, rate):.2f}",
        entry.description or "",
    ])
    return row


def _render(headers: List[str], rows: List[List[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


def generate_client_csv(client: Client, contexts: Iterable[EntryContext], tz: Optional[tzinfo] = None) -> str:
    """CSV of every completed entry under a client, with a Project column."""
    try:
        rows = [
            _row(context, include_project=True, tz=tz)
            for context in _completed(contexts)
            if context.client is None or context.client.id == client.id
        ]
        return _render(CLIENT_HEADERS, rows)
    except (AttributeError, TypeError, ValueError) as e:
        logger.exception(f"Error generating CSV for client {client.id}")
        raise ExportError(f"The export file for {client.name} could not be generated") from e


def generate_project_csv(project: Project, contexts: Iterable[EntryContext], tz: Optional[tzinfo] = None) -> str:
    """CSV of every completed entry under a project."""
    try:
        rows = [
            _row(context, include_project=False, tz=tz)
            for context in _completed(contexts)
            if context.project is None or context.project.id == project.id
        ]
        return _render(PROJECT_HEADERS, rows)
    except (AttributeError, TypeError, ValueError) as e:
        logger.exception(f"Error generating CSV for project {project.id}")
        raise ExportError(f"The export file for {project.name} could not be generated") from e


def export_filename(name: str, when: Optional[datetime] = None) -> str:
    stamp = (when or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    safe = "".join(ch if ch.isalnum() else "_" for ch in name.lower()).strip("_") or "export"
    return f"{safe}_time_entries_{stamp}.csv"
