"""
CSV Import Module

This module turns uploaded CSV text into time entries.

Features:
- Simple CSV splitting
- Column mapping
- Duration parsing
- Activity resolution by name
- All-or-nothing batch insert

Notes:
    Parsing splits on commas and strips double quotes. Quoted commas and
    embedded newlines are not supported.

    A failed batch is rolled back: entries tagged with the batch id and
    activities created for it are deleted before the error is raised.
"""

import logging
import math
import re
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from dateutil import parser as date_parser

from timekeep.features.importer.models import ColumnMapping, ImportPlan, ImportResult, PlannedEntry
from timekeep.shared.clock import elapsed_seconds, to_millis, utcnow
from timekeep.shared.errors import CsvFormatError, ImportBatchFailure, InvalidDurationFormat, TimekeepError
from timekeep.shared.models import Activity

logger = logging.getLogger(__name__)

# Tried in order; first match wins
HOURS_MINUTES = re.compile(r"(\d+)[:h]\s*(\d+)m?")
DECIMAL_HOURS = re.compile(r"(\d+\.?\d*)h")
MINUTES = re.compile(r"(\d+)m")
LEADING_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)")


def parse_csv(text: str) -> Tuple[List[str], List[Dict[str, str]]]:
    """
    Split CSV text into headers and row dicts.

    Raises:
        CsvFormatError: Fewer than a header row and one data row
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise CsvFormatError("CSV file must have at least a header row and one data row")

    headers = [h.strip().replace('"', "") for h in lines[0].split(",")]
    rows = []
    for line in lines[1:]:
        values = [v.strip().replace('"', "") for v in line.split(",")]
        rows.append({header: values[i] if i < len(values) else "" for i, header in enumerate(headers)})
    return headers, rows


def parse_duration_strict(text: str) -> int:
    """
    Parse a duration cell into seconds.

    Formats: ``"2h 30m"``/``"2:30"``, ``"2.5h"``, ``"150m"``, bare number
    (minutes).

    Raises:
        InvalidDurationFormat: When no format matches
    """
    value = (text or "").lower().strip()

    match = HOURS_MINUTES.search(value)
    if match:
        return int(match.group(1)) * 3600 + int(match.group(2)) * 60

    match = DECIMAL_HOURS.search(value)
    if match:
        return math.floor(float(match.group(1)) * 3600)

    match = MINUTES.search(value)
    if match:
        return int(match.group(1)) * 60

    match = LEADING_NUMBER.match(value)
    if match:
        return max(0, math.floor(float(match.group(0)) * 60))

    raise InvalidDurationFormat(f"Unrecognized duration: {text!r}")


def parse_duration(text: str) -> int:
    """Lenient ``parse_duration_strict``: unrecognized text yields 0."""
    try:
        return parse_duration_strict(text)
    except InvalidDurationFormat as e:
        logger.warning(str(e))
        return 0


def parse_timestamp(text: str, row_number: int, column: str) -> datetime:
    try:
        parsed = date_parser.parse(text)
    except (ValueError, OverflowError):
        raise CsvFormatError(f"Row {row_number}: invalid {column} {text!r}")
    return to_millis(parsed)


def build_import_plan(
    rows: List[Dict[str, str]],
    mapping: ColumnMapping,
    existing_activities: List[Activity],
    activity_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ImportPlan:
    """
    Map parsed rows onto entry payloads.

    Args:
        rows: Row dicts from ``parse_csv``
        mapping: Which columns hold times, duration, description and activity
        existing_activities: Activities of the target project, matched by name
        activity_id: Put every row on this activity instead of resolving names
        now: Start time for duration-only rows (defaults to import time)

    Raises:
        CsvFormatError: No usable time columns, or an unparsable timestamp
    """
    if not mapping.has_time_range and not mapping.duration:
        raise CsvFormatError("Please select either start/end time columns or duration column")

    now = now or utcnow()
    by_name = {activity.name: activity.id for activity in existing_activities}
    new_names: List[str] = []
    entries: List[PlannedEntry] = []

    for index, row in enumerate(rows):
        row_number = index + 1

        if mapping.has_time_range:
            start_time = parse_timestamp(row.get(mapping.startTime, ""), row_number, "start time")
            end_time = parse_timestamp(row.get(mapping.endTime, ""), row_number, "end time")
            if end_time < start_time:
                raise CsvFormatError(f"Row {row_number}: end time is before start time")
            duration = elapsed_seconds(start_time, end_time)
            end_time = start_time + timedelta(seconds=duration)
        else:
            duration = parse_duration(row.get(mapping.duration, ""))
            start_time = now
            end_time = now + timedelta(seconds=duration)

        description = row.get(mapping.description) if mapping.description else None

        if activity_id:
            activity_name, target_id = None, activity_id
        else:
            if mapping.activity:
                activity_name = row.get(mapping.activity) or f"Activity {row_number}"
            else:
                activity_name = f"Activity {row_number}"
            target_id = by_name.get(activity_name)
            if target_id is None and activity_name not in new_names:
                new_names.append(activity_name)

        entries.append(
            PlannedEntry(
                activity_id=target_id,
                activity_name=activity_name,
                start_time=start_time,
                end_time=end_time,
                duration=duration,
                description=description or None,
            )
        )

    return ImportPlan(entries=entries, new_activity_names=new_names)


async def execute_import(store, user_id: str, project_id: Optional[str], plan: ImportPlan) -> ImportResult:
    """
    Create new activities, then insert every planned entry as one batch.

    Raises:
        ImportBatchFailure: Any write failed; nothing from the batch remains
    """
    attempted = len(plan.entries)
    batch_id = uuid.uuid4().hex
    created: Dict[str, str] = {}

    try:
        if plan.new_activity_names and not project_id:
            raise CsvFormatError("New activities need a target project")
        for name in plan.new_activity_names:
            activity = await store.create_activity(user_id, {"name": name, "project_id": project_id})
            created[name] = activity.id

        payloads = []
        for entry in plan.entries:
            payloads.append({
                "activity_id": entry.activity_id or created[entry.activity_name],
                "start_time": entry.start_time,
                "end_time": entry.end_time,
                "duration": entry.duration,
                "description": entry.description,
            })
        entry_ids = await store.insert_entries(user_id, payloads, batch_id)
    except TimekeepError as e:
        logger.error(f"Import batch {batch_id} failed: {str(e)}")
        await _rollback(store, user_id, batch_id, list(created.values()))
        raise ImportBatchFailure(attempted, str(e)) from e

    logger.info(f"Imported {len(entry_ids)} entries in batch {batch_id}")
    return ImportResult(
        batch_id=batch_id,
        entries_created=len(entry_ids),
        activities_created=sorted(created),
    )


async def _rollback(store, user_id: str, batch_id: str, activity_ids: List[str]) -> None:
    try:
        removed = await store.delete_import_batch(user_id, batch_id)
        for activity_id in activity_ids:
            await store.delete_activity(activity_id, user_id)
        logger.info(f"Rolled back batch {batch_id}: {removed} entries, {len(activity_ids)} activities")
    except TimekeepError as e:
        logger.exception(f"Rollback of batch {batch_id} failed: {str(e)}")
