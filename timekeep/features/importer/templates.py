"""
CSV Templates Module

Sample CSV files describing the formats the importer accepts.
"""

import csv
import io
from typing import List, Optional

from pydantic import BaseModel


class CSVTemplate(BaseModel):
    name: str
    description: str
    filename: str
    headers: List[str]
    sample_data: List[List[str]]
    instructions: List[str]


CSV_TEMPLATES = [
    CSVTemplate(
        name="Project Import - Full Data",
        description="Import time entries with start/end times, activities, and descriptions for a project",
        filename="project_import_full_template.csv",
        headers=["Date", "Activity", "Start Time", "End Time", "Description"],
        sample_data=[
            ["2024-01-15", "Development", "2024-01-15 09:00:00", "2024-01-15 12:30:00", "Working on user authentication"],
            ["2024-01-15", "Testing", "2024-01-15 14:00:00", "2024-01-15 16:00:00", "Testing login functionality"],
            ["2024-01-16", "Development", "2024-01-16 10:00:00", "2024-01-16 11:30:00", "Bug fixes and improvements"],
            ["2024-01-16", "Documentation", "2024-01-16 15:00:00", "2024-01-16 17:00:00", "Writing API documentation"],
        ],
        instructions=[
            "Date column is optional but helps with organization",
            "Activity column will create new activities if they don't exist",
            "Start Time and End Time should be in YYYY-MM-DD HH:MM:SS format",
            "Times without a timezone are read as UTC",
        ],
    ),
    CSVTemplate(
        name="Project Import - Duration Based",
        description="Import time entries using duration instead of start/end times",
        filename="project_import_duration_template.csv",
        headers=["Date", "Activity", "Duration", "Description"],
        sample_data=[
            ["2024-01-15", "Development", "3h 30m", "Working on user authentication"],
            ["2024-01-15", "Testing", "2:00", "Testing login functionality"],
            ["2024-01-16", "Development", "1.5h", "Bug fixes and improvements"],
            ["2024-01-17", "Meeting", "45m", "Client review meeting"],
        ],
        instructions=[
            "Duration can be '3h 30m', '2:30', '2.5h', '150m', or just '150' (minutes)",
            "Activity column will create new activities if they don't exist",
            "Start time is set to import time, end time is calculated from duration",
        ],
    ),
    CSVTemplate(
        name="Activity Import - Time Range",
        description="Import multiple time entries for a single activity with start/end times",
        filename="activity_import_timerange_template.csv",
        headers=["Start Time", "End Time", "Description"],
        sample_data=[
            ["2024-01-15 09:00:00", "2024-01-15 10:30:00", "Morning session"],
            ["2024-01-15 13:00:00", "2024-01-15 15:15:00", "Afternoon session"],
        ],
        instructions=[
            "All entries are added to the selected activity",
            "Start Time and End Time should be in YYYY-MM-DD HH:MM:SS format",
        ],
    ),
    CSVTemplate(
        name="Activity Import - Duration Based",
        description="Import multiple time entries for a single activity using durations",
        filename="activity_import_duration_template.csv",
        headers=["Duration", "Description"],
        sample_data=[
            ["1h 15m", "Research"],
            ["90", "Implementation"],
        ],
        instructions=[
            "All entries are added to the selected activity",
            "Bare numbers are read as minutes",
        ],
    ),
]


def find_template(filename: str) -> Optional[CSVTemplate]:
    return next((t for t in CSV_TEMPLATES if t.filename == filename), None)


def render_template(template: CSVTemplate) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(template.headers)
    writer.writerows(template.sample_data)
    return buffer.getvalue()
