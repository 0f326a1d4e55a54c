"""
Analytics Aggregation Module

Pure reductions over joined time entries for the analytics views.

Features:
- Date range filtering
- Per-day, per-project and per-activity totals
- Ordering by time or earnings
- Summary figures

Notes:
    Only completed entries (``end_time`` set) are folded. Running entries
    carry a checkpoint duration, not a final one.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel

from timekeep.features.billing.formatting import calculate_earnings
from timekeep.features.billing.rates import context_rate
from timekeep.shared.models import EntryContext, ViewMetric


class Stat(BaseModel):
    """
    Accumulated totals for one group.

    Attributes:
        key (str): Group key (ISO date, project id or activity id)
        name (str): Display name
        time (int): Total seconds
        earnings (float): Total earnings
        entries (int): Number of entries folded
        color (Optional[str]): Project color, when grouping by project
        project_name (Optional[str]): Owning project, when grouping by activity
    """
    key: str
    name: str
    time: int = 0
    earnings: float = 0.0
    entries: int = 0
    color: Optional[str] = None
    project_name: Optional[str] = None


class Summary(BaseModel):
    total_time: int = 0
    total_earnings: float = 0.0
    entry_count: int = 0
    average_session: int = 0
    average_hourly_rate: float = 0.0


def completed(contexts: Iterable[EntryContext]) -> List[EntryContext]:
    return [c for c in contexts if c.entry.end_time is not None]


def filter_by_range(contexts: Iterable[EntryContext], days: int, now: Optional[datetime] = None) -> List[EntryContext]:
    """
    Keep completed entries started within the last ``days`` days.

    Args:
        contexts: Joined entries
        days (int): Window length, must be positive
        now (Optional[datetime]): Reference time, defaults to the current UTC time

    Raises:
        ValueError: If days is not positive
    """
    if days <= 0:
        raise ValueError("days must be positive")
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    return [c for c in completed(contexts) if c.entry.start_time >= cutoff]


def _sort(stats: Iterable[Stat], metric: ViewMetric) -> List[Stat]:
    if metric == ViewMetric.EARNINGS:
        return sorted(stats, key=lambda s: s.earnings, reverse=True)
    return sorted(stats, key=lambda s: s.time, reverse=True)


def _fold(
    contexts: Iterable[EntryContext],
    group: Callable[[EntryContext], Stat],
) -> List[Stat]:
    stats: Dict[str, Stat] = {}
    for context in completed(contexts):
        blank = group(context)
        stat = stats.setdefault(blank.key, blank)
        duration = context.entry.duration or 0
        stat.time += duration
        stat.earnings += calculate_earnings(duration, context_rate(context))
        stat.entries += 1
    return list(stats.values())


def aggregate_by_day(
    contexts: Iterable[EntryContext],
    metric: ViewMetric = ViewMetric.TIME,
    tz: Optional[tzinfo] = None,
) -> List[Stat]:
    def group(context: EntryContext) -> Stat:
        day = context.entry.start_time.astimezone(tz or timezone.utc).date()
        return Stat(key=day.isoformat(), name=f"{day.month}/{day.day}/{day.year}")

    return _sort(_fold(contexts, group), metric)


def aggregate_by_project(contexts: Iterable[EntryContext], metric: ViewMetric = ViewMetric.TIME) -> List[Stat]:
    def group(context: EntryContext) -> Stat:
        project = context.project
        if project is None:
            return Stat(key="", name="No project")
        return Stat(key=project.id, name=project.name, color=project.color)

    return _sort(_fold(contexts, group), metric)


def aggregate_by_activity(
    contexts: Iterable[EntryContext],
    metric: ViewMetric = ViewMetric.TIME,
    limit: Optional[int] = 10,
) -> List[Stat]:
    def group(context: EntryContext) -> Stat:
        return Stat(
            key=context.activity.id,
            name=context.activity.name,
            project_name=context.project.name if context.project else None,
        )

    stats = _sort(_fold(contexts, group), metric)
    return stats[:limit] if limit is not None else stats


def summarize(contexts: Iterable[EntryContext]) -> Summary:
    """
    Totals across completed entries.

    Notes:
        - average_session is floored to whole seconds
        - average_hourly_rate is earnings per tracked hour, 0 with no time
    """
    done = completed(contexts)
    total_time = sum(c.entry.duration or 0 for c in done)
    total_earnings = sum(calculate_earnings(c.entry.duration or 0, context_rate(c)) for c in done)
    count = len(done)
    return Summary(
        total_time=total_time,
        total_earnings=total_earnings,
        entry_count=count,
        average_session=total_time // count if count else 0,
        average_hourly_rate=total_earnings / (total_time / 3600) if total_time else 0.0,
    )
