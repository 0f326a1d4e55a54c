"""
Analytics Routes Module

Serves the analytics view: a summary plus per-day, per-project and
per-activity totals over a recent window. Days are grouped in UTC unless
``?tz=`` names a zone.

Security:
- Authentication required
- Only the caller's entries are included
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from timekeep.features.analytics.aggregation import (
    aggregate_by_activity,
    aggregate_by_day,
    aggregate_by_project,
    filter_by_range,
    summarize,
)
from timekeep.features.billing.formatting import format_currency, format_duration
from timekeep.shared import config
from timekeep.shared.auth import get_current_user
from timekeep.shared.database import get_store
from timekeep.shared.errors import TimekeepError
from timekeep.shared.http import http_error, resolve_timezone
from timekeep.shared.models import ViewMetric
from timekeep.shared.store import EntryStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"]
)


@router.get("")
async def get_analytics(
    days: int = Query(7, gt=0),
    metric: ViewMetric = ViewMetric.TIME,
    limit: int = Query(10, gt=0),
    tz: Optional[str] = None,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    zone = resolve_timezone(tz)
    user_id = auth_data["user_id"]
    try:
        contexts = await store.load_entry_contexts(user_id)
    except TimekeepError as e:
        logger.error(f"Error loading analytics for user {user_id}: {str(e)}")
        raise http_error(e)

    window = filter_by_range(contexts, days)
    summary = summarize(window)
    return {
        "days": days,
        "metric": metric,
        "summary": {
            **summary.model_dump(),
            "total_time_formatted": format_duration(summary.total_time),
            "total_earnings_formatted": format_currency(summary.total_earnings, config.CURRENCY),
        },
        "by_day": aggregate_by_day(window, metric, zone),
        "by_project": aggregate_by_project(window, metric),
        "by_activity": aggregate_by_activity(window, metric, limit),
    }
