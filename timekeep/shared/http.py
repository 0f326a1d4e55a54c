"""
HTTP Error Translation

Maps domain exceptions onto ``HTTPException`` status codes for routes, and
resolves the ``?tz=`` query parameter shared by the export and analytics routes.
"""

from typing import Optional

import pytz
from fastapi import HTTPException

from timekeep.shared.errors import (
    AuthenticationRequired,
    CsvFormatError,
    ExportError,
    ImportBatchFailure,
    InvalidStateError,
    NotFound,
    StoreError,
    TimekeepError,
)

STATUS_CODES = [
    (AuthenticationRequired, 401),
    (NotFound, 404),
    (InvalidStateError, 409),
    (CsvFormatError, 422),
    (ImportBatchFailure, 502),
    (StoreError, 502),
    (ExportError, 500),
]


def http_error(error: TimekeepError, detail: Optional[str] = None) -> HTTPException:
    status_code = next(
        (code for kind, code in STATUS_CODES if isinstance(error, kind)),
        500,
    )
    return HTTPException(status_code=status_code, detail=detail or str(error))


def resolve_timezone(tz: Optional[str]):
    """Return the pytz zone named by ``tz``, ``None`` for UTC, or a 422."""
    if not tz:
        return None
    try:
        return pytz.timezone(tz)
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=422, detail=f"Unknown timezone: {tz}")
