"""
Errors Module

Domain exceptions shared by the timer, store, import and export layers.
Routes translate these into ``HTTPException`` responses.
"""


class TimekeepError(Exception):
    """Base class for every domain error raised by the service."""


class AuthenticationRequired(TimekeepError):
    """A write was attempted without a signed-in user."""


class NotFound(TimekeepError):
    """A record does not exist or is not owned by the current user."""


class StoreError(TimekeepError):
    """Base class for persistence failures."""


class StoreWriteError(StoreError):
    """An insert or update was rejected or did not reach the database."""


class StoreReadError(StoreError):
    """A query failed."""


class InvalidStateError(TimekeepError):
    """A timer operation is not valid in the engine's current state."""


class OperationInProgress(InvalidStateError):
    """A start or stop is already awaiting its store write."""


class InvalidDurationFormat(TimekeepError, ValueError):
    """A CSV duration cell matched none of the recognized formats."""


class CsvFormatError(TimekeepError, ValueError):
    """Uploaded CSV text or its column mapping cannot be used."""


class ImportBatchFailure(TimekeepError):
    """
    A bulk import failed and was rolled back.

    Attributes:
        attempted (int): Number of entries the batch would have created
    """

    def __init__(self, attempted: int, reason: str = ""):
        self.attempted = attempted
        self.reason = reason
        message = f"Import failed: {attempted} entries would have been created, none were committed"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ExportError(TimekeepError):
    """A CSV export could not be generated."""
