# WORKFLOW: Exception hierarchy for the Price Archive API.
# Used by: Archive iterators, ingestion pipeline, transactional sink, export, API routers
# Fatal ingestion errors all derive from IngestionError so the HTTP layer can
# turn any of them into a single failure response. Row-level rejections are
# never raised; they are collected as RowRejection entries instead.

"""
Exception hierarchy for archive ingestion and export.
"""


class PriceServiceError(Exception):
    """Base exception for all price service failures."""


class IngestionError(PriceServiceError):
    """Raised when an archive ingestion pass has to be aborted."""


class UnsupportedArchiveError(IngestionError):
    """Raised for an archive type other than zip or tar."""


class ArchiveFormatError(IngestionError):
    """Raised when the archive directory or headers cannot be read."""


class ArchiveMemberError(IngestionError):
    """Raised when a matching archive member cannot be opened."""


class PersistenceError(IngestionError):
    """Raised when an insert or the final commit fails against the store."""


class ExportError(PriceServiceError):
    """Raised when stored prices cannot be exported."""
