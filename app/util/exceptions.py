"""
Domain exceptions and standard exception handling utilities for the book tracker.

The three domain exceptions mirror what the HTTP layer has to tell apart:
bad input (400), missing rows (404) and failing collaborators (502).
The ``handle_*`` helpers give every module the same structured log line for a
failure before it is re-raised or translated.
"""
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.util.log import logger

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


class InvalidInputError(ValueError):
    """Input is malformed or out of range. Never retried."""


class UserBookValidationError(InvalidInputError):
    """A rating, date or note of a user book is out of range."""


class NotFoundError(LookupError):
    """A referenced book or user book does not exist for this user."""


class UpstreamError(RuntimeError):
    """
    The store or the metadata provider failed.

    The original cause is logged and chained, but the message exposed to the
    caller is always the generic one.
    """

    def __init__(self, message: str = UNEXPECTED_ERROR_MESSAGE):
        super().__init__(message)


class MetadataProviderError(Exception):
    """Raised by a metadata provider when a lookup cannot produce a volume."""


def handle_external_api_error(
    error: Exception,
    service: str,
    operation: str,
    **context: Any
) -> None:
    """
    Standard logging for external API failures.

    Args:
        error: The caught exception
        service: Name of the external service (e.g., "Google Books")
        operation: What operation was being attempted (e.g., "fetch volume", "search")
        **context: Additional context to log (e.g., quick_link=...)

    Example:
        try:
            volume = await provider.fetch_by_link(quick_link)
        except MetadataProviderError as e:
            handle_external_api_error(e, "Google Books", "fetch volume", quick_link=quick_link)
            raise UpstreamError() from e
    """
    logger.error(
        f"{service} {operation} failed",
        error=str(error),
        error_type=type(error).__name__,
        service=service,
        operation=operation,
        **context
    )


def handle_database_error(
    error: SQLAlchemyError,
    operation: str,
    rollback_session: Any = None,
    **context: Any
) -> None:
    """
    Standard logging and handling for database errors.

    Args:
        error: The caught SQLAlchemy exception
        operation: What database operation was being attempted
        rollback_session: Optional SQLModel Session to rollback
        **context: Additional context to log
    """
    logger.error(
        f"Database {operation} failed",
        error=str(error),
        error_type=type(error).__name__,
        operation=operation,
        **context
    )

    if rollback_session is not None:
        try:
            rollback_session.rollback()
        except SQLAlchemyError as rollback_error:
            logger.warning(
                "Failed to rollback session after database error",
                error=str(rollback_error)
            )


def handle_validation_error(
    error: ValidationError,
    data_source: str,
    **context: Any
) -> None:
    """
    Standard logging for data validation failures.

    Args:
        error: The caught ValidationError
        data_source: Where the invalid data came from (e.g., "Google Books volume")
        **context: Additional context to log
    """
    logger.error(
        f"{data_source} validation failed",
        error=str(error),
        error_type=type(error).__name__,
        data_source=data_source,
        **context
    )
