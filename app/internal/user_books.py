"""
User book service.

Reads, creates, updates and deletes a user's tracked books and makes sure the
books it returns carry usable metadata:

- listing refreshes a book's cached metadata only when it is stale (missing or
  without a title) and writes the refreshed payload back onto the book
- fetching a single user book always asks the provider again and overlays the
  answer, without writing it back

Store and provider failures are logged and surface as ``UpstreamError``.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app.internal import db_queries
from app.internal.books import register_book, to_book_read
from app.internal.metadata.google_books import MetadataProvider, is_valid_book_details
from app.internal.models import BookRead, UserBook, UserBookRead, utcnow
from app.util.exceptions import (
    InvalidInputError,
    MetadataProviderError,
    NotFoundError,
    UpstreamError,
    UserBookValidationError,
    handle_database_error,
    handle_external_api_error,
)
from app.util.log import logger

MIN_RATING = 1
MAX_RATING = 10
MAX_NOTES_LENGTH = 1000


class ImportItem(BaseModel):
    quick_link: str
    user_rating: Optional[int] = None
    date_started: Optional[datetime] = None
    date_finished: Optional[datetime] = None
    user_notes: Optional[str] = None


class ImportItemResult(BaseModel):
    quick_link: str
    status: Literal["added", "existing", "failed"]
    user_book_id: Optional[int] = None
    error: Optional[str] = None


class ImportSummary(BaseModel):
    added: int = 0
    existing: int = 0
    failed: int = 0
    results: list[ImportItemResult] = []


def _as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken to be UTC already; aware ones are converted."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _validate_dates(date_started: datetime | None, date_finished: datetime | None):
    if date_started and date_finished and date_started > date_finished:
        raise UserBookValidationError("Date started must be before date finished")
    if date_started and date_started > utcnow():
        raise UserBookValidationError("Date started must be in the past")


def _validate_notes(user_notes: str | None, allow_empty: bool):
    if user_notes is None:
        return
    if len(user_notes) > MAX_NOTES_LENGTH or (not user_notes and not allow_empty):
        raise UserBookValidationError(
            f"User notes must be between 1 and {MAX_NOTES_LENGTH} characters"
        )


def to_user_book_read(
    user_book: UserBook, book_details: dict[str, Any] | None = None
) -> UserBookRead:
    """Merge a user book with its book. `book_details` replaces the cached metadata when given."""
    book = to_book_read(user_book.book)
    if book_details is not None:
        book = BookRead(id=book.id, quick_link=book.quick_link, book_details=book_details)

    return UserBookRead(
        id=user_book.id,  # pyright: ignore[reportArgumentType]
        user_id=user_book.user_id,
        book_id=user_book.book_id,
        user_rating=user_book.user_rating,
        date_started=user_book.date_started,
        date_finished=user_book.date_finished,
        user_notes=user_book.user_notes,
        imported=user_book.imported,
        book=book,
    )


async def list_user_books(
    session: Session, provider: MetadataProvider, user_id: int
) -> list[UserBookRead]:
    """
    All books of a user. Stale book metadata is fetched again and stored on the
    book before its entry is returned. Refreshes run concurrently and all of them
    finish before the call returns. A failure aborts the listing, but refreshes
    that already committed stay.
    """

    async def with_fresh_details(user_book: UserBook) -> UserBookRead:
        book = user_book.book
        book_details = book.book_details
        if not is_valid_book_details(book_details):
            logger.info(
                "Refreshing stale book details",
                book_id=book.id,
                quick_link=book.quick_link,
            )
            book_details = await provider.fetch_by_link(book.quick_link)
            book.book_details = book_details
            session.add(book)
            session.commit()
        return to_user_book_read(user_book, book_details)

    try:
        user_books = db_queries.list_user_book_rows(session, user_id)
        # wait for every refresh before reporting the first failure
        results = await asyncio.gather(
            *(with_fresh_details(ub) for ub in user_books), return_exceptions=True
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return [result for result in results if isinstance(result, UserBookRead)]
    except MetadataProviderError as e:
        handle_external_api_error(e, "Google Books", "refresh book details", user_id=user_id)
        raise UpstreamError() from e
    except SQLAlchemyError as e:
        handle_database_error(e, "list user books", rollback_session=session, user_id=user_id)
        raise UpstreamError() from e


async def get_user_book(
    session: Session, provider: MetadataProvider, user_id: int, user_book_id: int
) -> UserBookRead | None:
    """A single user book with metadata fetched fresh from the provider, or None."""
    try:
        user_book = db_queries.get_user_book(session, user_id, user_book_id)
        if user_book is None:
            return None
        book_details = await provider.fetch_by_link(user_book.book.quick_link)
        return to_user_book_read(user_book, book_details)
    except MetadataProviderError as e:
        handle_external_api_error(
            e, "Google Books", "fetch book details", user_id=user_id, user_book_id=user_book_id
        )
        raise UpstreamError() from e
    except SQLAlchemyError as e:
        handle_database_error(
            e, "get user book", rollback_session=session, user_id=user_id, user_book_id=user_book_id
        )
        raise UpstreamError() from e


def add_book_to_user(
    session: Session,
    user_id: int,
    book_id: int,
    user_rating: int | None = None,
    date_started: datetime | None = None,
    date_finished: datetime | None = None,
    user_notes: str | None = None,
    imported: bool = False,
) -> tuple[UserBookRead, bool]:
    """
    Start tracking a book for a user.

    Returns the user book and whether it was created. If the user already tracks
    the book, the existing entry is returned unchanged and nothing is written.

    Only the upper rating bound is enforced here; a rating below 1 (zero or
    negative) is stored as no rating. `update_user_book` checks both bounds.
    """
    if user_rating is not None and user_rating > MAX_RATING:
        raise UserBookValidationError(
            f"User rating must be between {MIN_RATING} and {MAX_RATING}"
        )
    date_started = _as_utc(date_started)
    date_finished = _as_utc(date_finished)
    _validate_dates(date_started, date_finished)
    _validate_notes(user_notes, allow_empty=True)

    try:
        if db_queries.get_book(session, book_id) is None:
            raise NotFoundError("Book does not exist")

        existing = db_queries.get_user_book_by_book(session, user_id, book_id)
        if existing:
            logger.debug("Book already tracked by user", user_id=user_id, book_id=book_id)
            return to_user_book_read(existing), False

        user_book = UserBook(
            user_id=user_id,
            book_id=book_id,
            user_rating=user_rating if user_rating and user_rating >= MIN_RATING else None,
            date_started=date_started,
            date_finished=date_finished,
            user_notes=user_notes or None,
            imported=imported,
        )
        session.add(user_book)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            existing = db_queries.get_user_book_by_book(session, user_id, book_id)
            if existing is None:
                raise
            logger.info(
                "Duplicate add resolved to existing user book",
                user_id=user_id,
                book_id=book_id,
            )
            return to_user_book_read(existing), False

        created = db_queries.get_user_book(session, user_id, user_book.id)  # pyright: ignore[reportArgumentType]
        if created is None:
            raise UpstreamError()
    except SQLAlchemyError as e:
        handle_database_error(
            e, "add book to user", rollback_session=session, user_id=user_id, book_id=book_id
        )
        raise UpstreamError() from e

    logger.info(
        "Added book to user",
        user_id=user_id,
        book_id=book_id,
        user_book_id=created.id,
        imported=imported,
    )
    return to_user_book_read(created), True


def update_user_book(
    session: Session,
    user_id: int,
    user_book_id: int,
    user_rating: int | None = None,
    date_started: datetime | None = None,
    date_finished: datetime | None = None,
    user_notes: str | None = None,
) -> UserBookRead:
    """
    Replace the tracking fields of a user book. All four fields are overwritten,
    so a field left out is cleared.
    """
    if user_rating is not None and (user_rating < MIN_RATING or user_rating > MAX_RATING):
        raise UserBookValidationError(
            f"User rating must be between {MIN_RATING} and {MAX_RATING}"
        )
    date_started = _as_utc(date_started)
    date_finished = _as_utc(date_finished)
    _validate_dates(date_started, date_finished)
    _validate_notes(user_notes, allow_empty=False)

    try:
        user_book = db_queries.get_user_book(session, user_id, user_book_id)
        if user_book is None:
            raise NotFoundError("Book not found for this user")

        user_book.user_rating = user_rating
        user_book.date_started = date_started
        user_book.date_finished = date_finished
        user_book.user_notes = user_notes
        session.add(user_book)
        session.commit()

        updated = db_queries.get_user_book(session, user_id, user_book_id)
        if updated is None:
            raise UpstreamError()
    except SQLAlchemyError as e:
        handle_database_error(
            e, "update user book", rollback_session=session, user_id=user_id, user_book_id=user_book_id
        )
        raise UpstreamError() from e

    logger.info("Updated user book", user_id=user_id, user_book_id=user_book_id)
    return to_user_book_read(updated)


def delete_book_from_user(session: Session, user_id: int, user_book_id: int) -> None:
    try:
        deleted = db_queries.delete_user_book(session, user_id, user_book_id)
    except SQLAlchemyError as e:
        handle_database_error(
            e, "delete user book", rollback_session=session, user_id=user_id, user_book_id=user_book_id
        )
        raise UpstreamError() from e

    if not deleted:
        raise NotFoundError("Book not found")
    logger.info("Deleted user book", user_id=user_id, user_book_id=user_book_id)


async def import_books_for_user(
    session: Session,
    provider: MetadataProvider,
    user_id: int,
    items: list[ImportItem],
) -> ImportSummary:
    """
    Bulk import. Each item registers its book by quick link and adds it to the
    user with the import flag set. Items are independent: a failing item is
    reported and the rest are still processed.
    """
    summary = ImportSummary()
    for item in items:
        try:
            book = await register_book(session, provider, item.quick_link)
            user_book, created = add_book_to_user(
                session,
                user_id,
                book.id,  # pyright: ignore[reportArgumentType]
                user_rating=item.user_rating,
                date_started=item.date_started,
                date_finished=item.date_finished,
                user_notes=item.user_notes,
                imported=True,
            )
        except (InvalidInputError, NotFoundError, UpstreamError) as e:
            summary.failed += 1
            summary.results.append(
                ImportItemResult(quick_link=item.quick_link, status="failed", error=str(e))
            )
            continue

        if created:
            summary.added += 1
        else:
            summary.existing += 1
        summary.results.append(
            ImportItemResult(
                quick_link=item.quick_link,
                status="added" if created else "existing",
                user_book_id=user_book.id,
            )
        )

    logger.info(
        "Imported books for user",
        user_id=user_id,
        added=summary.added,
        existing=summary.existing,
        failed=summary.failed,
    )
    return summary
