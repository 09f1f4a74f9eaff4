from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from app.internal import db_queries
from app.internal.metadata.google_books import MetadataProvider, is_valid_book_details
from app.internal.models import Book, BookRead
from app.util.exceptions import (
    InvalidInputError,
    MetadataProviderError,
    UpstreamError,
    handle_database_error,
    handle_external_api_error,
)
from app.util.log import logger


def to_book_read(book: Book) -> BookRead:
    return BookRead.model_validate(book, from_attributes=True)


async def register_book(session: Session, provider: MetadataProvider, quick_link: str) -> Book:
    """
    Find the book for a quick link, or create it with freshly fetched metadata.

    An existing book is returned untouched, even if its cached metadata is stale;
    staleness is handled when the book is read through a user's list.
    """
    quick_link = quick_link.strip()
    if not quick_link:
        raise InvalidInputError("Quick link must not be empty")

    try:
        existing = db_queries.get_book_by_quick_link(session, quick_link)
        if existing:
            return existing

        book_details = await provider.fetch_by_link(quick_link)
        if not is_valid_book_details(book_details):
            raise InvalidInputError("Book has no title")

        book = Book(quick_link=quick_link, book_details=book_details)
        session.add(book)
        try:
            session.commit()
        except IntegrityError:
            # registered by a concurrent request in the meantime
            session.rollback()
            existing = db_queries.get_book_by_quick_link(session, quick_link)
            if existing is None:
                raise
            return existing
        session.refresh(book)
    except MetadataProviderError as e:
        handle_external_api_error(e, "Google Books", "register book", quick_link=quick_link)
        raise UpstreamError() from e
    except SQLAlchemyError as e:
        handle_database_error(e, "register book", rollback_session=session, quick_link=quick_link)
        raise UpstreamError() from e

    logger.info("Registered new book", book_id=book.id, quick_link=quick_link)
    return book
