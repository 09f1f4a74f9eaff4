from pydantic import BaseModel
from sqlalchemy import delete, func
from sqlalchemy.orm import joinedload
from sqlmodel import Session, col, select

from app.internal.models import Book, UserBook


class UserBookCounts(BaseModel):
    total: int
    finished: int
    unfinished: int


def get_book(session: Session, book_id: int) -> Book | None:
    return session.get(Book, book_id)


def get_book_by_quick_link(session: Session, quick_link: str) -> Book | None:
    return session.exec(select(Book).where(Book.quick_link == quick_link)).first()


def list_user_book_rows(session: Session, user_id: int) -> list[UserBook]:
    """
    All user books of a user, each with its book loaded.
    A user that does not exist simply has no rows.
    """
    return list(
        session.exec(
            select(UserBook)
            .where(UserBook.user_id == user_id)
            .options(joinedload(UserBook.book))  # pyright: ignore[reportArgumentType]
            .order_by(col(UserBook.id))
        ).all()
    )


def get_user_book(session: Session, user_id: int, user_book_id: int) -> UserBook | None:
    """A single user book scoped to its owner, with its book loaded."""
    return session.exec(
        select(UserBook)
        .where(UserBook.id == user_book_id, UserBook.user_id == user_id)
        .options(joinedload(UserBook.book))  # pyright: ignore[reportArgumentType]
    ).first()


def get_user_book_by_book(session: Session, user_id: int, book_id: int) -> UserBook | None:
    return session.exec(
        select(UserBook)
        .where(UserBook.user_id == user_id, UserBook.book_id == book_id)
        .options(joinedload(UserBook.book))  # pyright: ignore[reportArgumentType]
    ).first()


def delete_user_book(session: Session, user_id: int, user_book_id: int) -> int:
    """Delete a user book owned by `user_id`. Returns the number of rows removed."""
    result = session.execute(
        delete(UserBook).where(
            (col(UserBook.id) == user_book_id) & (col(UserBook.user_id) == user_id)
        )
    )
    session.commit()
    return result.rowcount


def get_user_book_counts(session: Session, user_id: int) -> UserBookCounts:
    rows = session.exec(
        select(col(UserBook.date_finished).is_not(None), func.count("*"))
        .where(UserBook.user_id == user_id)
        .group_by(col(UserBook.date_finished).is_not(None))
    ).all()
    finished = 0
    unfinished = 0
    for is_finished, count in rows:
        if is_finished:
            finished = count
        else:
            unfinished = count

    return UserBookCounts(
        total=finished + unfinished,
        finished=finished,
        unfinished=unfinished,
    )
