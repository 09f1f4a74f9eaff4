from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from sqlalchemy import JSON, Column, Text, UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(SQLModel, table=True):
    __tablename__ = "users"  # pyright: ignore[reportAssignmentType]

    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)
    password: str
    created_at: datetime = Field(default_factory=utcnow)


class Book(SQLModel, table=True):
    __tablename__ = "books"  # pyright: ignore[reportAssignmentType]

    id: int | None = Field(default=None, primary_key=True)
    quick_link: str = Field(unique=True, index=True)
    """Google Books volume link (or bare volume id) used to look the book up"""
    book_details: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    """Cached volume payload. May be null or malformed, in which case it is refreshed on read"""
    created_at: datetime = Field(default_factory=utcnow)


class UserBook(SQLModel, table=True):
    __tablename__ = "users_books"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", name="uq_users_books_user_id_book_id"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", index=True)
    book_id: int = Field(foreign_key="books.id", ondelete="CASCADE", index=True)
    user_rating: int | None = None
    date_started: datetime | None = None
    date_finished: datetime | None = None
    user_notes: str | None = Field(default=None, sa_column=Column(Text))
    imported: bool = False
    """Set when the row was created through a bulk import"""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow}
    )

    book: Book = Relationship()


class UserRead(BaseModel):
    id: int
    username: str
    created_at: datetime


class BookRead(BaseModel):
    id: int
    quick_link: str
    book_details: dict[str, Any] | None = None


class UserBookRead(BaseModel):
    """A user book merged with its book and the book's metadata."""

    id: int
    user_id: int
    book_id: int
    user_rating: int | None = None
    date_started: datetime | None = None
    date_finished: datetime | None = None
    user_notes: str | None = None
    imported: bool = False
    book: BookRead
