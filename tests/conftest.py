"""
Pytest configuration and fixtures for the shelf test suite.
"""
import asyncio
from datetime import datetime
from typing import Any, Generator

import pytest
from aioresponses import aioresponses
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from app.internal.auth.authentication import create_access_token, create_user
from app.internal.metadata.google_books import get_metadata_provider, search_cache
from app.internal.models import Book, User, UserBook
from app.main import app
from app.util.db import create_db_and_tables, get_session
from app.util.exceptions import MetadataProviderError


def make_volume(volume_id: str, title: str = "The Way of Kings", **volume_info: Any) -> dict[str, Any]:
    """A Google Books volume payload as stored in Book.book_details."""
    return {
        "id": volume_id,
        "selfLink": f"https://www.googleapis.com/books/v1/volumes/{volume_id}",
        "volumeInfo": {
            "title": title,
            "authors": ["Brandon Sanderson"],
            "publisher": "Tor Books",
            "publishedDate": "2010-08-31",
            **volume_info,
        },
    }


class FakeMetadataProvider:
    """Records every lookup. Unknown quick links resolve to a generated volume."""

    def __init__(self):
        self.calls: list[str] = []
        self.volumes: dict[str, dict[str, Any]] = {}
        self.failing: set[str] = set()
        self.delays: dict[str, float] = {}

    async def fetch_by_link(self, quick_link: str) -> dict[str, Any]:
        self.calls.append(quick_link)
        if quick_link in self.delays:
            await asyncio.sleep(self.delays[quick_link])
        if quick_link in self.failing:
            raise MetadataProviderError("Google Books returned status 503")
        if quick_link in self.volumes:
            return self.volumes[quick_link]
        return make_volume(quick_link, title=f"Fresh {quick_link}")


# Database fixtures
@pytest.fixture(scope="function")
def db_engine():
    """In-memory SQLite database shared across threads, with foreign keys enforced."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    create_db_and_tables(engine)
    return engine


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def provider() -> FakeMetadataProvider:
    return FakeMetadataProvider()


@pytest.fixture(autouse=True)
def clear_search_cache():
    search_cache.flush()
    yield
    search_cache.flush()


@pytest.fixture(scope="function")
def aioresponses_mocker() -> Generator[aioresponses, None, None]:
    """Provide aioresponses context manager for HTTP mocking."""
    with aioresponses() as mocked:
        yield mocked


# User fixtures
@pytest.fixture
def user(db_session: Session) -> User:
    user = create_user("alice", "password123")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session: Session) -> User:
    user = create_user("bob", "password456")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


# Book fixtures
@pytest.fixture
def book(db_session: Session) -> Book:
    """A book with valid cached metadata."""
    book = Book(quick_link="kings-001", book_details=make_volume("kings-001"))
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book


@pytest.fixture
def stale_book(db_session: Session) -> Book:
    """A book whose metadata was never cached."""
    book = Book(quick_link="mistborn-002", book_details=None)
    db_session.add(book)
    db_session.commit()
    db_session.refresh(book)
    return book


@pytest.fixture
def user_book(db_session: Session, user: User, book: Book) -> UserBook:
    user_book = UserBook(
        user_id=user.id,  # pyright: ignore[reportArgumentType]
        book_id=book.id,  # pyright: ignore[reportArgumentType]
        user_rating=8,
        date_started=datetime(2023, 1, 1),
        date_finished=datetime(2023, 2, 1),
        user_notes="Loved the world building",
    )
    db_session.add(user_book)
    db_session.commit()
    db_session.refresh(user_book)
    return user_book


@pytest.fixture
def google_volume_response() -> dict[str, Any]:
    """Google Books API response for a single volume."""
    return {
        "kind": "books#volume",
        "id": "abc123",
        "selfLink": "https://www.googleapis.com/books/v1/volumes/abc123",
        "volumeInfo": {
            "title": "The Way of Kings",
            "subtitle": "The Stormlight Archive, Book 1",
            "authors": ["Brandon Sanderson"],
            "publisher": "Tor Books",
            "publishedDate": "2010-08-31",
            "description": "A fantasy epic about knights and magic.",
            "categories": ["Fiction", "Fantasy"],
            "imageLinks": {
                "thumbnail": "http://books.google.com/books/content?id=abc123&img=1",
            },
            "pageCount": 1007,
            "industryIdentifiers": [
                {"type": "ISBN_10", "identifier": "0765326353"},
                {"type": "ISBN_13", "identifier": "9780765326355"},
            ],
        },
    }


@pytest.fixture
def google_search_response(google_volume_response) -> dict[str, Any]:
    return {
        "kind": "books#volumes",
        "totalItems": 2,
        "items": [
            google_volume_response,
            {
                "id": "def456",
                "selfLink": "http://www.googleapis.com/books/v1/volumes/def456",
                "volumeInfo": {"title": "Words of Radiance", "authors": ["Brandon Sanderson"]},
            },
        ],
    }


# HTTP fixtures
@pytest.fixture
def client(db_session: Session, provider: FakeMetadataProvider) -> Generator[TestClient, None, None]:
    """FastAPI TestClient using the test session and the fake metadata provider."""

    def override_get_session():
        return db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_metadata_provider] = lambda: provider
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Builds the Authorization header of a user."""

    def build(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user)}"}

    return build


@pytest.fixture
def volume_factory():
    return make_volume
