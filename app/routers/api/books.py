from typing import Annotated

from aiohttp import ClientSession
from fastapi import APIRouter, Depends, HTTPException, Query, Security
from pydantic import BaseModel
from sqlmodel import Session

from app.internal import db_queries
from app.internal.auth.authentication import JWTAuth
from app.internal.books import register_book, to_book_read
from app.internal.metadata.google_books import (
    BookSearchResult,
    GoogleBooksProvider,
    MetadataProvider,
    get_metadata_provider,
)
from app.internal.models import BookRead, User
from app.util.connection import get_connection
from app.util.db import get_session
from app.util.exceptions import (
    UNEXPECTED_ERROR_MESSAGE,
    InvalidInputError,
    MetadataProviderError,
    UpstreamError,
)

router = APIRouter(prefix="/books", tags=["Books"])


class RegisterBookBody(BaseModel):
    quick_link: str


@router.get("/search", response_model=list[BookSearchResult])
async def search_books(
    client_session: Annotated[ClientSession, Depends(get_connection)],
    _: Annotated[User, Security(JWTAuth())],
    query: Annotated[str, Query(alias="q")] = "",
    max_results: Annotated[int, Query(ge=1, le=40)] = 10,
):
    if not query.strip():
        raise HTTPException(status_code=400, detail="Search query must not be empty")
    try:
        return await GoogleBooksProvider(client_session).search_volumes(
            query.strip(), max_results
        )
    except MetadataProviderError:
        raise HTTPException(status_code=502, detail=UNEXPECTED_ERROR_MESSAGE)


@router.post("", response_model=BookRead, status_code=201)
async def create_book(
    body: RegisterBookBody,
    session: Annotated[Session, Depends(get_session)],
    provider: Annotated[MetadataProvider, Depends(get_metadata_provider)],
    _: Annotated[User, Security(JWTAuth())],
):
    try:
        book = await register_book(session, provider, body.quick_link)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return to_book_read(book)


@router.get("/{book_id}", response_model=BookRead)
async def read_book(
    book_id: int,
    session: Annotated[Session, Depends(get_session)],
    _: Annotated[User, Security(JWTAuth())],
):
    book = db_queries.get_book(session, book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return to_book_read(book)
