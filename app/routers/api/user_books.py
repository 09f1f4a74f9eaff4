from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, Security
from pydantic import BaseModel, Field
from sqlmodel import Session

from app.internal.auth.authentication import JWTAuth
from app.internal.metadata.google_books import MetadataProvider, get_metadata_provider
from app.internal.models import User, UserBookRead
from app.internal.user_books import (
    ImportItem,
    ImportSummary,
    add_book_to_user,
    delete_book_from_user,
    get_user_book,
    import_books_for_user,
    list_user_books,
    update_user_book,
)
from app.util.db import get_session
from app.util.exceptions import InvalidInputError, NotFoundError, UpstreamError

router = APIRouter(prefix="/user-books", tags=["User Books"])


class AddUserBookBody(BaseModel):
    book_id: int
    user_rating: Optional[int] = None
    date_started: Optional[datetime] = None
    date_finished: Optional[datetime] = None
    user_notes: Optional[str] = None


class UpdateUserBookBody(BaseModel):
    user_rating: Optional[int] = None
    date_started: Optional[datetime] = None
    date_finished: Optional[datetime] = None
    user_notes: Optional[str] = None


class ImportBody(BaseModel):
    items: list[ImportItem] = Field(min_length=1, max_length=500)


def _to_http_error(e: Exception) -> HTTPException:
    match e:
        case InvalidInputError():
            return HTTPException(status_code=400, detail=str(e))
        case NotFoundError():
            return HTTPException(status_code=404, detail=str(e))
        case _:
            return HTTPException(status_code=502, detail=str(e))


@router.get("", response_model=list[UserBookRead])
async def list_books(
    session: Annotated[Session, Depends(get_session)],
    provider: Annotated[MetadataProvider, Depends(get_metadata_provider)],
    user: Annotated[User, Security(JWTAuth())],
):
    try:
        return await list_user_books(session, provider, user.id)  # pyright: ignore[reportArgumentType]
    except UpstreamError as e:
        raise _to_http_error(e)


@router.get("/{user_book_id}", response_model=UserBookRead)
async def get_book(
    user_book_id: int,
    session: Annotated[Session, Depends(get_session)],
    provider: Annotated[MetadataProvider, Depends(get_metadata_provider)],
    user: Annotated[User, Security(JWTAuth())],
):
    try:
        result = await get_user_book(session, provider, user.id, user_book_id)  # pyright: ignore[reportArgumentType]
    except UpstreamError as e:
        raise _to_http_error(e)
    if result is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return result


@router.post("", response_model=UserBookRead, status_code=201)
async def add_book(
    body: AddUserBookBody,
    response: Response,
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[User, Security(JWTAuth())],
):
    try:
        user_book, created = add_book_to_user(
            session,
            user.id,  # pyright: ignore[reportArgumentType]
            body.book_id,
            user_rating=body.user_rating,
            date_started=body.date_started,
            date_finished=body.date_finished,
            user_notes=body.user_notes,
        )
    except (InvalidInputError, NotFoundError, UpstreamError) as e:
        raise _to_http_error(e)
    if not created:
        response.status_code = 200
    return user_book


@router.post("/import", response_model=ImportSummary)
async def import_books(
    body: ImportBody,
    session: Annotated[Session, Depends(get_session)],
    provider: Annotated[MetadataProvider, Depends(get_metadata_provider)],
    user: Annotated[User, Security(JWTAuth())],
):
    return await import_books_for_user(session, provider, user.id, body.items)  # pyright: ignore[reportArgumentType]


@router.put("/{user_book_id}", response_model=UserBookRead)
async def update_book(
    user_book_id: int,
    body: UpdateUserBookBody,
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[User, Security(JWTAuth())],
):
    try:
        return update_user_book(
            session,
            user.id,  # pyright: ignore[reportArgumentType]
            user_book_id,
            user_rating=body.user_rating,
            date_started=body.date_started,
            date_finished=body.date_finished,
            user_notes=body.user_notes,
        )
    except (InvalidInputError, NotFoundError, UpstreamError) as e:
        raise _to_http_error(e)


@router.delete("/{user_book_id}", status_code=204)
async def delete_book(
    user_book_id: int,
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[User, Security(JWTAuth())],
):
    try:
        delete_book_from_user(session, user.id, user_book_id)  # pyright: ignore[reportArgumentType]
    except (NotFoundError, UpstreamError) as e:
        raise _to_http_error(e)
    return Response(status_code=204)
