from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, Security
from sqlmodel import Session

from app.internal.auth.authentication import JWTAuth
from app.internal.db_queries import UserBookCounts, get_user_book_counts
from app.internal.models import User, UserRead
from app.util.db import get_session
from app.util.log import logger

router = APIRouter(prefix="/users", tags=["Users"])


class CurrentUser(UserRead):
    books: UserBookCounts


@router.get("/me", response_model=CurrentUser)
async def read_current_user(
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[User, Security(JWTAuth())],
):
    return CurrentUser(
        id=user.id,  # pyright: ignore[reportArgumentType]
        username=user.username,
        created_at=user.created_at,
        books=get_user_book_counts(session, user.id),  # pyright: ignore[reportArgumentType]
    )


@router.delete("/me", status_code=204)
async def delete_current_user(
    session: Annotated[Session, Depends(get_session)],
    user: Annotated[User, Security(JWTAuth())],
):
    user_id = user.id
    try:
        # tracked books go with the user through the foreign key cascade
        session.delete(user)
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception("Failed to delete user", user_id=user_id, error=e)
        raise HTTPException(status_code=500, detail="Failed to delete user")
    logger.info("Deleted user", user_id=user_id)
    return Response(status_code=204)
