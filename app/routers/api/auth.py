from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.internal.auth.authentication import (
    InvalidTokenError,
    TokenPair,
    authenticate_user,
    create_token_pair,
    create_user,
    decode_token,
)
from app.internal.models import User, UserRead
from app.util.db import get_session
from app.util.log import logger

router = APIRouter(prefix="/auth", tags=["Auth"])


class RegisterBody(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=8, max_length=128)


class LoginBody(BaseModel):
    username: str
    password: str


class RefreshBody(BaseModel):
    refresh_token: str


@router.post("/register", response_model=UserRead, status_code=201)
async def register(
    body: RegisterBody,
    session: Annotated[Session, Depends(get_session)],
):
    if session.exec(select(User).where(User.username == body.username)).first():
        raise HTTPException(status_code=409, detail="Username already taken")

    user = create_user(body.username, body.password)
    try:
        session.add(user)
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.info("Duplicate registration detected", username=body.username)
        raise HTTPException(status_code=409, detail="Username already taken")

    session.refresh(user)
    logger.info("Registered new user", username=user.username, user_id=user.id)
    return UserRead.model_validate(user, from_attributes=True)


@router.post("/login", response_model=TokenPair)
async def login(
    body: LoginBody,
    session: Annotated[Session, Depends(get_session)],
):
    user = authenticate_user(session, body.username, body.password)
    if not user:
        raise HTTPException(
            status_code=401,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    logger.info("User logged in", user_id=user.id)
    return create_token_pair(user)


@router.post("/refresh", response_model=TokenPair)
async def refresh(
    body: RefreshBody,
    session: Annotated[Session, Depends(get_session)],
):
    try:
        user_id = decode_token(body.refresh_token, "refresh")
    except InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user = session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    return create_token_pair(user)
