from datetime import datetime, timedelta, timezone
from typing import Annotated, Literal

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlmodel import Session, select

from app.internal.env_settings import Settings
from app.internal.models import User
from app.util.db import get_session
from app.util.log import logger

TokenType = Literal["access", "refresh"]

ph = PasswordHasher()


class InvalidTokenError(ValueError):
    pass


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


def create_user(username: str, password: str) -> User:
    return User(username=username, password=ph.hash(password))


def is_correct_password(user: User, password: str) -> bool:
    try:
        return ph.verify(user.password, password)
    except (VerificationError, InvalidHashError):
        return False


def authenticate_user(session: Session, username: str, password: str) -> User | None:
    user = session.exec(select(User).where(User.username == username)).one_or_none()
    if not user:
        return None
    if not is_correct_password(user, password):
        logger.info("Failed login attempt", username=username)
        return None

    if ph.check_needs_rehash(user.password):
        user.password = ph.hash(password)
        session.add(user)
        session.commit()

    return user


def _create_token(user: User, token_type: TokenType, lifetime: timedelta) -> str:
    auth = Settings().auth
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, auth.jwt_secret_key, algorithm=auth.jwt_algorithm)


def create_access_token(user: User) -> str:
    minutes = Settings().auth.access_token_expiry_minutes
    return _create_token(user, "access", timedelta(minutes=minutes))


def create_refresh_token(user: User) -> str:
    days = Settings().auth.refresh_token_expiry_days
    return _create_token(user, "refresh", timedelta(days=days))


def create_token_pair(user: User) -> TokenPair:
    return TokenPair(
        access_token=create_access_token(user),
        refresh_token=create_refresh_token(user),
    )


def decode_token(token: str, expected_type: TokenType) -> int:
    """Verify a token and return the user id it was issued for."""
    auth = Settings().auth
    try:
        payload = jwt.decode(token, auth.jwt_secret_key, algorithms=[auth.jwt_algorithm])
    except jwt.PyJWTError as e:
        raise InvalidTokenError(str(e)) from e

    if payload.get("type") != expected_type:
        raise InvalidTokenError(f"Expected a {expected_type} token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTokenError("Token has no valid subject") from e


class JWTAuth:
    """
    Dependency resolving the user of a request from its `Authorization: Bearer` access token.
    Any problem with the token or a user that no longer exists results in a 401.
    """

    async def __call__(
        self,
        session: Annotated[Session, Depends(get_session)],
        credentials: Annotated[
            HTTPAuthorizationCredentials | None, Security(HTTPBearer(auto_error=False))
        ],
    ) -> User:
        if credentials is None:
            raise self._unauthorized("Not authenticated")

        try:
            user_id = decode_token(credentials.credentials, "access")
        except InvalidTokenError as e:
            logger.debug("Rejected access token", error=str(e))
            raise self._unauthorized("Invalid token") from None

        user = session.get(User, user_id)
        if user is None:
            raise self._unauthorized("Invalid token")
        return user

    @staticmethod
    def _unauthorized(detail: str) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
