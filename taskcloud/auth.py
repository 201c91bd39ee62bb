from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import select
from passlib.context import CryptContext
from jose import JWTError, jwt
from pydantic import BaseModel
from .models import User
from .db import async_session
from . import config
import logging

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SHARED_USER_HEADER = "X-User-ID"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


class TokenData(BaseModel):
    email: Optional[str] = None


async def get_user_by_email(email: str) -> Optional[User]:
    async with async_session() as sess:
        q = await sess.exec(select(User).where(User.email == email))
        return q.first()


async def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


async def authenticate_user(email: str, password: str) -> Optional[User]:
    user = await get_user_by_email(email)
    if not user:
        return None
    if not await verify_password(password, user.password_hash):
        return None
    return user


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    # RFC 7519 recommends NumericDate (seconds since epoch). Encode as int.
    to_encode.update({"exp": int(expire.timestamp())})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=ALGORITHM)


def user_scope(user: User) -> str:
    return f"user:{user.id}"


def shared_scope(user_id: str) -> str:
    return f"shared:{user_id}"


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[User]:
    """Resolve the bearer token to a User.

    Returns None when no token was sent. A token that is present but cannot be
    decoded, has expired, or names an unknown user is rejected with 403.
    """
    if not token:
        return None
    invalid = HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise invalid
        token_data = TokenData(email=email)
    except JWTError:
        logger.info('rejected bearer token: decode failed')
        raise invalid
    user = await get_user_by_email(token_data.email)
    if user is None:
        logger.info('rejected bearer token: unknown subject %s', token_data.email)
        raise invalid
    return user


async def require_login(user: Optional[User] = Depends(get_current_user)) -> User:
    """Dependency that enforces an authenticated user."""
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")
    return user


async def get_owner_scope(request: Request, user: Optional[User] = Depends(get_current_user)) -> str:
    """Return the data scope for task and recycle-bin requests.

    A bearer token always wins. Without one, the shared mode accepts an
    X-User-ID header when it is enabled in the configuration.
    """
    if user is not None:
        return user_scope(user)
    if config.SHARED_USER_HEADER_ENABLED:
        shared_id = (request.headers.get(SHARED_USER_HEADER) or '').strip()
        if shared_id:
            return shared_scope(shared_id)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")
