from typing import Optional
import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError

from . import config
from .auth import authenticate_user, create_access_token, get_user_by_email, pwd_context, require_login
from .db import async_session
from .models import User
from .utils import envelope, format_naive

router = APIRouter(prefix='/api/auth')
logger = logging.getLogger(__name__)


class RegisterRequest(BaseModel):
    nickname: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirmPassword: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


def user_to_dict(user: User) -> dict:
    return {
        'id': user.id,
        'email': user.email,
        'nickname': user.nickname,
        'create_time': format_naive(user.create_time),
    }


def _login_payload(user: User) -> dict:
    token = create_access_token(data={'sub': user.email})
    return {'token': token, 'user': {'id': user.id, 'email': user.email, 'nickname': user.nickname}}


@router.post('/register')
async def register(req: RegisterRequest):
    nickname = (req.nickname or '').strip()
    email = (req.email or '').strip()
    if not nickname or not email or not req.password or not req.confirmPassword:
        raise HTTPException(status_code=400, detail='nickname, email, password and confirmPassword are required')
    if req.password != req.confirmPassword:
        raise HTTPException(status_code=400, detail='passwords do not match')
    if len(req.password) < config.MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f'password must be at least {config.MIN_PASSWORD_LENGTH} characters')
    if await get_user_by_email(email):
        raise HTTPException(status_code=409, detail='email already registered')

    user = User(email=email, nickname=nickname, password_hash=pwd_context.hash(req.password))
    async with async_session() as sess:
        sess.add(user)
        try:
            await sess.commit()
        except IntegrityError:
            # lost a race with a concurrent registration of the same email
            await sess.rollback()
            raise HTTPException(status_code=409, detail='email already registered')
        await sess.refresh(user)
    logger.info('registered user id=%s email=%s', user.id, user.email)
    return envelope(_login_payload(user), 'registered')


@router.post('/login')
async def login(req: LoginRequest):
    if not req.email or not req.password:
        raise HTTPException(status_code=400, detail='email and password are required')
    user = await authenticate_user(req.email.strip(), req.password)
    if not user:
        raise HTTPException(status_code=401, detail='incorrect email or password')
    logger.info('login ok user id=%s', user.id)
    return envelope(_login_payload(user), 'logged in')


@router.get('/me')
async def me(current_user: User = Depends(require_login)):
    return envelope(user_to_dict(current_user))
