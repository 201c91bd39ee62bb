from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

import os
import logging

from .config import DATABASE_URL

logger = logging.getLogger(__name__)


def _sqlite_path_from_url(url: str | None) -> str | None:
    if not url:
        return None
    if url.startswith('sqlite+aiosqlite:///'):
        path = url.replace('sqlite+aiosqlite:///', '', 1)
    elif url.startswith('sqlite:///'):
        path = url.replace('sqlite:///', '', 1)
    else:
        return None
    if path.startswith('./'):
        path = path[2:]
    return os.path.abspath(path)


def _ensure_sqlite_dir(url: str | None) -> None:
    db_path = _sqlite_path_from_url(url)
    if not db_path:
        return
    parent = os.path.dirname(db_path)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)


_ensure_sqlite_dir(DATABASE_URL)

engine = create_async_engine(DATABASE_URL, echo=False, future=True, poolclass=NullPool)

async_session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db():
    """Create all tables. Safe to call repeatedly."""
    # models must be imported so their tables are registered on the metadata
    from . import models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info('database initialized url=%s', DATABASE_URL)


async def dispose_db():
    await engine.dispose()
