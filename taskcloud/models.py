from typing import Optional
from datetime import datetime
from .utils import now_local
from .config import DEFAULT_FOCUS_TIME
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


PRIORITIES = ('high', 'medium', 'low')
CATEGORIES = ('work', 'personal')

# Wall-clock timestamps without a zone, stored and returned as given.
NAIVE_DATETIME = DateTime(timezone=False)


class User(SQLModel, table=True):
    """Registered account. Email is the login name and the client cache key."""
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, sa_column_kwargs={"unique": True})
    nickname: str
    password_hash: str
    create_time: datetime | None = Field(default_factory=now_local, sa_type=NAIVE_DATETIME)


class Task(SQLModel, table=True):
    # AUTOINCREMENT keeps SQLite from handing out the id of a deleted row
    # again; a restored task may come back with its original id.
    __table_args__ = {'sqlite_autoincrement': True}

    id: Optional[int] = Field(default=None, primary_key=True)
    # Scope string: "user:<id>" for token auth, "shared:<X-User-ID>" otherwise.
    owner: str = Field(index=True)
    title: str = Field(max_length=100)
    content: Optional[str] = None
    # Naive wall-clock datetimes; never timezone converted.
    start_time: Optional[datetime] = Field(default=None, sa_type=NAIVE_DATETIME)
    end_time: Optional[datetime] = Field(default=None, sa_type=NAIVE_DATETIME)
    priority: str = Field(default='medium')
    category: str = Field(default='personal')
    tags: str = Field(default='')
    is_completed: int = Field(default=0, index=True)
    reminder_enabled: int = Field(default=0)
    reminder_time: Optional[datetime] = Field(default=None, sa_type=NAIVE_DATETIME)
    focus_time: int = Field(default=DEFAULT_FOCUS_TIME)
    create_time: datetime | None = Field(default_factory=now_local, index=True, sa_type=NAIVE_DATETIME)
    update_time: datetime | None = Field(default_factory=now_local, sa_type=NAIVE_DATETIME)


class RecycleBinItem(SQLModel, table=True):
    """A deleted task kept as a JSON snapshot so it can be restored verbatim."""
    id: Optional[int] = Field(default=None, primary_key=True)
    owner: str = Field(index=True)
    task_id: Optional[int] = Field(default=None, index=True)
    task_data: str
    deleted_at: datetime | None = Field(default_factory=now_local, index=True, sa_type=NAIVE_DATETIME)
