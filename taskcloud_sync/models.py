"""Client-side task types and sync outcomes."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional


class Priority(str, Enum):
    HIGH = 'high'
    MID = 'mid'
    LOW = 'low'


class Category(str, Enum):
    WORK = 'work'
    PERSONAL = 'personal'


class TaskStatus(str, Enum):
    UNFINISHED = 'unfinished'
    FINISHED = 'finished'

    def flipped(self) -> 'TaskStatus':
        return TaskStatus.UNFINISHED if self is TaskStatus.FINISHED else TaskStatus.FINISHED


class SyncStatus(str, Enum):
    """Status notifications emitted to the UI while an operation runs."""
    SYNCING = 'syncing'
    SYNCED = 'synced'
    ERROR = 'error'
    UNSYNCED = 'unsynced'


class SyncState(str, Enum):
    SYNCED = 'synced'
    LOCAL_ONLY = 'local_only'
    FAILED = 'failed'


def _enum_or(enum_cls, raw: Any, default):
    try:
        return enum_cls(raw)
    except ValueError:
        return default


@dataclass
class Task:
    id: str = ''
    title: str = ''
    subtitle: str = ''
    priority: Priority = Priority.MID
    category: Category = Category.PERSONAL
    start_date: str = ''
    start_time: str = ''
    end_time: str = ''
    deadline: str = ''
    tags: List[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.UNFINISHED
    create_time: str = ''
    focus_time: Optional[int] = None

    def copy(self, **changes: Any) -> 'Task':
        task = replace(self, **changes)
        if 'tags' not in changes:
            task.tags = list(self.tags)
        return task

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used by the browser cache."""
        data: Dict[str, Any] = {
            'id': self.id,
            'title': self.title,
            'subTitle': self.subtitle,
            'priority': self.priority.value,
            'category': self.category.value,
            'startDate': self.start_date,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'deadline': self.deadline,
            'tags': list(self.tags),
            'status': self.status.value,
            'createTime': self.create_time,
        }
        if self.focus_time is not None:
            data['focusTime'] = self.focus_time
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        focus = data.get('focusTime')
        return cls(
            id=str(data.get('id') or ''),
            title=data.get('title') or '',
            subtitle=data.get('subTitle') or '',
            priority=_enum_or(Priority, data.get('priority'), Priority.MID),
            category=_enum_or(Category, data.get('category'), Category.PERSONAL),
            start_date=data.get('startDate') or '',
            start_time=data.get('startTime') or '',
            end_time=data.get('endTime') or '',
            deadline=data.get('deadline') or '',
            tags=[str(t) for t in (data.get('tags') or [])],
            status=_enum_or(TaskStatus, data.get('status'), TaskStatus.UNFINISHED),
            create_time=data.get('createTime') or '',
            focus_time=focus if isinstance(focus, int) and not isinstance(focus, bool) and focus > 0 else None,
        )


@dataclass
class SyncResult:
    """Outcome of one orchestrator operation.

    ``SYNCED``: local cache and remote store both accepted the change.
    ``LOCAL_ONLY``: the local cache was updated but the remote call was
    skipped or failed (``reason`` says which).
    ``FAILED``: the operation could not be applied locally either.
    """
    state: SyncState
    reason: str = ''
    task: Optional[Task] = None

    @property
    def ok(self) -> bool:
        return self.state is not SyncState.FAILED

    @classmethod
    def synced(cls, task: Optional[Task] = None) -> 'SyncResult':
        return cls(SyncState.SYNCED, task=task)

    @classmethod
    def local_only(cls, reason: str, task: Optional[Task] = None) -> 'SyncResult':
        return cls(SyncState.LOCAL_ONLY, reason, task)

    @classmethod
    def failed(cls, reason: str) -> 'SyncResult':
        return cls(SyncState.FAILED, reason)
