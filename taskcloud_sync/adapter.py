"""Conversion between the server's wire format and the client Task.

No timezone conversion happens anywhere: wire timestamps are treated as
unzoned local wall-clock time and are taken apart by position.
"""

import random
import re
import time
from datetime import datetime
from typing import Any, Dict, Optional

from .models import Category, Priority, Task, TaskStatus

WIRE_TO_PRIORITY = {
    'high': Priority.HIGH,
    'medium': Priority.MID,
    'low': Priority.LOW,
}
PRIORITY_TO_WIRE = {v: k for k, v in WIRE_TO_PRIORITY.items()}

# fixed-position match; a trailing ".000Z" or offset is ignored, not applied
_WIRE_TS_RE = re.compile(r'^(\d{4}-\d{2}-\d{2})T(\d{2}):(\d{2}):(\d{2})')

_B36 = '0123456789abcdefghijklmnopqrstuvwxyz'


def format_datetime_from_iso(value: Optional[str]) -> str:
    """``2026-02-02T07:00:00.000Z`` -> ``2026-02-02 07:00:00``; anything else -> ''."""
    if not value:
        return ''
    m = _WIRE_TS_RE.match(str(value))
    if not m:
        return ''
    return f"{m.group(1)} {m.group(2)}:{m.group(3)}:{m.group(4)}"


def _date_part(dt: str) -> str:
    return dt.split(' ')[0] if dt else ''


def _hhmm_part(dt: str) -> str:
    return dt.split(' ')[1][:5] if dt else ''


def to_internal(data: Dict[str, Any]) -> Task:
    start = format_datetime_from_iso(data.get('start_time'))
    end = format_datetime_from_iso(data.get('end_time'))
    created = format_datetime_from_iso(data.get('create_time'))
    try:
        category = Category(data.get('category'))
    except ValueError:
        category = Category.PERSONAL
    focus = data.get('focus_time')
    tags = data.get('tags') or ''
    return Task(
        id=str(data.get('id', '')),
        title=data.get('title') or '',
        subtitle=data.get('content') or '',
        priority=WIRE_TO_PRIORITY.get(data.get('priority') or 'medium', Priority.MID),
        category=category,
        start_date=_date_part(start),
        start_time=_hhmm_part(start),
        end_time=_hhmm_part(end),
        deadline=end,
        tags=[t for t in tags.split(',') if t],
        status=TaskStatus.FINISHED if data.get('is_completed') else TaskStatus.UNFINISHED,
        create_time=created or datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        focus_time=focus if isinstance(focus, int) and not isinstance(focus, bool) and focus > 0 else None,
    )


def to_wire(task: Task) -> Dict[str, Any]:
    start_dt = f"{task.start_date}T{task.start_time}:00" if task.start_date and task.start_time else None
    end_date = _date_part(task.deadline) if task.deadline else task.start_date
    end_dt = f"{end_date}T{task.end_time}:00" if end_date and task.end_time else None
    data: Dict[str, Any] = {
        'title': task.title,
        'content': task.subtitle,
        'start_time': start_dt,
        'end_time': end_dt,
        'priority': PRIORITY_TO_WIRE.get(task.priority, 'medium'),
        'category': task.category.value,
        'tags': ','.join(task.tags),
        'is_completed': 1 if task.status is TaskStatus.FINISHED else 0,
    }
    if task.focus_time:
        data['focus_time'] = task.focus_time
    return data


def _base36(n: int) -> str:
    out = ''
    while True:
        n, r = divmod(n, 36)
        out = _B36[r] + out
        if n == 0:
            return out


def generate_id() -> str:
    """Time based id with a random suffix: practically, not globally, unique."""
    suffix = ''.join(random.choice(_B36) for _ in range(11))
    return _base36(int(time.time() * 1000)) + suffix


def remote_id(task_id: str) -> Optional[int]:
    """Return the server's integer key for a cached id, or None.

    Ids generated on the client are base-36 strings the server has never
    seen; only ids that came back from the server are numeric.
    """
    try:
        return int(task_id)
    except (TypeError, ValueError):
        return None
