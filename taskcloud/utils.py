from datetime import datetime
from typing import Any, Optional
import re

# Leading YYYY-MM-DDTHH:MM:SS of an ISO timestamp. Anything after the seconds
# (fractions, "Z", offsets) is ignored rather than converted.
_NAIVE_ISO_RE = re.compile(r'^(\d{4}-\d{2}-\d{2})[T ](\d{2}):(\d{2}):(\d{2})')


def now_local() -> datetime:
    """Return the naive server wall-clock time used for row timestamps."""
    return datetime.now().replace(microsecond=0)


def parse_naive_datetime(value: Any) -> Optional[datetime]:
    """Parse a wire timestamp into a naive datetime without any tz conversion.

    ``2026-02-02T07:00:00.000Z`` and ``2026-02-02T07:00:00`` both become
    ``datetime(2026, 2, 2, 7, 0, 0)``. Empty values yield None; anything else
    that does not match the fixed shape raises ValueError.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    m = _NAIVE_ISO_RE.match(str(value))
    if not m:
        raise ValueError(f'invalid timestamp: {value!r}')
    return datetime.fromisoformat(f"{m.group(1)}T{m.group(2)}:{m.group(3)}:{m.group(4)}")


def format_naive(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.replace(tzinfo=None, microsecond=0).isoformat()


def envelope(data: Any = None, msg: str = 'ok', code: int = 200) -> dict:
    """Success body shared by every API endpoint."""
    return {'code': code, 'data': data, 'msg': msg}


def error_body(msg: str, code: int) -> dict:
    return {'code': code, 'msg': msg}


def normalize_tags(tags: Any) -> str:
    """Return tags as the comma-joined wire string with empty entries removed."""
    if tags is None:
        return ''
    if isinstance(tags, (list, tuple)):
        parts = [str(t).strip() for t in tags]
    else:
        parts = [p.strip() for p in str(tags).split(',')]
    return ','.join(p for p in parts if p)
