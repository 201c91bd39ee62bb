from typing import Any, List, Optional, Union
import json
import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel import select

from .auth import get_owner_scope
from .db import async_session
from .models import CATEGORIES, PRIORITIES, RecycleBinItem, Task
from .utils import envelope, format_naive, normalize_tags, now_local, parse_naive_datetime

router = APIRouter(prefix='/api/tasks')
logger = logging.getLogger(__name__)


class TaskPayload(BaseModel):
    """Create/update body. Every field is optional so PUT can be partial."""
    title: Optional[str] = None
    content: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[Union[str, List[str]]] = None
    is_completed: Optional[Union[bool, int]] = None
    reminder_enabled: Optional[Union[bool, int]] = None
    reminder_time: Optional[str] = None
    focus_time: Optional[int] = None


class CompletePayload(BaseModel):
    is_completed: Optional[Union[bool, int]] = None


class FocusTimePayload(BaseModel):
    focus_time: Any = None


def task_to_dict(task: Task) -> dict:
    return {
        'id': task.id,
        'title': task.title,
        'content': task.content,
        'start_time': format_naive(task.start_time),
        'end_time': format_naive(task.end_time),
        'priority': task.priority,
        'category': task.category,
        'tags': task.tags,
        'is_completed': task.is_completed,
        'reminder_enabled': task.reminder_enabled,
        'reminder_time': format_naive(task.reminder_time),
        'focus_time': task.focus_time,
        'create_time': format_naive(task.create_time),
        'update_time': format_naive(task.update_time),
    }


def _flag(value: Union[bool, int, None]) -> int:
    return 1 if value in (True, 1) else 0


def _timestamp(field: str, value: Optional[str]):
    try:
        return parse_naive_datetime(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f'{field} must look like YYYY-MM-DDTHH:MM:SS')


def _apply_fields(task: Task, fields: dict) -> None:
    """Copy validated payload fields onto a Task row."""
    if 'title' in fields:
        title = (fields['title'] or '').strip()
        if not title:
            raise HTTPException(status_code=400, detail='title is required')
        if len(title) > 100:
            raise HTTPException(status_code=400, detail='title must be at most 100 characters')
        task.title = title
    if 'content' in fields:
        task.content = fields['content']
    if 'start_time' in fields:
        task.start_time = _timestamp('start_time', fields['start_time'])
    if 'end_time' in fields:
        task.end_time = _timestamp('end_time', fields['end_time'])
    if fields.get('priority') is not None:
        if fields['priority'] not in PRIORITIES:
            raise HTTPException(status_code=400, detail=f"priority must be one of {', '.join(PRIORITIES)}")
        task.priority = fields['priority']
    if fields.get('category') is not None:
        if fields['category'] not in CATEGORIES:
            raise HTTPException(status_code=400, detail=f"category must be one of {', '.join(CATEGORIES)}")
        task.category = fields['category']
    if 'tags' in fields:
        task.tags = normalize_tags(fields['tags'])
    if fields.get('is_completed') is not None:
        task.is_completed = _flag(fields['is_completed'])
    if fields.get('reminder_enabled') is not None:
        task.reminder_enabled = _flag(fields['reminder_enabled'])
    if 'reminder_time' in fields:
        task.reminder_time = _timestamp('reminder_time', fields['reminder_time'])
    # non-positive focus times are ignored rather than rejected on full updates
    if isinstance(fields.get('focus_time'), int) and fields['focus_time'] > 0:
        task.focus_time = fields['focus_time']


async def _get_owned_task(sess, task_id: int, owner: str) -> Task:
    q = await sess.exec(select(Task).where(Task.id == task_id).where(Task.owner == owner))
    task = q.first()
    if not task:
        raise HTTPException(status_code=404, detail='task not found')
    return task


async def move_to_recycle_bin(sess, task: Task) -> RecycleBinItem:
    """Snapshot the task into the recycle bin and delete the active row.

    The caller commits.
    """
    item = RecycleBinItem(owner=task.owner, task_id=task.id, task_data=json.dumps(task_to_dict(task)))
    sess.add(item)
    await sess.delete(task)
    return item


@router.get('')
async def list_tasks(owner: str = Depends(get_owner_scope)):
    async with async_session() as sess:
        q = await sess.exec(
            select(Task).where(Task.owner == owner).order_by(Task.create_time.desc(), Task.id.desc())
        )
        tasks = q.all()
    return envelope([task_to_dict(t) for t in tasks])


@router.post('')
async def create_task(payload: TaskPayload, owner: str = Depends(get_owner_scope)):
    fields = payload.model_dump(exclude_unset=True)
    fields.setdefault('title', None)
    task = Task(owner=owner, title='')
    _apply_fields(task, fields)
    async with async_session() as sess:
        sess.add(task)
        await sess.commit()
        await sess.refresh(task)
    logger.info('created task id=%s owner=%s', task.id, owner)
    return JSONResponse(status_code=201, content=envelope(task_to_dict(task), 'task created'))


# Registered before /{task_id} so "clear-completed" is not parsed as an id.
@router.delete('/clear-completed')
@router.delete('/completed/clear')
async def clear_completed(owner: str = Depends(get_owner_scope)):
    async with async_session() as sess:
        q = await sess.exec(select(Task).where(Task.owner == owner).where(Task.is_completed == 1))
        done = q.all()
        for task in done:
            await move_to_recycle_bin(sess, task)
        await sess.commit()
    logger.info('cleared %d completed tasks owner=%s', len(done), owner)
    return envelope({'count': len(done)}, 'completed tasks cleared')


@router.put('/{task_id}')
async def update_task(task_id: int, payload: TaskPayload, owner: str = Depends(get_owner_scope)):
    fields = payload.model_dump(exclude_unset=True)
    async with async_session() as sess:
        task = await _get_owned_task(sess, task_id, owner)
        _apply_fields(task, fields)
        task.update_time = now_local()
        sess.add(task)
        await sess.commit()
        await sess.refresh(task)
    return envelope(task_to_dict(task), 'task updated')


@router.put('/{task_id}/complete')
@router.patch('/{task_id}/toggle')
async def set_completed(task_id: int, payload: CompletePayload, owner: str = Depends(get_owner_scope)):
    async with async_session() as sess:
        task = await _get_owned_task(sess, task_id, owner)
        if payload.is_completed is None:
            task.is_completed = 0 if task.is_completed else 1
        else:
            task.is_completed = _flag(payload.is_completed)
        task.update_time = now_local()
        sess.add(task)
        await sess.commit()
        await sess.refresh(task)
    return envelope({'id': task.id, 'is_completed': task.is_completed}, 'status updated')


@router.put('/{task_id}/focus-time')
async def update_focus_time(task_id: int, payload: FocusTimePayload, owner: str = Depends(get_owner_scope)):
    value = payload.focus_time
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise HTTPException(status_code=400, detail='focus_time must be a positive integer')
    async with async_session() as sess:
        task = await _get_owned_task(sess, task_id, owner)
        task.focus_time = value
        task.update_time = now_local()
        sess.add(task)
        await sess.commit()
        await sess.refresh(task)
    return envelope({'id': task.id, 'focus_time': task.focus_time}, 'focus time updated')


@router.delete('/{task_id}')
async def delete_task(task_id: int, owner: str = Depends(get_owner_scope)):
    async with async_session() as sess:
        task = await _get_owned_task(sess, task_id, owner)
        await move_to_recycle_bin(sess, task)
        await sess.commit()
    logger.info('moved task id=%s to recycle bin owner=%s', task_id, owner)
    return envelope(None, 'task deleted')
