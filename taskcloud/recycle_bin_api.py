import json
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import delete as sqlalchemy_delete
from sqlmodel import select

from .auth import get_owner_scope
from .db import async_session
from .models import RecycleBinItem, Task
from .tasks_api import task_to_dict
from .utils import envelope, format_naive, now_local, parse_naive_datetime

router = APIRouter(prefix='/api/recycle-bin')
logger = logging.getLogger(__name__)


def item_to_dict(item: RecycleBinItem) -> dict:
    try:
        task_data = json.loads(item.task_data)
    except ValueError:
        logger.warning('recycle bin item %s has unreadable task_data', item.id)
        task_data = {}
    return {
        'id': item.id,
        'task_id': item.task_id,
        'task_data': task_data,
        'deleted_at': format_naive(item.deleted_at),
    }


def _task_from_snapshot(data: dict, owner: str) -> Task:
    def ts(key):
        try:
            return parse_naive_datetime(data.get(key))
        except ValueError:
            return None

    task = Task(
        owner=owner,
        title=data.get('title') or '',
        content=data.get('content'),
        start_time=ts('start_time'),
        end_time=ts('end_time'),
        priority=data.get('priority') or 'medium',
        category=data.get('category') or 'personal',
        tags=data.get('tags') or '',
        is_completed=1 if data.get('is_completed') else 0,
        reminder_enabled=1 if data.get('reminder_enabled') else 0,
        reminder_time=ts('reminder_time'),
        create_time=ts('create_time') or now_local(),
        update_time=now_local(),
    )
    if isinstance(data.get('focus_time'), int) and data['focus_time'] > 0:
        task.focus_time = data['focus_time']
    return task


@router.get('')
async def list_recycle_bin(owner: str = Depends(get_owner_scope)):
    async with async_session() as sess:
        q = await sess.exec(
            select(RecycleBinItem)
            .where(RecycleBinItem.owner == owner)
            .order_by(RecycleBinItem.deleted_at.desc(), RecycleBinItem.id.desc())
        )
        items = q.all()
    return envelope([item_to_dict(i) for i in items])


@router.post('/{item_id}/restore')
async def restore_item(item_id: int, owner: str = Depends(get_owner_scope)):
    async with async_session() as sess:
        q = await sess.exec(
            select(RecycleBinItem).where(RecycleBinItem.id == item_id).where(RecycleBinItem.owner == owner)
        )
        item = q.first()
        if not item:
            raise HTTPException(status_code=404, detail='recycle bin item not found')
        task = _task_from_snapshot(item_to_dict(item)['task_data'], owner)
        # reuse the original id unless something has taken it since
        if item.task_id is not None and await sess.get(Task, item.task_id) is None:
            task.id = item.task_id
        sess.add(task)
        await sess.delete(item)
        await sess.commit()
        await sess.refresh(task)
    logger.info('restored recycle bin item %s as task id=%s owner=%s', item_id, task.id, owner)
    return envelope(task_to_dict(task), 'task restored')


# Registered before /{item_id} so "clear" is not parsed as an id.
@router.delete('/clear')
async def clear_recycle_bin(owner: str = Depends(get_owner_scope)):
    async with async_session() as sess:
        await sess.execute(sqlalchemy_delete(RecycleBinItem).where(RecycleBinItem.owner == owner))
        await sess.commit()
    logger.info('cleared recycle bin owner=%s', owner)
    return envelope(None, 'recycle bin cleared')


@router.delete('/{item_id}')
async def purge_item(item_id: int, owner: str = Depends(get_owner_scope)):
    async with async_session() as sess:
        q = await sess.exec(
            select(RecycleBinItem).where(RecycleBinItem.id == item_id).where(RecycleBinItem.owner == owner)
        )
        item = q.first()
        if not item:
            raise HTTPException(status_code=404, detail='recycle bin item not found')
        await sess.delete(item)
        await sess.commit()
    return envelope(None, 'permanently deleted')
