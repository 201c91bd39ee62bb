"""Local-first task storage.

Every operation writes the local cache first and then makes a best-effort
call to the server. Remote failures never raise into the caller: they are
logged, reported through the status callback and recorded in the returned
``SyncResult`` as ``LOCAL_ONLY``. Only a failure of the local write itself
produces ``FAILED``.

Operations are plain coroutines on a single event loop. They suspend only at
remote calls and are not serialized against each other, so two overlapping
updates of the same task can land in either order (last response wins).
"""

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import httpx

from .adapter import generate_id, remote_id, to_internal, to_wire
from .client import ApiClient, ApiResult, AuthApi, NETWORK_ERROR_MSG, TaskApi, tasks_from_result
from .config import Config
from .local_store import LocalCache, SqliteKeyValueStore
from .models import SyncResult, SyncState, SyncStatus, Task, TaskStatus

logger = logging.getLogger(__name__)

StatusCallback = Callable[[SyncStatus, str], None]

NO_SERVER_ID = 'task has no server id'


class RemoteTaskStore(Protocol):
    async def get_all(self) -> ApiResult: ...

    async def create(self, data: Dict[str, Any]) -> ApiResult: ...

    async def update(self, task_id: int, data: Dict[str, Any]) -> ApiResult: ...

    async def toggle_complete(self, task_id: int, is_completed: bool) -> ApiResult: ...

    async def update_focus_time(self, task_id: int, seconds: int) -> ApiResult: ...

    async def delete(self, task_id: int) -> ApiResult: ...

    async def clear_completed(self) -> ApiResult: ...


class CloudStorage:
    """Task CRUD and recycle bin for the UI layer."""

    def __init__(self, cache: LocalCache, remote: RemoteTaskStore,
                 on_status: Optional[StatusCallback] = None,
                 api: Optional[ApiClient] = None):
        self.cache = cache
        self.remote = remote
        self.auth: Optional[AuthApi] = AuthApi(api) if api is not None else None
        self._api = api
        self._on_status = on_status
        self.last_result: Optional[SyncResult] = None

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None, http: Optional[httpx.AsyncClient] = None,
                    on_status: Optional[StatusCallback] = None) -> 'CloudStorage':
        """Wire a storage to a SQLite cache file and the configured server."""
        cfg = cfg or Config()
        cache = LocalCache(SqliteKeyValueStore(cfg.local_db_path))
        api = ApiClient(cache, base_url=cfg.server_url, http=http,
                        shared_user_id=cfg.shared_user_id, timeout=cfg.timeout)
        return cls(cache, TaskApi(api), on_status=on_status, api=api)

    async def aclose(self) -> None:
        if self._api is not None:
            await self._api.aclose()

    def set_sync_status_callback(self, callback: Optional[StatusCallback]) -> None:
        self._on_status = callback

    # ---- helpers ----

    def _notify(self, status: SyncStatus, message: str) -> None:
        logger.debug('sync status %s: %s', status.value, message)
        if self._on_status is None:
            return
        try:
            self._on_status(status, message)
        except Exception:
            logger.exception('sync status callback failed')

    def _done(self, result: SyncResult) -> SyncResult:
        self.last_result = result
        return result

    def _fail(self, message: str, reason: str) -> SyncResult:
        self._notify(SyncStatus.ERROR, message)
        return self._done(SyncResult.failed(reason))

    async def _remote(self, what: str, call: Callable[..., Awaitable[ApiResult]], *args) -> ApiResult:
        try:
            result = await call(*args)
        except Exception as e:
            logger.warning('remote %s raised: %s', what, e)
            return ApiResult(False, msg=str(e) or NETWORK_ERROR_MSG)
        if not result.success:
            logger.info('remote %s failed: %s', what, result.msg)
        return result

    @staticmethod
    def _find(tasks: List[Task], task_id: str) -> Optional[Task]:
        return next((t for t in tasks if t.id == task_id), None)

    # ---- tasks ----

    async def get_tasks(self) -> List[Task]:
        """Fetch from the server, refreshing the cache; fall back to the cache."""
        self._notify(SyncStatus.SYNCING, 'Syncing...')
        result = await self._remote('fetch', self.remote.get_all)
        reason = result.msg or 'server unavailable'
        rows = tasks_from_result(result)
        tasks = None
        if rows is not None:
            try:
                tasks = [to_internal(r) for r in rows]
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning('server returned an unreadable task list: %s', e)
                reason = 'unreadable server response'
        try:
            if tasks is not None:
                self.cache.save_tasks(tasks)
                self._notify(SyncStatus.SYNCED, 'Sync complete')
                self._done(SyncResult.synced())
                return tasks
            if self.cache.has_tasks():
                self._notify(SyncStatus.SYNCED, 'Loaded local data')
                self._done(SyncResult.local_only(reason))
                return self.cache.load_tasks()
        except Exception as e:
            logger.exception('reading or writing the task cache failed')
            self._fail('Sync failed', str(e))
            return []
        self._fail('Sync failed', reason)
        return []

    async def add_task(self, task: Task) -> SyncResult:
        self._notify(SyncStatus.SYNCING, 'Saving...')
        if not task.id:
            task.id = generate_id()
        if not task.create_time:
            task.create_time = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
        try:
            tasks = self.cache.load_tasks()
            # ids are unique within a user's list; a re-added id replaces its entry
            for i, t in enumerate(tasks):
                if t.id == task.id:
                    tasks[i] = task
                    break
            else:
                tasks.append(task)
            self.cache.save_tasks(tasks)
        except Exception as e:
            logger.exception('adding task %s to the cache failed', task.id)
            return self._fail('Save failed', str(e))

        result = await self._remote('create', self.remote.create, to_wire(task))
        if result.success:
            self._notify(SyncStatus.SYNCED, 'Saved')
            return self._done(SyncResult.synced(task))
        self._notify(SyncStatus.SYNCED, 'Saved locally')
        return self._done(SyncResult.local_only(result.msg, task))

    async def update_task(self, task: Task) -> SyncResult:
        self._notify(SyncStatus.SYNCING, 'Updating...')
        try:
            tasks = self.cache.load_tasks()
            for i, t in enumerate(tasks):
                if t.id == task.id:
                    tasks[i] = task
                    self.cache.save_tasks(tasks)
                    break
        except Exception as e:
            logger.exception('updating task %s in the cache failed', task.id)
            return self._fail('Update failed', str(e))

        rid = remote_id(task.id)
        if rid is None:
            self._notify(SyncStatus.SYNCED, 'Updated locally')
            return self._done(SyncResult.local_only(NO_SERVER_ID, task))
        result = await self._remote('update', self.remote.update, rid, to_wire(task))
        if result.success:
            self._notify(SyncStatus.SYNCED, 'Updated')
            return self._done(SyncResult.synced(task))
        self._notify(SyncStatus.SYNCED, 'Updated locally')
        return self._done(SyncResult.local_only(result.msg, task))

    async def delete_task(self, task_id: str) -> SyncResult:
        """Move a task to the recycle bin, then delete it on the server.

        The local move happens whether or not the server call succeeds.
        """
        self._notify(SyncStatus.SYNCING, 'Deleting...')
        try:
            tasks = self.cache.load_tasks()
            task = self._find(tasks, task_id)
            if task:
                recycle = self.cache.load_recycle_bin()
                recycle.append(task)
                self.cache.save_recycle_bin(recycle)
                self.cache.save_tasks([t for t in tasks if t.id != task_id])
        except Exception as e:
            logger.exception('moving task %s to the recycle bin failed', task_id)
            return self._fail('Delete failed', str(e))

        rid = remote_id(task_id)
        if rid is None:
            result = ApiResult(False, msg=NO_SERVER_ID)
        else:
            result = await self._remote('delete', self.remote.delete, rid)
        self._notify(SyncStatus.SYNCED, 'Deleted')
        if result.success:
            return self._done(SyncResult.synced(task))
        return self._done(SyncResult.local_only(result.msg, task))

    async def toggle_task_status(self, task_id: str) -> SyncResult:
        """Flip a task between unfinished and finished.

        The current status is read from the local cache only; the server is
        written but never consulted. The local flip is applied regardless of
        the server's answer.
        """
        try:
            task = self._find(self.cache.load_tasks(), task_id)
        except Exception as e:
            logger.exception('reading task %s from the cache failed', task_id)
            return self._fail('Update failed', str(e))
        if task is None:
            return self._fail('Task not found', f'task {task_id} not found')

        new_status = task.status.flipped()
        self._notify(SyncStatus.SYNCING, 'Updating...')
        rid = remote_id(task_id)
        if rid is None:
            result = ApiResult(False, msg=NO_SERVER_ID)
        else:
            result = await self._remote('toggle', self.remote.toggle_complete, rid,
                                        new_status is TaskStatus.FINISHED)

        # re-read: the cache may have changed while the request was in flight
        try:
            tasks = self.cache.load_tasks()
            current = self._find(tasks, task_id)
            if current is not None:
                current.status = new_status
                self.cache.save_tasks(tasks)
        except Exception as e:
            logger.exception('writing task %s status to the cache failed', task_id)
            return self._fail('Update failed', str(e))

        flipped = task.copy(status=new_status)
        if result.success:
            self._notify(SyncStatus.SYNCED, 'Status updated')
            return self._done(SyncResult.synced(flipped))
        if rid is None:
            self._notify(SyncStatus.SYNCED, 'Status updated locally')
        else:
            self._notify(SyncStatus.UNSYNCED, result.msg or 'Status not saved to server')
        return self._done(SyncResult.local_only(result.msg, flipped))

    async def update_focus_time(self, task_id: str, seconds: int) -> SyncResult:
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds <= 0:
            return self._fail('Invalid focus time', 'focus time must be a positive integer')
        self._notify(SyncStatus.SYNCING, 'Updating...')
        try:
            tasks = self.cache.load_tasks()
            task = self._find(tasks, task_id)
            if task is None:
                return self._fail('Task not found', f'task {task_id} not found')
            task.focus_time = seconds
            self.cache.save_tasks(tasks)
        except Exception as e:
            logger.exception('writing focus time of task %s failed', task_id)
            return self._fail('Update failed', str(e))

        rid = remote_id(task_id)
        if rid is None:
            self._notify(SyncStatus.SYNCED, 'Updated locally')
            return self._done(SyncResult.local_only(NO_SERVER_ID, task))
        result = await self._remote('focus time', self.remote.update_focus_time, rid, seconds)
        if result.success:
            self._notify(SyncStatus.SYNCED, 'Updated')
            return self._done(SyncResult.synced(task))
        self._notify(SyncStatus.SYNCED, 'Updated locally')
        return self._done(SyncResult.local_only(result.msg, task))

    async def permanent_delete(self, task_id: str) -> SyncResult:
        """Delete on the server only; the local cache is left alone."""
        rid = remote_id(task_id)
        if rid is None:
            return self._done(SyncResult.local_only(NO_SERVER_ID))
        result = await self._remote('delete', self.remote.delete, rid)
        if result.success:
            return self._done(SyncResult.synced())
        logger.warning('permanent delete of task %s failed: %s', task_id, result.msg)
        return self._done(SyncResult.local_only(result.msg))

    async def permanent_delete_task(self, task_id: str) -> SyncResult:
        """Drop a task from the active list without recycling it, and from the server."""
        self._notify(SyncStatus.SYNCING, 'Deleting...')
        try:
            tasks = self.cache.load_tasks()
            self.cache.save_tasks([t for t in tasks if t.id != task_id])
        except Exception as e:
            logger.exception('removing task %s from the cache failed', task_id)
            return self._fail('Delete failed', str(e))
        result = await self.permanent_delete(task_id)
        self._notify(SyncStatus.SYNCED, 'Deleted')
        return result

    async def clear_completed(self) -> SyncResult:
        """Move every finished task to the recycle bin and clear them on the server."""
        self._notify(SyncStatus.SYNCING, 'Clearing...')
        try:
            tasks = self.cache.load_tasks()
            done = [t for t in tasks if t.status is TaskStatus.FINISHED]
            if done:
                recycle = self.cache.load_recycle_bin()
                recycle.extend(done)
                self.cache.save_recycle_bin(recycle)
                self.cache.save_tasks([t for t in tasks if t.status is not TaskStatus.FINISHED])
        except Exception as e:
            logger.exception('clearing completed tasks from the cache failed')
            return self._fail('Clear failed', str(e))
        result = await self._remote('clear completed', self.remote.clear_completed)
        self._notify(SyncStatus.SYNCED, 'Cleared')
        if result.success:
            return self._done(SyncResult.synced())
        return self._done(SyncResult.local_only(result.msg))

    # ---- recycle bin (local only) ----

    async def get_recycle_bin(self) -> List[Task]:
        try:
            return self.cache.load_recycle_bin()
        except Exception:
            logger.exception('reading the recycle bin failed')
            return []

    async def restore_from_recycle_bin(self, task_id: str) -> SyncResult:
        """Take an entry out of the recycle bin and add it back as a task.

        The entry keeps its local id; the server creates a new row, so its
        server-side id may differ from the one it had before deletion. When
        the id is already active again (a refresh brought the server row
        back), the entry overwrites that task instead of adding a second one.
        """
        self._notify(SyncStatus.SYNCING, 'Restoring...')
        try:
            recycle = self.cache.load_recycle_bin()
            entry = self._find(recycle, task_id)
            if entry is None:
                return self._fail('Restore failed', f'task {task_id} is not in the recycle bin')
            self.cache.save_recycle_bin([t for t in recycle if t.id != task_id])
            active = self._find(self.cache.load_tasks(), task_id) is not None
        except Exception as e:
            logger.exception('removing task %s from the recycle bin failed', task_id)
            return self._fail('Restore failed', str(e))

        if active:
            result = await self.update_task(entry)
        else:
            result = await self.add_task(entry)
        if result.state is SyncState.FAILED:
            # put it back rather than lose it
            try:
                recycle = self.cache.load_recycle_bin()
                recycle.append(entry)
                self.cache.save_recycle_bin(recycle)
            except Exception:
                logger.exception('returning task %s to the recycle bin failed', task_id)
            return self._fail('Restore failed', result.reason)
        self._notify(SyncStatus.SYNCED, 'Restored')
        return result

    async def permanent_delete_from_recycle_bin(self, task_id: str) -> SyncResult:
        try:
            recycle = self.cache.load_recycle_bin()
            self.cache.save_recycle_bin([t for t in recycle if t.id != task_id])
        except Exception as e:
            logger.exception('purging task %s from the recycle bin failed', task_id)
            return self._fail('Delete failed', str(e))
        return self._done(SyncResult.synced())

    async def clear_recycle_bin(self) -> SyncResult:
        try:
            self.cache.clear_recycle_bin()
        except Exception as e:
            logger.exception('clearing the recycle bin failed')
            return self._fail('Clear failed', str(e))
        return self._done(SyncResult.synced())

    # ---- manual sync ----

    async def sync_from_cloud(self) -> bool:
        await self.get_tasks()
        return self.last_result is not None and self.last_result.state is SyncState.SYNCED

    async def sync_to_cloud(self) -> bool:
        # every write is pushed as it happens; nothing is queued
        self._notify(SyncStatus.SYNCED, 'Data synced')
        return True
