import json

import pytest

from taskcloud_sync.local_store import (
    LocalCache,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    TOKEN_KEY,
    USER_KEY,
)
from taskcloud_sync.models import Priority, Task, TaskStatus


@pytest.fixture
def sqlite_store(tmp_path):
    return SqliteKeyValueStore(str(tmp_path / 'nested' / 'local.db'))


def test_sqlite_store_get_set_remove(sqlite_store):
    assert sqlite_store.get('a') is None
    sqlite_store.set('a', '1')
    sqlite_store.set('a', '2')
    sqlite_store.set('b', '3')
    assert sqlite_store.get('a') == '2'
    assert sqlite_store.keys() == ['a', 'b']
    sqlite_store.remove('a')
    assert sqlite_store.get('a') is None
    sqlite_store.clear_all()
    assert sqlite_store.keys() == []


def test_sqlite_store_persists_across_instances(tmp_path):
    path = str(tmp_path / 'local.db')
    SqliteKeyValueStore(path).set('k', 'v')
    assert SqliteKeyValueStore(path).get('k') == 'v'


def test_keys_follow_logged_in_user():
    cache = LocalCache(MemoryKeyValueStore())
    assert cache.tasks_key() == 'VUE_TASKS_GUEST'
    assert cache.recycle_key() == 'VUE_TASK_RECYCLE_GUEST'
    cache.set_user({'username': 'Ann', 'email': 'ann@example.com'})
    assert cache.tasks_key() == 'VUE_TASKS_ann@example.com'
    assert cache.recycle_key() == 'VUE_TASK_RECYCLE_ann@example.com'
    cache.clear_login()
    assert cache.tasks_key() == 'VUE_TASKS_GUEST'


def test_lists_are_isolated_per_user():
    store = MemoryKeyValueStore()
    cache = LocalCache(store)
    cache.save_tasks([Task(id='g1', title='guest task')])
    cache.set_user({'username': 'Ann', 'email': 'ann@example.com'})
    assert cache.load_tasks() == []
    cache.save_tasks([Task(id='a1', title='ann task')])
    cache.clear_login()
    assert [t.id for t in cache.load_tasks()] == ['g1']


def test_tasks_are_stored_with_camel_case_keys():
    store = MemoryKeyValueStore()
    cache = LocalCache(store)
    cache.save_tasks([Task(id='1', title='t', subtitle='s', start_date='2026-01-01', focus_time=300)])
    raw = json.loads(store.get('VUE_TASKS_GUEST'))
    assert raw[0]['subTitle'] == 's'
    assert raw[0]['startDate'] == '2026-01-01'
    assert raw[0]['focusTime'] == 300
    loaded = cache.load_tasks()[0]
    assert loaded.subtitle == 's'
    assert loaded.focus_time == 300


def test_corrupt_entries_read_as_empty():
    store = MemoryKeyValueStore({'VUE_TASKS_GUEST': '{not json', USER_KEY: '[]'})
    cache = LocalCache(store)
    assert cache.load_tasks() == []
    assert cache.has_tasks() is False
    assert cache.get_user() is None


def test_unknown_enum_values_fall_back_to_defaults():
    store = MemoryKeyValueStore({'VUE_TASKS_GUEST': json.dumps([
        {'id': 'x', 'title': 't', 'priority': 'urgent', 'status': 'archived'},
    ])})
    task = LocalCache(store).load_tasks()[0]
    assert task.priority is Priority.MID
    assert task.status is TaskStatus.UNFINISHED


def test_has_tasks_distinguishes_empty_from_absent():
    cache = LocalCache(MemoryKeyValueStore())
    assert cache.has_tasks() is False
    cache.save_tasks([])
    assert cache.has_tasks() is True


def test_token_and_recycle_bin():
    store = MemoryKeyValueStore()
    cache = LocalCache(store)
    cache.set_token('abc')
    assert store.get(TOKEN_KEY) == 'abc'
    assert cache.get_token() == 'abc'
    cache.save_recycle_bin([Task(id='r1', title='old')])
    assert [t.id for t in cache.load_recycle_bin()] == ['r1']
    cache.clear_recycle_bin()
    assert cache.load_recycle_bin() == []
    cache.clear_login()
    assert cache.get_token() is None
