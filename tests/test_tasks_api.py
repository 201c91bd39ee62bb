import uuid

import pytest

from taskcloud import config


async def create(client, **fields):
    body = {'title': 'task'}
    body.update(fields)
    resp = await client.post('/api/tasks', json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()['data']


@pytest.mark.asyncio
async def test_create_and_list(client):
    resp = await client.post('/api/tasks', json={
        'title': 'Pay rent',
        'content': 'landlord',
        'start_time': '2026-02-02T07:00:00.000Z',
        'end_time': '2026-02-02T08:00:00',
        'priority': 'high',
        'category': 'work',
        'tags': ['home', '', 'money'],
    })
    assert resp.status_code == 201
    body = resp.json()
    assert body['code'] == 200
    task = body['data']
    assert isinstance(task['id'], int)
    assert task['start_time'] == '2026-02-02T07:00:00'
    assert task['end_time'] == '2026-02-02T08:00:00'
    assert task['tags'] == 'home,money'
    assert task['is_completed'] == 0
    assert task['focus_time'] == config.DEFAULT_FOCUS_TIME

    listed = (await client.get('/api/tasks')).json()['data']
    assert [t['id'] for t in listed] == [task['id']]


@pytest.mark.asyncio
async def test_list_is_newest_first(client):
    first = await create(client, title='first')
    second = await create(client, title='second')
    listed = (await client.get('/api/tasks')).json()['data']
    assert [t['id'] for t in listed] == [second['id'], first['id']]


@pytest.mark.asyncio
async def test_create_validation(client):
    resp = await client.post('/api/tasks', json={'content': 'no title'})
    assert resp.status_code == 400
    assert resp.json() == {'code': 400, 'msg': 'title is required'}

    resp = await client.post('/api/tasks', json={'title': 'x' * 101})
    assert resp.status_code == 400

    resp = await client.post('/api/tasks', json={'title': 'x', 'priority': 'urgent'})
    assert resp.status_code == 400

    resp = await client.post('/api/tasks', json={'title': 'x', 'start_time': 'tomorrow'})
    assert resp.status_code == 400

    resp = await client.post('/api/tasks', json={'title': 'x', 'focus_time': 'long'})
    assert resp.status_code == 400
    assert resp.json()['code'] == 400


@pytest.mark.asyncio
async def test_partial_update(client):
    task = await create(client, title='draft', priority='low', tags='a')
    resp = await client.put(f"/api/tasks/{task['id']}", json={'title': 'final'})
    assert resp.status_code == 200
    updated = resp.json()['data']
    assert updated['title'] == 'final'
    assert updated['priority'] == 'low'
    assert updated['tags'] == 'a'

    resp = await client.put('/api/tasks/999999', json={'title': 'x'})
    assert resp.status_code == 404
    assert resp.json()['msg'] == 'task not found'


@pytest.mark.asyncio
async def test_complete_and_toggle(client):
    task = await create(client)
    resp = await client.put(f"/api/tasks/{task['id']}/complete", json={'is_completed': True})
    assert resp.json()['data'] == {'id': task['id'], 'is_completed': 1}

    resp = await client.patch(f"/api/tasks/{task['id']}/toggle", json={})
    assert resp.json()['data']['is_completed'] == 0

    resp = await client.patch(f"/api/tasks/{task['id']}/toggle", json={})
    assert resp.json()['data']['is_completed'] == 1


@pytest.mark.asyncio
async def test_focus_time(client):
    task = await create(client)
    resp = await client.put(f"/api/tasks/{task['id']}/focus-time", json={'focus_time': 3000})
    assert resp.status_code == 200
    assert resp.json()['data']['focus_time'] == 3000

    for bad in (0, -5, 'x', True, None):
        resp = await client.put(f"/api/tasks/{task['id']}/focus-time", json={'focus_time': bad})
        assert resp.status_code == 400, bad


@pytest.mark.asyncio
async def test_delete_moves_to_recycle_bin(client):
    task = await create(client, title='bin me')
    resp = await client.delete(f"/api/tasks/{task['id']}")
    assert resp.status_code == 200
    assert (await client.get('/api/tasks')).json()['data'] == []
    items = (await client.get('/api/recycle-bin')).json()['data']
    assert [i['task_id'] for i in items] == [task['id']]
    assert items[0]['task_data']['title'] == 'bin me'

    resp = await client.delete(f"/api/tasks/{task['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_clear_completed_both_paths(client):
    done1 = await create(client, title='done1', is_completed=1)
    await create(client, title='open')
    resp = await client.delete('/api/tasks/clear-completed')
    assert resp.json()['data'] == {'count': 1}

    await create(client, title='done2', is_completed=True)
    resp = await client.delete('/api/tasks/completed/clear')
    assert resp.json()['data'] == {'count': 1}

    titles = [t['title'] for t in (await client.get('/api/tasks')).json()['data']]
    assert titles == ['open']
    bin_ids = [i['task_id'] for i in (await client.get('/api/recycle-bin')).json()['data']]
    assert done1['id'] in bin_ids


@pytest.mark.asyncio
async def test_users_cannot_see_each_others_tasks(client, anon_client):
    task = await create(client, title='private')
    other = await anon_client.post('/api/auth/register', json={
        'nickname': 'o', 'email': f'other-{uuid.uuid4().hex[:8]}@example.com',
        'password': 'secret123', 'confirmPassword': 'secret123'})
    headers = {'Authorization': f"Bearer {other.json()['data']['token']}"}
    assert (await anon_client.get('/api/tasks', headers=headers)).json()['data'] == []
    resp = await anon_client.put(f"/api/tasks/{task['id']}", json={'title': 'mine'}, headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_shared_user_header_scopes_requests(anon_client, monkeypatch):
    resp = await anon_client.get('/api/tasks')
    assert resp.status_code == 401

    alice = {'X-User-ID': f'alice-{uuid.uuid4().hex[:8]}'}
    bob = {'X-User-ID': f'bob-{uuid.uuid4().hex[:8]}'}
    resp = await anon_client.post('/api/tasks', json={'title': 'shared'}, headers=alice)
    assert resp.status_code == 201
    assert len((await anon_client.get('/api/tasks', headers=alice)).json()['data']) == 1
    assert (await anon_client.get('/api/tasks', headers=bob)).json()['data'] == []

    monkeypatch.setattr(config, 'SHARED_USER_HEADER_ENABLED', False)
    resp = await anon_client.get('/api/tasks', headers=alice)
    assert resp.status_code == 401
