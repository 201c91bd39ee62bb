import pytest


async def create_and_delete(client, title, **fields):
    resp = await client.post('/api/tasks', json={'title': title, **fields})
    task = resp.json()['data']
    await client.delete(f"/api/tasks/{task['id']}")
    return task


async def bin_items(client):
    return (await client.get('/api/recycle-bin')).json()['data']


@pytest.mark.asyncio
async def test_restore_reinstates_original_id_and_fields(client):
    task = await create_and_delete(client, 'Pay rent', priority='high', tags='home', is_completed=1,
                                   start_time='2026-02-01T10:00:00')
    [item] = await bin_items(client)
    resp = await client.post(f"/api/recycle-bin/{item['id']}/restore")
    assert resp.status_code == 200
    restored = resp.json()['data']
    assert restored['id'] == task['id']
    assert restored['title'] == 'Pay rent'
    assert restored['priority'] == 'high'
    assert restored['tags'] == 'home'
    assert restored['is_completed'] == 1
    assert restored['start_time'] == '2026-02-01T10:00:00'
    assert await bin_items(client) == []
    listed = (await client.get('/api/tasks')).json()['data']
    assert [t['id'] for t in listed] == [task['id']]


@pytest.mark.asyncio
async def test_restore_unknown_item_is_404(client):
    resp = await client.post('/api/recycle-bin/987654/restore')
    assert resp.status_code == 404
    assert resp.json() == {'code': 404, 'msg': 'recycle bin item not found'}


@pytest.mark.asyncio
async def test_purge_single_item(client):
    await create_and_delete(client, 'one')
    await create_and_delete(client, 'two')
    items = await bin_items(client)
    assert len(items) == 2
    target = next(i for i in items if i['task_data']['title'] == 'one')
    resp = await client.delete(f"/api/recycle-bin/{target['id']}")
    assert resp.status_code == 200
    assert [i['task_data']['title'] for i in await bin_items(client)] == ['two']

    resp = await client.delete(f"/api/recycle-bin/{target['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_clear_only_affects_own_bin(client):
    await create_and_delete(client, 'mine')
    neighbour = {'X-User-ID': 'recycle-bin-neighbour', 'Authorization': ''}
    resp = await client.post('/api/tasks', json={'title': 'theirs'}, headers=neighbour)
    assert resp.status_code == 201
    await client.delete(f"/api/tasks/{resp.json()['data']['id']}", headers=neighbour)

    resp = await client.delete('/api/recycle-bin/clear')
    assert resp.status_code == 200
    assert await bin_items(client) == []
    theirs = (await client.get('/api/recycle-bin', headers=neighbour)).json()['data']
    assert 'theirs' in [i['task_data']['title'] for i in theirs]
