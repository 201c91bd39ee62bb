import pytest
from httpx import AsyncClient

from taskcloud_sync.client import ApiClient, AuthApi, AuthError, TaskApi
from taskcloud_sync.local_store import LocalCache, MemoryKeyValueStore


@pytest.mark.asyncio
async def test_request_turns_invalid_urls_into_failed_results():
    async with AsyncClient(base_url='http://test') as http:
        api = ApiClient(LocalCache(MemoryKeyValueStore()), http=http)
        result = await api.request('GET', '/api/tasks/\x01')
        assert result.success is False
        assert result.msg == 'network request failed'


@pytest.mark.asyncio
async def test_unreachable_server_gives_auth_error_and_failed_results():
    async with AsyncClient(base_url='http://127.0.0.1:9', timeout=0.5) as http:
        api = ApiClient(LocalCache(MemoryKeyValueStore()), http=http)
        with pytest.raises(AuthError):
            await AuthApi(api).login('nobody@example.com', 'secret123')
        tasks = TaskApi(api)
        assert (await tasks.get_all()).success is False
        assert await tasks.health() is False


def test_auth_headers_carry_token_and_shared_id():
    cache = LocalCache(MemoryKeyValueStore())
    api = ApiClient(cache, base_url='http://test', shared_user_id='kiosk')
    assert api._get_auth_headers() == {'X-User-ID': 'kiosk'}
    cache.set_token('tok')
    assert api._get_auth_headers() == {'Authorization': 'Bearer tok', 'X-User-ID': 'kiosk'}
