"""Async client for the Task Cloud REST API."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .config import DEFAULT_SERVER_URL, DEFAULT_TIMEOUT
from .local_store import LocalCache

logger = logging.getLogger(__name__)

NETWORK_ERROR_MSG = 'network request failed'


class RemoteError(Exception):
    """A server call failed on a path that has no local fallback."""

    def __init__(self, msg: str, code: Optional[int] = None):
        super().__init__(msg)
        self.msg = msg
        self.code = code


class AuthError(RemoteError):
    pass


@dataclass
class ApiResult:
    """The server's ``{code, data, msg}`` envelope, decoded."""
    success: bool
    data: Any = None
    msg: str = ''
    code: Optional[int] = None


class ApiClient:
    """Low-level request helper.

    Reads the bearer token from the local cache on every call so that a login
    made through another component takes effect immediately. ``request`` never
    raises: transport errors and unreadable bodies become failed results.
    """

    def __init__(self, cache: LocalCache, base_url: str = None, http: httpx.AsyncClient = None,
                 shared_user_id: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT):
        self.cache = cache
        self.shared_user_id = shared_user_id
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url or DEFAULT_SERVER_URL, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> 'ApiClient':
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _get_auth_headers(self) -> Dict[str, str]:
        headers = {}
        token = self.cache.get_token()
        if token:
            headers['Authorization'] = f'Bearer {token}'
        if self.shared_user_id:
            headers['X-User-ID'] = str(self.shared_user_id)
        return headers

    async def request(self, method: str, path: str, json: Any = None) -> ApiResult:
        try:
            response = await self.http.request(method, path, json=json, headers=self._get_auth_headers())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.info('%s %s failed: %s', method, path, e)
            return ApiResult(False, msg=NETWORK_ERROR_MSG)
        try:
            body = response.json()
        except ValueError:
            logger.info('%s %s returned a non-JSON body (status %s)', method, path, response.status_code)
            return ApiResult(False, msg=NETWORK_ERROR_MSG, code=response.status_code)
        if not isinstance(body, dict):
            return ApiResult(False, msg='unexpected response', code=response.status_code)
        code = body.get('code', response.status_code)
        if code in (200, 201):
            return ApiResult(True, data=body.get('data'), msg=body.get('msg') or '', code=code)
        return ApiResult(False, msg=body.get('msg') or 'request failed', code=code)


class TaskApi:
    """Task endpoints. Ids are the server's integer keys."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get_all(self) -> ApiResult:
        return await self.api.request('GET', '/api/tasks')

    async def create(self, data: Dict[str, Any]) -> ApiResult:
        return await self.api.request('POST', '/api/tasks', json=data)

    async def update(self, task_id: int, data: Dict[str, Any]) -> ApiResult:
        return await self.api.request('PUT', f'/api/tasks/{task_id}', json=data)

    async def toggle_complete(self, task_id: int, is_completed: bool) -> ApiResult:
        return await self.api.request('PUT', f'/api/tasks/{task_id}/complete', json={'is_completed': is_completed})

    async def update_focus_time(self, task_id: int, seconds: int) -> ApiResult:
        return await self.api.request('PUT', f'/api/tasks/{task_id}/focus-time', json={'focus_time': seconds})

    async def delete(self, task_id: int) -> ApiResult:
        return await self.api.request('DELETE', f'/api/tasks/{task_id}')

    async def clear_completed(self) -> ApiResult:
        return await self.api.request('DELETE', '/api/tasks/clear-completed')

    async def health(self) -> bool:
        try:
            response = await self.api.http.get('/api/health')
        except (httpx.HTTPError, httpx.InvalidURL):
            return False
        return response.status_code == 200


class AuthApi:
    """Account endpoints.

    Unlike task calls there is nothing to fall back to locally, so failures
    raise ``AuthError``. A successful login or registration stores the token
    and user in the local cache, which switches the cache to that user's lists.
    """

    def __init__(self, api: ApiClient):
        self.api = api

    def _save_login_state(self, data: Dict[str, Any]) -> Dict[str, Any]:
        user = data.get('user') or {}
        self.api.cache.set_token(data['token'])
        self.api.cache.set_user({'username': user.get('nickname'), 'email': user.get('email')})
        return user

    async def register(self, nickname: str, email: str, password: str, confirm_password: str) -> Dict[str, Any]:
        result = await self.api.request('POST', '/api/auth/register', json={
            'nickname': nickname,
            'email': email,
            'password': password,
            'confirmPassword': confirm_password,
        })
        if not result.success or not isinstance(result.data, dict) or not result.data.get('token'):
            raise AuthError(result.msg or 'registration failed', result.code)
        logger.info('registered %s', email)
        return self._save_login_state(result.data)

    async def login(self, email: str, password: str) -> Dict[str, Any]:
        result = await self.api.request('POST', '/api/auth/login', json={'email': email, 'password': password})
        if not result.success or not isinstance(result.data, dict) or not result.data.get('token'):
            raise AuthError(result.msg or 'login failed', result.code)
        logger.info('logged in as %s', email)
        return self._save_login_state(result.data)

    async def me(self) -> Dict[str, Any]:
        result = await self.api.request('GET', '/api/auth/me')
        if not result.success:
            raise AuthError(result.msg or 'not logged in', result.code)
        return result.data

    def current_user(self) -> Optional[Dict[str, Any]]:
        return self.api.cache.get_user()

    def logout(self) -> None:
        self.api.cache.clear_login()


def tasks_from_result(result: ApiResult) -> Optional[List[Dict[str, Any]]]:
    """Return the task list carried by a successful result, else None."""
    if result.success and isinstance(result.data, list):
        return [t for t in result.data if isinstance(t, dict)]
    return None
