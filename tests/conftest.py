import os
import pathlib
import sys
import tempfile
import uuid
import warnings

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# The app lifespan refuses the insecure fallback secret, and taskcloud.db
# builds its engine from DATABASE_URL at import time, so both must be set
# before the app is imported.
os.environ.setdefault('SECRET_KEY', 'test-secret-key-for-unit-tests')
_TMP_DIR = tempfile.mkdtemp(prefix='taskcloud-tests-')
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///' + os.path.join(_TMP_DIR, 'test.db')

try:
    from sqlalchemy.exc import SAWarning
    warnings.filterwarnings('ignore', category=SAWarning)
except ImportError:
    pass

import logging as _logging
for _name in ('sqlalchemy', 'sqlalchemy.engine', 'sqlalchemy.pool', 'sqlmodel'):
    _logging.getLogger(_name).setLevel(_logging.ERROR)

# ensure project root is on PYTHONPATH for test runs
ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from taskcloud.main import app  # noqa: E402
from taskcloud.db import init_db  # noqa: E402


def unique_email(prefix: str = 'user') -> str:
    return f'{prefix}-{uuid.uuid4().hex[:10]}@example.com'


async def register(ac: AsyncClient, email: str = None, password: str = 'secret123', nickname: str = 'Tester'):
    email = email or unique_email()
    resp = await ac.post('/api/auth/register', json={
        'nickname': nickname,
        'email': email,
        'password': password,
        'confirmPassword': password,
    })
    return resp


@pytest_asyncio.fixture
async def ensure_db():
    await init_db()


@pytest_asyncio.fixture
async def anon_client(ensure_db):
    """Client with no credentials attached."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac


@pytest_asyncio.fixture
async def client(ensure_db):
    """Client authenticated as a freshly registered user."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        resp = await register(ac)
        assert resp.status_code == 200, resp.text
        token = resp.json()['data']['token']
        ac.headers.update({'Authorization': f'Bearer {token}'})
        yield ac


def pytest_sessionfinish(session, exitstatus):
    """Dispose the async engine so pooled connections are closed before exit."""
    import asyncio
    from taskcloud import db as app_db

    try:
        asyncio.run(app_db.dispose_db())
    except RuntimeError:
        pass
