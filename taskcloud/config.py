"""Simple runtime configuration for the Task Cloud server.

Control flags are read from environment variables to allow toggling in
development or production without code changes.
"""
import os


def _trueish(v: str | None) -> bool:
    if not v:
        return False
    return v.lower() in ('1', 'true', 'yes', 'on')


# Full SQLAlchemy URL of the task database. Tests point this at a temporary
# file before importing taskcloud.db.
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite+aiosqlite:///./taskcloud.db')

# SECRET_KEY must be set in the environment in production. The fallback only
# exists so that modules can be imported by tooling; the server lifespan
# refuses to start while it is in use.
INSECURE_SECRET_KEY = 'CHANGE_ME_IN_ENV_FOR_TESTS'
SECRET_KEY = os.getenv('SECRET_KEY', INSECURE_SECRET_KEY)

# Access tokens are valid for seven days unless overridden.
try:
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', str(60 * 24 * 7)))
except ValueError:
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7

# When true, requests without a bearer token may scope themselves with an
# X-User-ID header (shared, unauthenticated multi-tenant mode). Set
# SHARED_USER_HEADER=0 to require tokens everywhere.
SHARED_USER_HEADER_ENABLED = _trueish(os.getenv('SHARED_USER_HEADER', '1'))

# Default focus session length (seconds) given to newly created tasks.
try:
    DEFAULT_FOCUS_TIME = int(os.getenv('DEFAULT_FOCUS_TIME', str(25 * 60)))
except ValueError:
    DEFAULT_FOCUS_TIME = 25 * 60

MIN_PASSWORD_LENGTH = 6

# Comma separated list of origins allowed by CORS. "*" allows any origin,
# which matches how browser front-ends are usually served in development.
CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]
