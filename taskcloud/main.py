from contextlib import asynccontextmanager
from datetime import datetime
import logging
import os
import sys

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import config
from .db import init_db, dispose_db
from .utils import error_body

logger = logging.getLogger(__name__)
# Ensure INFO-level messages from this package appear on the server console
# when no handlers are configured (safe fallback for development/testing).
_pkg_logger = logging.getLogger('taskcloud')
if not _pkg_logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s:%(name)s: %(message)s'))
    _pkg_logger.addHandler(handler)
_pkg_logger.setLevel(logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # The application should not start without a proper secret in the
    # environment; tokens signed with the fallback are trivially forgeable.
    if not config.SECRET_KEY or config.SECRET_KEY == config.INSECURE_SECRET_KEY:
        raise RuntimeError("SECRET_KEY not set or insecure fallback in use; set the SECRET_KEY environment variable before starting the server")
    await init_db()
    logger.info('starting server using DATABASE_URL=%s', config.DATABASE_URL)
    try:
        yield
    finally:
        await dispose_db()
        logger.info('database connections closed')


app = FastAPI(title='Task Cloud', lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    msg = exc.detail if isinstance(exc.detail, str) else 'request failed'
    return JSONResponse(status_code=exc.status_code, content=error_body(msg, exc.status_code), headers=getattr(exc, 'headers', None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = '.'.join(str(p) for p in first.get('loc', ()) if p != 'body')
        msg = f"{loc}: {first.get('msg')}" if loc else str(first.get('msg'))
    else:
        msg = 'invalid request'
    logger.info('rejected request %s %s: %s', request.method, request.url.path, msg)
    return JSONResponse(status_code=400, content=error_body(msg, 400))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc: Exception):
    logger.exception('unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body('internal server error', 500))


from .auth_api import router as auth_router  # noqa: E402
from .tasks_api import router as tasks_router  # noqa: E402
from .recycle_bin_api import router as recycle_bin_router  # noqa: E402

app.include_router(auth_router)
app.include_router(tasks_router)
app.include_router(recycle_bin_router)


@app.get('/api/health')
async def health():
    return {'status': 'ok', 'code': 200, 'time': datetime.now().isoformat(timespec='seconds')}


def run():
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    host = os.getenv('HOST', '0.0.0.0')
    port = int(os.getenv('PORT', '3001'))
    uvicorn.run('taskcloud.main:app', host=host, port=port)
