from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from multichat.api.v1.router import api_router
from multichat.core.config import settings
from multichat.core.logging import configure_logging
from multichat.core.providers import get_provider_registry
from multichat.db.init_db import init_db, seed_api_keys_from_env

configure_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(_: FastAPI):
    get_provider_registry()
    init_db()
    if settings.SEED_API_KEYS_FROM_ENV:
        seed_api_keys_from_env()
    yield

app = FastAPI(title=settings.PROJECT_NAME, debug=settings.DEBUG, lifespan=lifespan)

allow_origins = settings.CORS_ORIGINS
allow_credentials = '*' not in allow_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=['*'],
    allow_headers=['*'],
)


def _error_response(status_code: int, error) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'success': False, 'error': error})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error_response(exc.status_code, exc.detail)
    if getattr(exc, 'headers', None):
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = '.'.join(str(item) for item in error.get('loc', ()) if item != 'body')
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get('msg')))
    return _error_response(status.HTTP_400_BAD_REQUEST, messages)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error('http.unhandled', path=request.url.path, method=request.method)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, 'Server Error')


app.include_router(api_router)
