import os
import tempfile
from pathlib import Path

import pytest

_TEST_DIR = Path(tempfile.mkdtemp(prefix='multichat-tests-'))
TEST_DB_URL = os.getenv('TEST_DB_URL', f"sqlite:///{_TEST_DIR / 'test.db'}")
os.environ['DB_URL'] = TEST_DB_URL
os.environ.setdefault('SECRET_KEY', 'test-secret')
os.environ.setdefault('LOG_LEVEL', 'WARNING')

from sqlmodel import Session

from multichat.core.config import settings
from multichat.core.providers import reset_provider_registry
from multichat.db.init_db import init_db
from multichat.db.session import engine

settings.DB_URL = TEST_DB_URL
settings.UPLOAD_DIR = _TEST_DIR / 'uploads'


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture(autouse=True)
def _fresh_state():
    reset_provider_registry()
    init_db(drop_all=True)
    yield
    reset_provider_registry()


@pytest.fixture
def db_session():
    with Session(engine) as session:
        yield session
