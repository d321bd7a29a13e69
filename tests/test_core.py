import logging

from sqlalchemy import create_engine, inspect
from sqlmodel import Session, select

from multichat.core import config as config_module
from multichat.core.config import (
    DEFAULT_API_V1_PREFIX,
    DEFAULT_PROJECT_NAME,
    Settings,
)
from multichat.core.env import get_env_value
from multichat.core.logging import configure_logging
from multichat.db import init_db as init_module
from multichat.db.session import engine, get_session
from multichat.models.api_key import ApiKey


def test_default_settings(monkeypatch):
    monkeypatch.delenv('PROJECT_NAME', raising=False)
    monkeypatch.delenv('API_V1_PREFIX', raising=False)
    settings = Settings(_env_file=None)
    assert settings.PROJECT_NAME == DEFAULT_PROJECT_NAME
    assert settings.API_V1_PREFIX == DEFAULT_API_V1_PREFIX
    assert settings.PROVIDER_TIMEOUT_SECONDS == 60.0
    assert settings.TITLE_PROVIDER_ORDER == ['Anthropic', 'OpenAI', 'DeepSeek', 'Gemini']


def test_csv_list_validator():
    settings = Settings(_env_file=None, CORS_ORIGINS='http://a.test, http://b.test')
    assert settings.CORS_ORIGINS == ['http://a.test', 'http://b.test']


def test_get_env_value_prefers_process_env(monkeypatch, tmp_path):
    env_path = tmp_path / '.env'
    env_path.write_text('OPENAI_API_KEY=file-key\nexport GEMINI_API_KEY="quoted"\n', encoding='utf-8')
    monkeypatch.setattr(Settings, 'model_config', {'env_file': str(env_path)}, raising=False)
    monkeypatch.setenv('OPENAI_API_KEY', 'env-key')
    monkeypatch.delenv('GEMINI_API_KEY', raising=False)
    assert get_env_value('OPENAI_API_KEY') == 'env-key'
    assert get_env_value('GEMINI_API_KEY') == 'quoted'


def test_get_env_value_empty_env_wins(monkeypatch, tmp_path):
    env_path = tmp_path / '.env'
    env_path.write_text('OPENAI_API_KEY=file-key\n', encoding='utf-8')
    monkeypatch.setattr(Settings, 'model_config', {'env_file': str(env_path)}, raising=False)
    monkeypatch.setenv('OPENAI_API_KEY', '')
    assert get_env_value('OPENAI_API_KEY') is None


def test_configure_logging_sets_intercept_handler():
    configure_logging('INFO')
    handler = logging.root.handlers[0]
    assert handler.__class__.__name__ == '_InterceptHandler'
    assert logging.root.level == logging.INFO
    assert logging.getLogger('httpx').level == logging.WARNING
    configure_logging('WARNING')


def test_session_dependency():
    gen = get_session()
    session = next(gen)
    assert session is not None
    session.close()


def test_init_db_creates_tables_for_sqlite_in_production(monkeypatch):
    memory_engine = create_engine('sqlite:///:memory:', connect_args={'check_same_thread': False})
    monkeypatch.setattr(init_module, 'engine', memory_engine)
    monkeypatch.setattr(config_module.settings, 'ENV', 'production')
    init_module.init_db(drop_all=True)
    tables = set(inspect(memory_engine).get_table_names())
    assert {'users', 'chat_sessions', 'chat_messages', 'api_keys', 'memory_contexts'} <= tables


def test_seed_api_keys_from_env(monkeypatch):
    for name in ('ANTHROPIC_API_KEY', 'OPENAI_API_KEY', 'GEMINI_API_KEY', 'DEEPSEEK_API_KEY', 'PERPLEXITY_API_KEY'):
        monkeypatch.setenv(name, '')
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-seed')
    assert init_module.seed_api_keys_from_env() == 1
    assert init_module.seed_api_keys_from_env() == 0
    with Session(engine) as session:
        keys = session.exec(select(ApiKey)).all()
    assert [(item.provider_name, item.key_value, item.priority) for item in keys] == [('OpenAI', 'sk-seed', 99)]
