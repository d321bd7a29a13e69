from loguru import logger
from sqlmodel import Session, SQLModel, select

from multichat.core.config import settings
from multichat.core.env import get_env_value
from multichat.core.providers import get_provider_registry
from multichat.db.session import engine
from multichat.models import (  # noqa: F401
    api_key,
    chat_message,
    chat_session,
    custom_model,
    disabled_model,
    user,
    user_memory,
)
from multichat.models.api_key import ApiKey


def init_db(drop_all: bool = False) -> None:
    if drop_all:
        SQLModel.metadata.drop_all(engine)
    if settings.DB_URL.startswith('sqlite') or settings.ENV != 'production':
        SQLModel.metadata.create_all(engine)


def seed_api_keys_from_env() -> int:
    created = 0
    with Session(engine) as session:
        for provider in get_provider_registry().providers:
            if not provider.api_key_env:
                continue
            value = get_env_value(provider.api_key_env)
            if not value:
                continue
            existing = session.exec(select(ApiKey).where(ApiKey.provider_name == provider.name)).first()
            if existing:
                continue
            session.add(ApiKey(provider_name=provider.name, key_value=value))
            created += 1
        session.commit()
    if created:
        logger.info('db.seed.api_keys', created=created)
    return created
