from typing import Optional
from sqlmodel import Session, select
from multichat.models.api_key import DEFAULT_API_KEY_PRIORITY, ApiKey
from multichat.schemas.api_key import ApiKeyCreate, ApiKeyOut, ApiKeyUpdate
from multichat.services.ai_types import ApiKeyCandidate


def mask_key(value: str) -> str:
    if len(value) <= 8:
        return '*' * len(value)
    return f'{value[:4]}...{value[-4:]}'


def list_api_keys(session: Session) -> list[ApiKey]:
    statement = select(ApiKey).order_by(ApiKey.priority.asc(), ApiKey.created_at.asc())
    return list(session.exec(statement).all())


def list_enabled_api_keys(session: Session, sort_by_priority: bool = True) -> list[ApiKey]:
    statement = select(ApiKey).where(ApiKey.is_enabled == True)  # noqa: E712
    if sort_by_priority:
        statement = statement.order_by(ApiKey.priority.asc(), ApiKey.created_at.asc())
    else:
        statement = statement.order_by(ApiKey.created_at.asc())
    return list(session.exec(statement).all())


def get_api_key(session: Session, key_id: str) -> Optional[ApiKey]:
    return session.exec(select(ApiKey).where(ApiKey.id == key_id)).first()


def get_api_key_by_provider(session: Session, provider_name: str) -> Optional[ApiKey]:
    return session.exec(select(ApiKey).where(ApiKey.provider_name == provider_name)).first()


def create_api_key(session: Session, payload: ApiKeyCreate) -> ApiKey:
    record = ApiKey(
        provider_name=payload.provider_name,
        key_value=payload.key_value,
        is_enabled=payload.is_enabled,
        priority=DEFAULT_API_KEY_PRIORITY if payload.priority is None else payload.priority,
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def update_api_key(session: Session, record: ApiKey, payload: ApiKeyUpdate) -> ApiKey:
    if payload.key_value is not None:
        record.key_value = payload.key_value
    if payload.is_enabled is not None:
        record.is_enabled = payload.is_enabled
    if payload.priority is not None:
        record.priority = payload.priority
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def delete_api_key(session: Session, record: ApiKey) -> None:
    session.delete(record)
    session.commit()


def to_candidates(records: list[ApiKey]) -> list[ApiKeyCandidate]:
    return [
        ApiKeyCandidate(provider_name=item.provider_name, key_value=item.key_value, priority=item.priority)
        for item in records
        if item.key_value
    ]


def to_api_key_out(record: ApiKey) -> ApiKeyOut:
    return ApiKeyOut(
        id=record.id,
        provider_name=record.provider_name,
        masked_key=mask_key(record.key_value),
        is_enabled=record.is_enabled,
        priority=record.priority,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
