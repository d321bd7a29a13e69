from typing import Optional
from sqlmodel import Session, select
from multichat.models.base import utc_now
from multichat.models.enums import ContextSource
from multichat.models.user_memory import MemoryContext, UserMemory
from multichat.schemas.memory import MemoryContextOut, MemorySettingsUpdate, UserMemoryOut


def get_user_memory(session: Session, user_id: str) -> Optional[UserMemory]:
    return session.exec(select(UserMemory).where(UserMemory.user_id == user_id)).first()


def get_or_create_user_memory(session: Session, user_id: str) -> UserMemory:
    record = get_user_memory(session, user_id)
    if record:
        return record
    record = UserMemory(user_id=user_id)
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def list_contexts(session: Session, memory: UserMemory, limit: Optional[int] = None) -> list[MemoryContext]:
    statement = (
        select(MemoryContext)
        .where(MemoryContext.memory_id == memory.id)
        .order_by(MemoryContext.updated_at.desc(), MemoryContext.created_at.desc())
    )
    if limit is not None:
        statement = statement.limit(limit)
    return list(session.exec(statement).all())


def get_context(session: Session, memory: UserMemory, context_id: str) -> Optional[MemoryContext]:
    return session.exec(
        select(MemoryContext).where((MemoryContext.id == context_id) & (MemoryContext.memory_id == memory.id))
    ).first()


def _enforce_limit(session: Session, memory: UserMemory) -> int:
    contexts = list_contexts(session, memory)
    overflow = contexts[memory.max_contexts :]
    for item in overflow:
        session.delete(item)
    return len(overflow)


def update_settings(session: Session, memory: UserMemory, payload: MemorySettingsUpdate) -> UserMemory:
    if payload.is_globally_enabled is not None:
        memory.is_globally_enabled = payload.is_globally_enabled
    if payload.max_contexts is not None:
        memory.max_contexts = payload.max_contexts
    session.add(memory)
    session.flush()
    _enforce_limit(session, memory)
    session.commit()
    session.refresh(memory)
    return memory


def add_context(
    session: Session,
    memory: UserMemory,
    text: str,
    source: ContextSource = ContextSource.MANUAL,
) -> MemoryContext:
    cleaned = text.strip()
    if not cleaned:
        raise ValueError('Context text cannot be empty.')
    now = utc_now()
    record = session.exec(
        select(MemoryContext).where((MemoryContext.memory_id == memory.id) & (MemoryContext.text == cleaned))
    ).first()
    if record:
        record.updated_at = now
        if source == ContextSource.MANUAL:
            record.source = ContextSource.MANUAL
    else:
        record = MemoryContext(memory_id=memory.id, text=cleaned, source=source, created_at=now, updated_at=now)
    session.add(record)
    session.flush()
    _enforce_limit(session, memory)
    session.commit()
    session.refresh(record)
    return record


def update_context(session: Session, memory: UserMemory, record: MemoryContext, text: str) -> MemoryContext:
    cleaned = text.strip()
    if not cleaned:
        raise ValueError('Context text cannot be empty.')
    conflict = session.exec(
        select(MemoryContext).where(
            (MemoryContext.memory_id == memory.id)
            & (MemoryContext.text == cleaned)
            & (MemoryContext.id != record.id)
        )
    ).first()
    if conflict:
        raise ValueError('Another context with the same text already exists.')
    record.text = cleaned
    record.updated_at = utc_now()
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def delete_context(session: Session, record: MemoryContext) -> None:
    session.delete(record)
    session.commit()


def clear_contexts(session: Session, memory: UserMemory) -> int:
    contexts = list_contexts(session, memory)
    for item in contexts:
        session.delete(item)
    session.commit()
    return len(contexts)


def to_context_out(record: MemoryContext) -> MemoryContextOut:
    return MemoryContextOut(
        id=record.id,
        text=record.text,
        source=record.source,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def to_user_memory_out(session: Session, memory: UserMemory) -> UserMemoryOut:
    return UserMemoryOut(
        id=memory.id,
        is_globally_enabled=memory.is_globally_enabled,
        max_contexts=memory.max_contexts,
        contexts=[to_context_out(item) for item in list_contexts(session, memory)],
    )
