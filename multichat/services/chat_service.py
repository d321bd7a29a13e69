from datetime import datetime
from typing import Optional
from uuid import uuid4
from sqlmodel import Session, select
from multichat.core.config import DEFAULT_SESSION_TITLE
from multichat.models.base import utc_now
from multichat.models.chat_message import ChatMessage
from multichat.models.chat_session import ChatSession
from multichat.models.enums import ChatSender
from multichat.schemas.chat import ChatMessageOut, ChatSessionOut


def create_session(session: Session, user_id: str, title: Optional[str] = None) -> ChatSession:
    record = ChatSession(user_id=user_id, title=(title or '').strip() or DEFAULT_SESSION_TITLE)
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def list_sessions(
    session: Session,
    user_id: str,
    limit: Optional[int] = 50,
    offset: int = 0,
) -> list[ChatSession]:
    statement = select(ChatSession).where(ChatSession.user_id == user_id).order_by(ChatSession.created_at.desc())
    if offset:
        statement = statement.offset(offset)
    if limit is not None:
        statement = statement.limit(limit)
    return list(session.exec(statement).all())


def get_session(session: Session, session_id: str) -> Optional[ChatSession]:
    return session.exec(select(ChatSession).where(ChatSession.id == session_id)).first()


def get_shared_session(session: Session, share_id: str) -> Optional[ChatSession]:
    return session.exec(
        select(ChatSession).where((ChatSession.share_id == share_id) & (ChatSession.is_shared == True))  # noqa: E712
    ).first()


def update_session(
    session: Session,
    record: ChatSession,
    title: Optional[str] = None,
    is_shared: Optional[bool] = None,
) -> ChatSession:
    if title is not None:
        record.title = title.strip() or DEFAULT_SESSION_TITLE
    if is_shared is not None:
        record.is_shared = is_shared
        # share_id is assigned once and survives unsharing
        if is_shared and not record.share_id:
            record.share_id = str(uuid4())
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def update_session_title(session: Session, record: ChatSession, title: str) -> ChatSession:
    record.title = title
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def touch_session(session: Session, record: ChatSession, timestamp: Optional[datetime] = None) -> ChatSession:
    moment = timestamp or utc_now()
    record.last_accessed_at = moment
    record.last_message_timestamp = moment
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def mark_session_accessed(session: Session, record: ChatSession) -> ChatSession:
    record.last_accessed_at = utc_now()
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def delete_session(session: Session, record: ChatSession) -> None:
    messages = session.exec(select(ChatMessage).where(ChatMessage.session_id == record.id)).all()
    for message in messages:
        session.delete(message)
    session.delete(record)
    session.commit()


def append_message(
    session: Session,
    session_id: str,
    sender: ChatSender,
    content: str,
    *,
    model_used: Optional[str] = None,
    reasoning_content: Optional[str] = None,
    citations: Optional[list[dict]] = None,
    file_info: Optional[dict] = None,
) -> ChatMessage:
    record = ChatMessage(
        session_id=session_id,
        sender=sender,
        content=content or '',
        model_used=model_used,
        reasoning_content=reasoning_content or None,
        citations=citations,
        file_info=file_info,
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def list_messages(
    session: Session,
    session_id: str,
    limit: Optional[int] = None,
    offset: int = 0,
) -> list[ChatMessage]:
    statement = (
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.timestamp.asc())
    )
    if offset:
        statement = statement.offset(offset)
    if limit is not None:
        statement = statement.limit(limit)
    return list(session.exec(statement).all())


def to_session_out(record: ChatSession) -> ChatSessionOut:
    return ChatSessionOut(
        id=record.id,
        title=record.title,
        created_at=record.created_at,
        last_accessed_at=record.last_accessed_at,
        last_message_timestamp=record.last_message_timestamp,
        is_shared=record.is_shared,
        share_id=record.share_id,
    )


def to_message_out(record: ChatMessage) -> ChatMessageOut:
    return ChatMessageOut(
        id=record.id,
        session_id=record.session_id,
        sender=record.sender,
        content=record.content,
        timestamp=record.timestamp,
        model_used=record.model_used,
        reasoning_content=record.reasoning_content,
        citations=record.citations,
        file_info=record.file_info,
    )
