from datetime import datetime
from typing import Optional
from sqlmodel import Field, SQLModel
from multichat.core.config import DEFAULT_SESSION_TITLE
from multichat.models.base import TIMESTAMP_TYPE, IDModel, TimestampModel, utc_now


class ChatSession(IDModel, TimestampModel, SQLModel, table=True):
    __tablename__ = 'chat_sessions'

    user_id: str = Field(index=True)
    title: str = DEFAULT_SESSION_TITLE
    last_accessed_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP_TYPE)
    last_message_timestamp: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP_TYPE)
    is_shared: bool = False
    share_id: Optional[str] = Field(default=None, unique=True, index=True)
