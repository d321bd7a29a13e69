from datetime import datetime
from typing import Optional
from sqlalchemy import JSON, Column, Text
from sqlmodel import Field, SQLModel
from multichat.models.base import TIMESTAMP_TYPE, IDModel, utc_now
from multichat.models.enums import ChatSender, enum_column


class ChatMessage(IDModel, SQLModel, table=True):
    __tablename__ = 'chat_messages'

    session_id: str = Field(index=True)
    sender: ChatSender = Field(sa_column=enum_column(ChatSender, 'chat_sender'))
    content: str = Field(default='', sa_column=Column(Text, nullable=False))
    timestamp: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP_TYPE, index=True)
    model_used: Optional[str] = None
    reasoning_content: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    citations: Optional[list[dict]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    file_info: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
