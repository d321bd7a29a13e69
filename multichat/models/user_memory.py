from datetime import datetime
from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel
from multichat.models.base import TIMESTAMP_TYPE, IDModel, TimestampModel, utc_now
from multichat.models.enums import ContextSource, enum_column

DEFAULT_MAX_CONTEXTS = 50
MIN_MAX_CONTEXTS = 1
MAX_MAX_CONTEXTS = 200


class UserMemory(IDModel, TimestampModel, SQLModel, table=True):
    __tablename__ = 'user_memories'

    user_id: str = Field(index=True, unique=True)
    is_globally_enabled: bool = True
    max_contexts: int = Field(default=DEFAULT_MAX_CONTEXTS, ge=MIN_MAX_CONTEXTS, le=MAX_MAX_CONTEXTS)


class MemoryContext(IDModel, SQLModel, table=True):
    __tablename__ = 'memory_contexts'

    memory_id: str = Field(index=True, foreign_key='user_memories.id')
    text: str = Field(sa_column=Column(Text, nullable=False))
    source: ContextSource = Field(
        default=ContextSource.MANUAL,
        sa_column=enum_column(ContextSource, 'context_source'),
    )
    # set explicitly on every mutation; ordering depends on it
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP_TYPE)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP_TYPE, index=True)
