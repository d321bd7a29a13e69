from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field
from multichat.models.enums import ContextSource
from multichat.models.user_memory import MAX_MAX_CONTEXTS, MIN_MAX_CONTEXTS


class MemorySettingsUpdate(BaseModel):
    is_globally_enabled: Optional[bool] = None
    max_contexts: Optional[int] = Field(default=None, ge=MIN_MAX_CONTEXTS, le=MAX_MAX_CONTEXTS)


class MemoryContextCreate(BaseModel):
    text: str = Field(..., min_length=1)
    source: ContextSource = ContextSource.MANUAL


class MemoryContextUpdate(BaseModel):
    text: str = Field(..., min_length=1)


class MemoryContextOut(BaseModel):
    id: str
    text: str
    source: ContextSource
    created_at: datetime
    updated_at: datetime


class UserMemoryOut(BaseModel):
    id: str
    is_globally_enabled: bool
    max_contexts: int
    contexts: list[MemoryContextOut]
