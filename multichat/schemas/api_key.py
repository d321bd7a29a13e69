from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class ApiKeyCreate(BaseModel):
    provider_name: str = Field(..., min_length=1)
    key_value: str = Field(..., min_length=1)
    is_enabled: bool = True
    priority: Optional[int] = Field(default=None, ge=0)


class ApiKeyUpdate(BaseModel):
    key_value: Optional[str] = Field(default=None, min_length=1)
    is_enabled: Optional[bool] = None
    priority: Optional[int] = Field(default=None, ge=0)


class ApiKeyOut(BaseModel):
    id: str
    provider_name: str
    masked_key: str
    is_enabled: bool
    priority: int
    created_at: datetime
    updated_at: datetime
