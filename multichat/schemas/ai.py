from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class AiModelOut(BaseModel):
    id: str
    name: str
    provider: str
    supports_vision: bool = False
    is_custom: bool = False
    base_model_identifier: Optional[str] = None


class DisabledModelCreate(BaseModel):
    model_name: str = Field(..., min_length=1)


class DisabledModelOut(BaseModel):
    id: str
    model_name: str
    disabled_at: datetime


class ModelStatusOut(BaseModel):
    id: str
    name: str
    provider: str
    is_disabled: bool
