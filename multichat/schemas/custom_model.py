from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class CustomProviderCreate(BaseModel):
    name: str = Field(..., min_length=1)


class CustomProviderOut(BaseModel):
    id: str
    name: str
    created_at: datetime


class CustomModelCreate(BaseModel):
    name: str = Field(..., min_length=1)
    provider_id: str
    base_model_identifier: str = Field(..., min_length=1)
    system_prompt: str = ''


class CustomModelUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    base_model_identifier: Optional[str] = Field(default=None, min_length=1)
    system_prompt: Optional[str] = None


class CustomModelOut(BaseModel):
    id: str
    name: str
    provider_id: str
    provider_name: Optional[str] = None
    base_model_identifier: str
    system_prompt: str
    created_at: datetime
