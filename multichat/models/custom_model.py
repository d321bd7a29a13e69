from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel
from multichat.models.base import IDModel, TimestampModel


class CustomProvider(IDModel, TimestampModel, SQLModel, table=True):
    __tablename__ = 'custom_providers'

    name: str = Field(index=True, unique=True)


class CustomModel(IDModel, TimestampModel, SQLModel, table=True):
    __tablename__ = 'custom_models'

    name: str
    provider_id: str = Field(index=True, foreign_key='custom_providers.id')
    base_model_identifier: str
    system_prompt: str = Field(default='', sa_column=Column(Text, nullable=False, default=''))
