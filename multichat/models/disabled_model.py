from datetime import datetime
from sqlmodel import Field, SQLModel
from multichat.models.base import TIMESTAMP_TYPE, IDModel, utc_now


class DisabledModel(IDModel, SQLModel, table=True):
    __tablename__ = 'disabled_models'

    model_name: str = Field(index=True, unique=True)
    disabled_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP_TYPE)
