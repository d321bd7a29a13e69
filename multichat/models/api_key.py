from sqlmodel import Field, SQLModel
from multichat.models.base import IDModel, TimestampModel

DEFAULT_API_KEY_PRIORITY = 99


class ApiKey(IDModel, TimestampModel, SQLModel, table=True):
    __tablename__ = 'api_keys'

    provider_name: str = Field(index=True, unique=True)
    key_value: str
    is_enabled: bool = True
    # lower number wins
    priority: int = DEFAULT_API_KEY_PRIORITY
