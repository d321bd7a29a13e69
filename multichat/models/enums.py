from enum import Enum
import sqlalchemy as sa
from sqlalchemy import Column


class UserRole(str, Enum):
    USER = 'user'
    ADMIN = 'admin'


class ChatSender(str, Enum):
    USER = 'user'
    AI = 'ai'


class ContextSource(str, Enum):
    MANUAL = 'manual'
    CHAT_AUTO_EXTRACTED = 'chat_auto_extracted'


def enum_column(enum_cls: type[Enum], name: str) -> Column:
    return Column(
        sa.Enum(
            enum_cls,
            values_callable=lambda enum: [item.value for item in enum],
            name=name,
        ),
        nullable=False,
    )
