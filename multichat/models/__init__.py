from multichat.models.base import IDModel, TimestampModel
from multichat.models.user import User
from multichat.models.chat_session import ChatSession
from multichat.models.chat_message import ChatMessage
from multichat.models.api_key import ApiKey
from multichat.models.custom_model import CustomModel, CustomProvider
from multichat.models.disabled_model import DisabledModel
from multichat.models.user_memory import MemoryContext, UserMemory

__all__ = [
    'IDModel',
    'TimestampModel',
    'User',
    'ChatSession',
    'ChatMessage',
    'ApiKey',
    'CustomProvider',
    'CustomModel',
    'DisabledModel',
    'UserMemory',
    'MemoryContext',
]
