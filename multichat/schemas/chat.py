from typing import Optional
from datetime import datetime
from pydantic import BaseModel
from multichat.models.enums import ChatSender


class ChatSessionCreate(BaseModel):
    title: Optional[str] = None


class ChatSessionUpdate(BaseModel):
    title: Optional[str] = None
    is_shared: Optional[bool] = None


class ChatSessionOut(BaseModel):
    id: str
    title: str
    created_at: datetime
    last_accessed_at: datetime
    last_message_timestamp: Optional[datetime] = None
    is_shared: bool = False
    share_id: Optional[str] = None


class ChatMessageOut(BaseModel):
    id: str
    session_id: str
    sender: ChatSender
    content: str
    timestamp: datetime
    model_used: Optional[str] = None
    reasoning_content: Optional[str] = None
    citations: Optional[list[dict]] = None
    file_info: Optional[dict] = None


class SharedSessionOut(BaseModel):
    session: ChatSessionOut
    messages: list[ChatMessageOut]


class AddMessageResponse(BaseModel):
    success: bool = True
    userMessage: ChatMessageOut
    data: ChatMessageOut
    updatedSession: ChatSessionOut
