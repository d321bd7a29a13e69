from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse
from loguru import logger
from sqlmodel import Session
from multichat.db.session import get_session
from multichat.models.chat_session import ChatSession
from multichat.models.enums import ChatSender
from multichat.models.user import User
from multichat.schemas.chat import (
    AddMessageResponse,
    ChatMessageOut,
    ChatSessionCreate,
    ChatSessionOut,
    ChatSessionUpdate,
    SharedSessionOut,
)
from multichat.services.ai_chat import ChatTurn, run_buffered_turn, run_streaming_turn
from multichat.services.ai_stream_channel import SseChannel
from multichat.services.auth_service import get_current_user
from multichat.services.chat_service import (
    append_message,
    create_session,
    delete_session,
    get_session as get_chat_session,
    get_shared_session,
    list_messages,
    list_sessions,
    mark_session_accessed,
    to_message_out,
    to_session_out,
    touch_session,
    update_session,
)
from multichat.services.upload_service import StoredUpload, combine_text, store_upload

router = APIRouter(prefix='/chats', tags=['chats'])

SSE_HEADERS = {'Cache-Control': 'no-cache', 'Connection': 'keep-alive', 'X-Accel-Buffering': 'no'}


def _ensure_session(session: Session, session_id: str, user: User) -> ChatSession:
    record = get_chat_session(session, session_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Chat session not found')
    if record.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Not allowed')
    return record


@router.post('', response_model=ChatSessionOut, status_code=status.HTTP_201_CREATED)
def create_chat_session(
    payload: ChatSessionCreate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ChatSessionOut:
    record = create_session(session, user.id, payload.title)
    return to_session_out(record)


@router.get('', response_model=list[ChatSessionOut])
def list_chat_sessions(
    limit: int = 50,
    offset: int = 0,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> list[ChatSessionOut]:
    return [to_session_out(record) for record in list_sessions(session, user.id, limit=limit, offset=offset)]


@router.get('/shared/{share_id}', response_model=SharedSessionOut)
def get_shared_chat(share_id: str, session: Session = Depends(get_session)) -> SharedSessionOut:
    record = get_shared_session(session, share_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Shared chat not found')
    return SharedSessionOut(
        session=to_session_out(record),
        messages=[to_message_out(item) for item in list_messages(session, record.id)],
    )


@router.get('/{session_id}', response_model=ChatSessionOut)
def get_chat_session_endpoint(
    session_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ChatSessionOut:
    record = _ensure_session(session, session_id, user)
    return to_session_out(mark_session_accessed(session, record))


@router.patch('/{session_id}', response_model=ChatSessionOut)
def update_chat_session(
    session_id: str,
    payload: ChatSessionUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ChatSessionOut:
    record = _ensure_session(session, session_id, user)
    record = update_session(session, record, title=payload.title, is_shared=payload.is_shared)
    return to_session_out(record)


@router.delete('/{session_id}')
def delete_chat_session(
    session_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> dict:
    record = _ensure_session(session, session_id, user)
    delete_session(session, record)
    return {'success': True}


@router.get('/{session_id}/messages', response_model=list[ChatMessageOut])
def list_chat_messages(
    session_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> list[ChatMessageOut]:
    record = _ensure_session(session, session_id, user)
    messages = list_messages(session, session_id)
    mark_session_accessed(session, record)
    return [to_message_out(item) for item in messages]


@router.post('/{session_id}/messages', status_code=status.HTTP_201_CREATED)
async def add_chat_message(
    session_id: str,
    content: Optional[str] = Form(default=None),
    model: Optional[str] = Form(default=None),
    use_session_memory: bool = Form(default=True, alias='useSessionMemory'),
    stream: bool = Form(default=True),
    file: Optional[UploadFile] = File(default=None),
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    text = (content or '').strip()
    if not text and file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Message content or a file upload is required.',
        )
    record = _ensure_session(session, session_id, user)

    upload: Optional[StoredUpload] = None
    if file is not None:
        try:
            upload = await store_upload(file)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    user_message = append_message(
        session,
        session_id,
        ChatSender.USER,
        text,
        file_info=upload.file_info if upload else None,
    )
    record = touch_session(session, record, user_message.timestamp)
    turn = ChatTurn(
        session_id=session_id,
        user_id=user.id,
        user_message_id=user_message.id,
        text=combine_text(text, upload.annotation if upload else None),
        image=upload.image if upload else None,
        model=model or None,
        use_memory=use_session_memory,
    )
    logger.info(
        'ai.chat.request',
        session_id=session_id,
        user_id=user.id,
        model=turn.model,
        stream=stream,
        has_file=upload is not None,
    )

    if not stream:
        result = await run_buffered_turn(session, record, turn)
        return AddMessageResponse(
            userMessage=to_message_out(user_message),
            data=to_message_out(result.ai_message),
            updatedSession=to_session_out(result.chat_session),
        )

    channel = SseChannel()
    channel.start(
        run_streaming_turn(turn, channel.emit, to_message_out(user_message).model_dump(mode='json'))
    )
    return StreamingResponse(channel.events(), media_type='text/event-stream', headers=SSE_HEADERS)
