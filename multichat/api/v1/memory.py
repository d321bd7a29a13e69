from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from multichat.db.session import get_session
from multichat.models.user import User
from multichat.schemas.memory import MemoryContextCreate, MemoryContextUpdate, MemorySettingsUpdate, UserMemoryOut
from multichat.services.auth_service import get_current_user
from multichat.services.memory_service import (
    add_context,
    clear_contexts,
    delete_context,
    get_context,
    get_or_create_user_memory,
    get_user_memory,
    to_user_memory_out,
    update_context,
    update_settings,
)

router = APIRouter(prefix='/usermemory', tags=['memory'])


def _require_memory(session: Session, user: User):
    memory = get_user_memory(session, user.id)
    if not memory:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User memory not found')
    return memory


@router.get('', response_model=UserMemoryOut)
def get_memory_endpoint(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> UserMemoryOut:
    memory = get_or_create_user_memory(session, user.id)
    return to_user_memory_out(session, memory)


@router.put('/settings', response_model=UserMemoryOut)
def update_settings_endpoint(
    payload: MemorySettingsUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> UserMemoryOut:
    if payload.is_globally_enabled is None and payload.max_contexts is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='No settings provided to update.')
    memory = get_or_create_user_memory(session, user.id)
    memory = update_settings(session, memory, payload)
    return to_user_memory_out(session, memory)


@router.post('/contexts', response_model=UserMemoryOut, status_code=status.HTTP_201_CREATED)
def add_context_endpoint(
    payload: MemoryContextCreate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> UserMemoryOut:
    memory = get_or_create_user_memory(session, user.id)
    try:
        add_context(session, memory, payload.text, payload.source)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return to_user_memory_out(session, memory)


@router.put('/contexts/{context_id}', response_model=UserMemoryOut)
def update_context_endpoint(
    context_id: str,
    payload: MemoryContextUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> UserMemoryOut:
    memory = _require_memory(session, user)
    record = get_context(session, memory, context_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Context item not found')
    try:
        update_context(session, memory, record, payload.text)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return to_user_memory_out(session, memory)


@router.delete('/contexts/{context_id}', response_model=UserMemoryOut)
def delete_context_endpoint(
    context_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> UserMemoryOut:
    memory = _require_memory(session, user)
    record = get_context(session, memory, context_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Context item not found')
    delete_context(session, record)
    return to_user_memory_out(session, memory)


@router.delete('/contexts', response_model=UserMemoryOut)
def clear_contexts_endpoint(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> UserMemoryOut:
    memory = get_or_create_user_memory(session, user.id)
    clear_contexts(session, memory)
    return to_user_memory_out(session, memory)
