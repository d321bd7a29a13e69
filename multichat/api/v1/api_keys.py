from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from multichat.core.providers import get_provider_registry
from multichat.db.session import get_session
from multichat.models.user import User
from multichat.schemas.api_key import ApiKeyCreate, ApiKeyOut, ApiKeyUpdate
from multichat.services.api_key_service import (
    create_api_key,
    delete_api_key,
    get_api_key,
    get_api_key_by_provider,
    list_api_keys,
    to_api_key_out,
    update_api_key,
)
from multichat.services.auth_service import require_admin

router = APIRouter(prefix='/api-keys', tags=['api-keys'])


def _ensure_key(session: Session, key_id: str):
    record = get_api_key(session, key_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='API key not found')
    return record


@router.get('', response_model=list[ApiKeyOut])
def list_api_keys_endpoint(
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> list[ApiKeyOut]:
    return [to_api_key_out(record) for record in list_api_keys(session)]


@router.post('', response_model=ApiKeyOut, status_code=status.HTTP_201_CREATED)
def create_api_key_endpoint(
    payload: ApiKeyCreate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> ApiKeyOut:
    if get_provider_registry().get(payload.provider_name) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Unknown provider')
    if get_api_key_by_provider(session, payload.provider_name):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='API key for provider already exists')
    return to_api_key_out(create_api_key(session, payload))


@router.put('/{key_id}', response_model=ApiKeyOut)
def update_api_key_endpoint(
    key_id: str,
    payload: ApiKeyUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> ApiKeyOut:
    record = _ensure_key(session, key_id)
    return to_api_key_out(update_api_key(session, record, payload))


@router.delete('/{key_id}')
def delete_api_key_endpoint(
    key_id: str,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> dict:
    record = _ensure_key(session, key_id)
    delete_api_key(session, record)
    return {'success': True}
