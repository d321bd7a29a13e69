from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from multichat.core.providers import get_provider_registry
from multichat.db.session import get_session
from multichat.models.user import User
from multichat.schemas.ai import DisabledModelCreate, DisabledModelOut, ModelStatusOut
from multichat.services.auth_service import require_admin
from multichat.services.disabled_model_service import (
    disable_model,
    disabled_model_names,
    enable_model,
    list_disabled_models,
)

router = APIRouter(prefix='/disabled-models', tags=['disabled-models'])


@router.get('', response_model=list[DisabledModelOut])
def list_disabled_models_endpoint(
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> list[DisabledModelOut]:
    return [
        DisabledModelOut(id=record.id, model_name=record.model_name, disabled_at=record.disabled_at)
        for record in list_disabled_models(session)
    ]


@router.get('/status', response_model=list[ModelStatusOut])
def model_status_endpoint(
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> list[ModelStatusOut]:
    disabled = disabled_model_names(session)
    return [
        ModelStatusOut(id=item['id'], name=item['name'], provider=item['provider'], is_disabled=item['id'] in disabled)
        for item in get_provider_registry().list_models()
    ]


@router.post('', response_model=DisabledModelOut, status_code=status.HTTP_201_CREATED)
def disable_model_endpoint(
    payload: DisabledModelCreate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> DisabledModelOut:
    if not get_provider_registry().has_model(payload.model_name):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Model not available')
    record = disable_model(session, payload.model_name)
    return DisabledModelOut(id=record.id, model_name=record.model_name, disabled_at=record.disabled_at)


@router.delete('/{model_name:path}')
def enable_model_endpoint(
    model_name: str,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> dict:
    if not enable_model(session, model_name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Model is not disabled')
    return {'success': True}
