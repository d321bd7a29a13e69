from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from multichat.core.providers import get_provider_registry
from multichat.db.session import get_session
from multichat.models.user import User
from multichat.schemas.custom_model import (
    CustomModelCreate,
    CustomModelOut,
    CustomModelUpdate,
    CustomProviderCreate,
    CustomProviderOut,
)
from multichat.services.auth_service import require_admin
from multichat.services.custom_model_service import (
    create_custom_model,
    create_custom_provider,
    delete_custom_model,
    delete_custom_provider,
    find_custom_model,
    get_custom_provider,
    get_custom_provider_by_name,
    list_custom_models,
    list_custom_providers,
    to_custom_model_out,
    to_custom_provider_out,
    update_custom_model,
)

providers_router = APIRouter(prefix='/custom-providers', tags=['custom-models'])
models_router = APIRouter(prefix='/custom-models', tags=['custom-models'])


def _ensure_base_model(identifier: str) -> None:
    if not get_provider_registry().has_model(identifier):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Base model not available')


@providers_router.get('', response_model=list[CustomProviderOut])
def list_custom_providers_endpoint(
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> list[CustomProviderOut]:
    return [to_custom_provider_out(record) for record in list_custom_providers(session)]


@providers_router.post('', response_model=CustomProviderOut, status_code=status.HTTP_201_CREATED)
def create_custom_provider_endpoint(
    payload: CustomProviderCreate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> CustomProviderOut:
    if get_custom_provider_by_name(session, payload.name.strip()):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Custom provider already exists')
    return to_custom_provider_out(create_custom_provider(session, payload.name))


@providers_router.delete('/{provider_id}')
def delete_custom_provider_endpoint(
    provider_id: str,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> dict:
    record = get_custom_provider(session, provider_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Custom provider not found')
    removed = delete_custom_provider(session, record)
    return {'success': True, 'deleted_models': removed}


@models_router.get('', response_model=list[CustomModelOut])
def list_custom_models_endpoint(
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> list[CustomModelOut]:
    names = {item.id: item.name for item in list_custom_providers(session)}
    return [to_custom_model_out(record, names.get(record.provider_id)) for record in list_custom_models(session)]


@models_router.post('', response_model=CustomModelOut, status_code=status.HTTP_201_CREATED)
def create_custom_model_endpoint(
    payload: CustomModelCreate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> CustomModelOut:
    provider = get_custom_provider(session, payload.provider_id)
    if not provider:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Custom provider not found')
    _ensure_base_model(payload.base_model_identifier)
    return to_custom_model_out(create_custom_model(session, payload), provider.name)


@models_router.put('/{model_id}', response_model=CustomModelOut)
def update_custom_model_endpoint(
    model_id: str,
    payload: CustomModelUpdate,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> CustomModelOut:
    record = find_custom_model(session, model_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Custom model not found')
    if payload.base_model_identifier is not None:
        _ensure_base_model(payload.base_model_identifier)
    record = update_custom_model(session, record, payload)
    provider = get_custom_provider(session, record.provider_id)
    return to_custom_model_out(record, provider.name if provider else None)


@models_router.delete('/{model_id}')
def delete_custom_model_endpoint(
    model_id: str,
    session: Session = Depends(get_session),
    _: User = Depends(require_admin),
) -> dict:
    record = find_custom_model(session, model_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Custom model not found')
    delete_custom_model(session, record)
    return {'success': True}
