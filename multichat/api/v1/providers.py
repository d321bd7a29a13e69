from fastapi import APIRouter, Depends
from sqlmodel import Session
from multichat.core.providers import get_provider_registry
from multichat.db.session import get_session
from multichat.models.user import User
from multichat.schemas.ai import AiModelOut
from multichat.services.api_key_service import list_enabled_api_keys
from multichat.services.auth_service import get_current_user
from multichat.services.custom_model_service import list_custom_models, list_custom_providers
from multichat.services.disabled_model_service import disabled_model_names

router = APIRouter(prefix='/providers', tags=['providers'])


@router.get('/models', response_model=list[AiModelOut])
def list_available_models(
    session: Session = Depends(get_session),
    _: User = Depends(get_current_user),
) -> list[AiModelOut]:
    registry = get_provider_registry()
    enabled = {item.provider_name for item in list_enabled_api_keys(session)}
    disabled = disabled_model_names(session)
    models = [
        AiModelOut(**item)
        for item in registry.list_models(providers=enabled)
        if item['id'] not in disabled
    ]
    provider_names = {item.id: item.name for item in list_custom_providers(session)}
    for record in list_custom_models(session):
        base = registry.find_provider_for_model(record.base_model_identifier)
        if base is None or base.name not in enabled or record.base_model_identifier in disabled:
            continue
        models.append(
            AiModelOut(
                id=record.id,
                name=record.name,
                provider=provider_names.get(record.provider_id, base.name),
                supports_vision=registry.model_supports_vision(record.base_model_identifier),
                is_custom=True,
                base_model_identifier=record.base_model_identifier,
            )
        )
    return models
