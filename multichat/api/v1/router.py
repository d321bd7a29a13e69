from fastapi import APIRouter
from multichat.api.v1 import api_keys, auth, chats, custom_models, disabled_models, health, memory, providers
from multichat.core.config import settings

api_router = APIRouter(prefix=settings.API_V1_PREFIX)

api_router.include_router(health.router, tags=['health'])
api_router.include_router(auth.router)
api_router.include_router(chats.router)
api_router.include_router(memory.router)
api_router.include_router(providers.router)
api_router.include_router(api_keys.router)
api_router.include_router(custom_models.providers_router)
api_router.include_router(custom_models.models_router)
api_router.include_router(disabled_models.router)
