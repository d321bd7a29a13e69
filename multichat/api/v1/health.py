from fastapi import APIRouter
from multichat.core.config import settings

router = APIRouter()


@router.get('/health')
def health() -> dict:
    return {'status': 'ok', 'env': settings.ENV}
