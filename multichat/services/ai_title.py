from __future__ import annotations

import re
from collections.abc import Callable, Collection, Sequence
from typing import Optional

from loguru import logger

from multichat.core.config import settings
from multichat.core.providers import ProviderConfig, ProviderRegistry, get_provider_registry
from multichat.services.ai_provider import build_adapter
from multichat.services.ai_provider_base import ProviderAdapter
from multichat.services.ai_types import ApiKeyCandidate

TITLE_SNIPPET_CHARS = 100
TITLE_MAX_CHARS = 50

# letters that only Vietnamese uses among Latin scripts: ă đ ơ ư and the tone-marked vowels
_VIETNAMESE_CHARS = re.compile(
    '[ăđơưĂĐƠƯ'
    'ạảấầẩẫậắằẳẵặẹẻẽếềểễệỉịọỏốồổỗộớờởỡợụủứừửữựỳỵỷỹ'
    'ẠẢẤẦẨẪẬẮẰẲẴẶẸẺẼẾỀỂỄỆỈỊỌỎỐỒỔỖỘỚỜỞỠỢỤỦỨỪỬỮỰỲỴỶỸ]'
)


def is_vietnamese(text: str) -> bool:
    return bool(_VIETNAMESE_CHARS.search(text or ''))


def build_title_prompt(snippet: str) -> str:
    if is_vietnamese(snippet):
        return (
            'Tạo một tiêu đề rất ngắn gọn (tối đa 3-5 từ) bằng tiếng Việt cho cuộc trò chuyện '
            f'bắt đầu bằng tin nhắn này: "{snippet}..."'
        )
    return (
        'Generate a very concise title (3-5 words max) in English for a chat that starts '
        f'with this message: "{snippet}..."'
    )


def clean_title(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    title = raw.strip()
    if title.startswith('"'):
        title = title[1:]
    if title.endswith('"'):
        title = title[:-1]
    if title.endswith('.'):
        title = title[:-1]
    title = re.split(r'[\n:]', title, maxsplit=1)[0].strip()
    if not title:
        return None
    if len(title) > TITLE_MAX_CHARS:
        title = title[:TITLE_MAX_CHARS] + '...'
    return title


def pick_title_key(
    api_keys: Sequence[ApiKeyCandidate],
    preference: Sequence[str],
) -> Optional[ApiKeyCandidate]:
    by_provider = {item.provider_name: item for item in api_keys}
    for name in preference:
        candidate = by_provider.get(name)
        if candidate is not None:
            return candidate
    return None


def title_model_for(provider: Optional[ProviderConfig], disabled_models: Collection[str] = ()) -> Optional[str]:
    if provider is None or not provider.default_model:
        return None
    if provider.default_model in disabled_models:
        return None
    return provider.default_model


async def generate_title(
    text: str,
    api_keys: Sequence[ApiKeyCandidate],
    *,
    registry: Optional[ProviderRegistry] = None,
    disabled_models: Collection[str] = (),
    adapter_factory: Callable[[ProviderConfig], ProviderAdapter] = build_adapter,
) -> Optional[str]:
    snippet = (text or '').strip()[:TITLE_SNIPPET_CHARS]
    if not snippet:
        return None
    registry = registry or get_provider_registry()
    usable = [item for item in api_keys if title_model_for(registry.get(item.provider_name), disabled_models)]
    candidate = pick_title_key(usable, settings.TITLE_PROVIDER_ORDER)
    if candidate is None:
        logger.warning('ai.title.no_key')
        return None
    provider = registry.get(candidate.provider_name)
    model = title_model_for(provider, disabled_models)
    prompt = build_title_prompt(snippet)
    result = await adapter_factory(provider).complete(
        api_key=candidate.key_value,
        model=model,
        history=[],
        content=prompt,
    )
    title = clean_title(result.content)
    if title is None:
        logger.warning('ai.title.empty', provider=provider.name)
        return None
    logger.info('ai.title.generated', provider=provider.name, title=title)
    return title
