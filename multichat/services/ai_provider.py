from __future__ import annotations

from loguru import logger

from multichat.core.providers import ProviderConfig, ProviderKind
from multichat.services.ai_provider_anthropic import AnthropicAdapter
from multichat.services.ai_provider_base import ProviderAdapter
from multichat.services.ai_provider_gemini import GeminiAdapter
from multichat.services.ai_provider_openai import OpenAICompatAdapter

_ADAPTERS: dict[ProviderKind, type[ProviderAdapter]] = {
    ProviderKind.ANTHROPIC: AnthropicAdapter,
    ProviderKind.OPENAI: OpenAICompatAdapter,
    ProviderKind.GEMINI: GeminiAdapter,
}


def build_adapter(provider: ProviderConfig) -> ProviderAdapter:
    adapter_cls = _ADAPTERS[provider.kind]
    logger.debug('ai.provider.selected', provider=provider.name, kind=provider.kind.value)
    return adapter_cls(provider)
