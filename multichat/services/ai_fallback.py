"""Provider fallback chain.

Attempts run in a fixed order and stop at the first success:

1. the requested model on its own provider (only when that provider has an
   enabled key and the model is not disabled);
2. the same provider's default model, when it differs from the request;
3. every other enabled provider, by key priority ascending, using its
   default model and the text-only version of the content.

Provider failures never raise out of here; exhaustion is a ``None`` outcome.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from multichat.core.providers import ProviderConfig, ProviderRegistry, get_provider_registry
from multichat.services.ai_history import has_image, text_only
from multichat.services.ai_provider import build_adapter
from multichat.services.ai_provider_base import ProviderAdapter
from multichat.services.ai_stream import Emit, consume_stream
from multichat.services.ai_types import ApiKeyCandidate, Citation, HistoryTurn, UserContent


class AttemptStage(str, Enum):
    REQUESTED = 'requested'
    PROVIDER_DEFAULT = 'provider_default'
    OTHER_PROVIDER = 'other_provider'


@dataclass(frozen=True)
class Attempt:
    stage: AttemptStage
    provider: ProviderConfig
    api_key: str
    model: str
    content: UserContent


@dataclass(frozen=True)
class FallbackOutcome:
    provider: str
    model: str
    model_used: str
    stage: AttemptStage
    content: str
    reasoning: Optional[str] = None
    citations: Optional[list[Citation]] = None


class FallbackOrchestrator:
    def __init__(
        self,
        api_keys: Sequence[ApiKeyCandidate],
        *,
        registry: Optional[ProviderRegistry] = None,
        disabled_models: Sequence[str] = (),
        adapter_factory: Callable[[ProviderConfig], ProviderAdapter] = build_adapter,
    ) -> None:
        self.registry = registry or get_provider_registry()
        # sorted() is stable, so equal priorities keep the store's order
        self.api_keys = sorted(api_keys, key=lambda item: item.priority)
        self.disabled_models = frozenset(disabled_models)
        self._keys_by_provider = {item.provider_name: item for item in self.api_keys}
        self._adapter_factory = adapter_factory
        self._adapters: dict[str, ProviderAdapter] = {}

    @property
    def has_candidates(self) -> bool:
        return bool(self.api_keys)

    def adapter_for(self, provider: ProviderConfig) -> ProviderAdapter:
        adapter = self._adapters.get(provider.name)
        if adapter is None:
            adapter = self._adapter_factory(provider)
            self._adapters[provider.name] = adapter
        return adapter

    def _content_for(self, model: str, content: UserContent) -> UserContent:
        if has_image(content) and not self.registry.model_supports_vision(model):
            return text_only(content)
        return content

    def _resolve_requested(self, requested_model: Optional[str]) -> tuple[Optional[ProviderConfig], Optional[ApiKeyCandidate]]:
        if not requested_model:
            return None, None
        if requested_model in self.disabled_models:
            logger.warning('ai.fallback.model_disabled', model=requested_model)
            return None, None
        provider = self.registry.find_provider_for_model(requested_model)
        if provider is None:
            logger.warning('ai.fallback.unresolved_model', model=requested_model)
            return None, None
        key = self._keys_by_provider.get(provider.name)
        if key is None:
            logger.warning('ai.fallback.no_enabled_key', provider=provider.name, model=requested_model)
            return provider, None
        return provider, key

    def plan(self, requested_model: Optional[str], content: UserContent) -> Iterator[Attempt]:
        provider, key = self._resolve_requested(requested_model)
        tried_provider: Optional[str] = None
        if provider is not None and key is not None and requested_model:
            tried_provider = provider.name
            yield Attempt(
                AttemptStage.REQUESTED,
                provider,
                key.key_value,
                requested_model,
                self._content_for(requested_model, content),
            )
            default_model = provider.default_model
            if default_model and default_model != requested_model and default_model not in self.disabled_models:
                yield Attempt(
                    AttemptStage.PROVIDER_DEFAULT,
                    provider,
                    key.key_value,
                    default_model,
                    self._content_for(default_model, content),
                )
        plain_content = text_only(content)
        for candidate in self.api_keys:
            if candidate.provider_name == tried_provider:
                continue
            fallback_provider = self.registry.get(candidate.provider_name)
            if fallback_provider is None:
                logger.warning('ai.fallback.unknown_provider', provider=candidate.provider_name)
                continue
            default_model = fallback_provider.default_model
            if not default_model or default_model in self.disabled_models:
                continue
            yield Attempt(
                AttemptStage.OTHER_PROVIDER,
                fallback_provider,
                candidate.key_value,
                default_model,
                plain_content,
            )

    def _outcome(
        self,
        attempt: Attempt,
        requested_label: Optional[str],
        content: str,
        reasoning: Optional[str],
        citations: Optional[list[Citation]],
    ) -> FallbackOutcome:
        model_used = attempt.model
        if attempt.stage == AttemptStage.REQUESTED and requested_label:
            model_used = requested_label
        logger.info(
            'ai.fallback.success',
            provider=attempt.provider.name,
            model=attempt.model,
            stage=attempt.stage.value,
        )
        return FallbackOutcome(
            provider=attempt.provider.name,
            model=attempt.model,
            model_used=model_used,
            stage=attempt.stage,
            content=content,
            reasoning=reasoning or None,
            citations=citations,
        )

    async def run_buffered(
        self,
        *,
        requested_model: Optional[str],
        history: Sequence[HistoryTurn],
        content: UserContent,
        system_prompt: Optional[str] = None,
        requested_label: Optional[str] = None,
    ) -> Optional[FallbackOutcome]:
        for attempt in self.plan(requested_model, content):
            logger.info(
                'ai.fallback.attempt',
                stage=attempt.stage.value,
                provider=attempt.provider.name,
                model=attempt.model,
                stream=False,
            )
            result = await self.adapter_for(attempt.provider).complete(
                api_key=attempt.api_key,
                model=attempt.model,
                history=history,
                content=attempt.content,
                system_prompt=system_prompt,
            )
            if result.ok:
                return self._outcome(attempt, requested_label, result.content, result.reasoning, result.citations)
            logger.warning('ai.fallback.failed', stage=attempt.stage.value, provider=attempt.provider.name)
        logger.error('ai.fallback.exhausted', requested_model=requested_model, stream=False)
        return None

    async def run_streaming(
        self,
        *,
        requested_model: Optional[str],
        history: Sequence[HistoryTurn],
        content: UserContent,
        emit: Emit,
        system_prompt: Optional[str] = None,
        requested_label: Optional[str] = None,
    ) -> Optional[FallbackOutcome]:
        for attempt in self.plan(requested_model, content):
            logger.info(
                'ai.fallback.attempt',
                stage=attempt.stage.value,
                provider=attempt.provider.name,
                model=attempt.model,
                stream=True,
            )
            adapter = self.adapter_for(attempt.provider)
            result = await consume_stream(
                adapter.stream(
                    api_key=attempt.api_key,
                    model=attempt.model,
                    history=history,
                    content=attempt.content,
                    system_prompt=system_prompt,
                ),
                emit,
            )
            if result.error_occurred:
                logger.warning('ai.fallback.failed', stage=attempt.stage.value, provider=attempt.provider.name)
                continue
            citations = result.full_citations
            if citations is None and attempt.provider.supports_citations:
                citations = await adapter.probe_citations(
                    api_key=attempt.api_key,
                    model=attempt.model,
                    history=history,
                    content=attempt.content,
                    system_prompt=system_prompt,
                )
                if citations:
                    emit({'type': 'citations', 'citations': citations})
            return self._outcome(
                attempt,
                requested_label,
                result.full_response_content,
                result.full_reasoning_content,
                citations,
            )
        logger.error('ai.fallback.exhausted', requested_model=requested_model, stream=True)
        return None
