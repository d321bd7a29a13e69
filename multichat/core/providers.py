from __future__ import annotations

import json
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from multichat.core.config import settings


class ProviderKind(str, Enum):
    ANTHROPIC = 'anthropic'
    OPENAI = 'openai'
    GEMINI = 'gemini'


class ProviderModelConfig(BaseModel):
    model_config = ConfigDict(extra='forbid')

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    supports_vision: bool = False


class ProviderConfig(BaseModel):
    model_config = ConfigDict(extra='forbid')

    name: str = Field(..., min_length=1)
    kind: ProviderKind
    base_url: str = Field(..., min_length=1)
    api_key_env: Optional[str] = None
    default_model: Optional[str] = None
    model_prefix: Optional[str] = None
    strict_alternation: bool = False
    supports_citations: bool = False
    models: list[ProviderModelConfig] = Field(..., min_length=1)

    @model_validator(mode='after')
    def default_model_is_listed(self) -> 'ProviderConfig':
        if self.default_model and self.default_model not in {model.id for model in self.models}:
            raise ValueError(f"default_model {self.default_model} is not one of {self.name}'s models")
        return self

    @property
    def assistant_role(self) -> str:
        return 'model' if self.kind == ProviderKind.GEMINI else 'assistant'


class ProviderRegistry:
    def __init__(self, providers: list[ProviderConfig]) -> None:
        if not providers:
            raise RuntimeError("PROVIDERS must include at least one provider")
        self._providers: dict[str, ProviderConfig] = {}
        self._model_index: dict[str, ProviderConfig] = {}
        self._vision: dict[str, bool] = {}
        for provider in providers:
            name = provider.name.strip()
            if name in self._providers:
                raise RuntimeError(f"Duplicate provider name: {name}")
            self._providers[name] = provider
            for model in provider.models:
                model_id = model.id.strip()
                if not model_id:
                    raise RuntimeError("PROVIDERS contains an empty model id")
                if model_id in self._model_index:
                    raise RuntimeError(f"Duplicate model id: {model_id}")
                self._model_index[model_id] = provider
                self._vision[model_id] = model.supports_vision

    @property
    def providers(self) -> list[ProviderConfig]:
        return list(self._providers.values())

    def get(self, name: str) -> Optional[ProviderConfig]:
        return self._providers.get(name)

    def list_models(self, providers: Optional[set[str]] = None) -> list[dict]:
        models: list[dict] = []
        for provider in self._providers.values():
            if providers is not None and provider.name not in providers:
                continue
            for model in provider.models:
                models.append(
                    {
                        'id': model.id,
                        'name': model.name,
                        'provider': provider.name,
                        'supports_vision': model.supports_vision,
                    }
                )
        return models

    def has_model(self, model_id: str) -> bool:
        return model_id in self._model_index

    def find_provider_for_model(self, model_id: Optional[str]) -> Optional[ProviderConfig]:
        if not model_id:
            return None
        for provider in self._providers.values():
            if provider.model_prefix and model_id.startswith(provider.model_prefix):
                return provider
        return self._model_index.get(model_id)

    def model_supports_vision(self, model_id: Optional[str]) -> bool:
        if not model_id:
            return False
        return self._vision.get(model_id, False)

    def default_model_for(self, provider_name: str) -> Optional[str]:
        provider = self._providers.get(provider_name)
        return provider.default_model if provider else None


def _parse_providers(raw: str) -> list[ProviderConfig]:
    if not raw or not raw.strip():
        raise RuntimeError("PROVIDERS is missing in environment or .env")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:  # pragma: no cover - guardrail
        raise RuntimeError("PROVIDERS must be valid JSON") from exc
    if not isinstance(payload, list):
        raise RuntimeError("PROVIDERS must be a JSON array")
    try:
        providers = [ProviderConfig.model_validate(item) for item in payload]
    except ValidationError as exc:
        raise RuntimeError(f"PROVIDERS validation error: {exc}") from exc
    if not providers:
        raise RuntimeError("PROVIDERS must include at least one provider")
    return providers


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    providers = _parse_providers(settings.PROVIDERS)
    return ProviderRegistry(providers)


def reset_provider_registry() -> None:
    get_provider_registry.cache_clear()


def find_provider_for_model(model_id: Optional[str]) -> Optional[ProviderConfig]:
    return get_provider_registry().find_provider_for_model(model_id)


def model_supports_vision(model_id: Optional[str]) -> bool:
    return get_provider_registry().model_supports_vision(model_id)


def is_model_available(model_id: str) -> bool:
    return get_provider_registry().has_model(model_id)
