from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import httpx
from openai import OpenAIError


class ProviderResponseError(Exception):
    """Provider answered, but not in a shape we can read."""


PROVIDER_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,
    OpenAIError,
    ProviderResponseError,
    ValueError,
)


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    mime_type: str
    data: str  # base64, no data: prefix


ContentPart = Union[TextPart, ImagePart]
UserContent = Union[str, list[ContentPart]]
Citation = dict


@dataclass(frozen=True)
class HistoryTurn:
    """Provider-agnostic turn: role is 'user' or 'assistant'."""

    role: str
    content: str


@dataclass(frozen=True)
class CompletionResult:
    content: Optional[str] = None
    citations: Optional[list[Citation]] = None
    reasoning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.content is not None


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class ReasoningDelta:
    text: str


@dataclass(frozen=True)
class CitationsReady:
    citations: list[Citation]


@dataclass(frozen=True)
class StreamFailed:
    message: str


StreamEvent = Union[TextDelta, ReasoningDelta, CitationsReady, StreamFailed]


@dataclass
class StreamResult:
    full_response_content: str = ''
    full_reasoning_content: str = ''
    full_citations: Optional[list[Citation]] = None
    error_occurred: bool = False


@dataclass(frozen=True)
class ApiKeyCandidate:
    """Snapshot of an enabled ApiKey row, detached from the db session."""

    provider_name: str
    key_value: str
    priority: int
