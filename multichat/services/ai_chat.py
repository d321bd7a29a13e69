"""Add-message use case shared by the buffered and streaming endpoints.

The user message is persisted by the caller before anything here runs. The AI
message is written at most once: after a successful attempt, or (buffered
mode only) as a fixed fallback sentence when every provider failed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlmodel import Session

from multichat.core.config import DEFAULT_SESSION_TITLE
from multichat.core.providers import ProviderConfig, ProviderRegistry, get_provider_registry
from multichat.db.session import engine
from multichat.models.chat_message import ChatMessage
from multichat.models.chat_session import ChatSession
from multichat.models.enums import ChatSender
from multichat.services.ai_fallback import FallbackOrchestrator
from multichat.services.ai_history import build_history_turns, build_user_content, trim_latest_user_message
from multichat.services.ai_memory import build_system_prompt
from multichat.services.ai_provider import build_adapter
from multichat.services.ai_provider_base import ProviderAdapter
from multichat.services.ai_stream import Emit
from multichat.services.ai_title import generate_title
from multichat.services.ai_types import ApiKeyCandidate, HistoryTurn, ImagePart, UserContent
from multichat.services.api_key_service import list_enabled_api_keys, to_candidates
from multichat.services.chat_service import (
    append_message,
    get_session as get_chat_session,
    list_messages,
    to_message_out,
    to_session_out,
    touch_session,
    update_session_title,
)
from multichat.services.custom_model_service import find_custom_model
from multichat.services.disabled_model_service import disabled_model_names

NO_PROVIDERS_MESSAGE = 'Sorry, no API providers are available.'
EXHAUSTED_MESSAGE = 'Sorry, I could not process that request.'
STREAM_NO_KEYS_ERROR = 'No enabled API keys available.'
STREAM_EXHAUSTED_ERROR = 'Failed to get response from all providers.'
STREAM_INTERNAL_ERROR = 'Internal Server Error during stream'

AdapterFactory = Callable[[ProviderConfig], ProviderAdapter]


@dataclass(frozen=True)
class ChatTurn:
    session_id: str
    user_id: str
    user_message_id: str
    text: str
    image: Optional[ImagePart] = None
    model: Optional[str] = None
    use_memory: bool = True


@dataclass(frozen=True)
class ResolvedModel:
    requested_model: Optional[str]
    label: Optional[str] = None
    base_prompt: Optional[str] = None


@dataclass(frozen=True)
class PreparedTurn:
    orchestrator: FallbackOrchestrator
    api_keys: list[ApiKeyCandidate]
    model: ResolvedModel
    history: list[HistoryTurn]
    content: UserContent
    system_prompt: Optional[str]


@dataclass(frozen=True)
class BufferedTurnResult:
    ai_message: ChatMessage
    chat_session: ChatSession
    title: Optional[str] = None


def resolve_model(session: Session, model: Optional[str]) -> ResolvedModel:
    custom = find_custom_model(session, model)
    if custom is None:
        return ResolvedModel(requested_model=model or None)
    logger.info('ai.chat.custom_model', custom_model=custom.name, base_model=custom.base_model_identifier)
    return ResolvedModel(
        requested_model=custom.base_model_identifier,
        label=custom.name,
        base_prompt=custom.system_prompt or None,
    )


def prepare_turn(
    session: Session,
    turn: ChatTurn,
    *,
    registry: Optional[ProviderRegistry] = None,
    adapter_factory: AdapterFactory = build_adapter,
) -> PreparedTurn:
    api_keys = to_candidates(list_enabled_api_keys(session, sort_by_priority=True))
    orchestrator = FallbackOrchestrator(
        api_keys,
        registry=registry or get_provider_registry(),
        disabled_models=sorted(disabled_model_names(session)),
        adapter_factory=adapter_factory,
    )
    model = resolve_model(session, turn.model)
    system_prompt = build_system_prompt(session, turn.user_id, turn.use_memory, model.base_prompt)
    stored = trim_latest_user_message(list_messages(session, turn.session_id), turn.user_message_id)
    return PreparedTurn(
        orchestrator=orchestrator,
        api_keys=api_keys,
        model=model,
        history=build_history_turns(stored),
        content=build_user_content(turn.text, turn.image),
        system_prompt=system_prompt,
    )


async def maybe_generate_title(
    session: Session,
    record: ChatSession,
    text: str,
    prepared: PreparedTurn,
    *,
    adapter_factory: AdapterFactory = build_adapter,
) -> Optional[str]:
    if record.title != DEFAULT_SESSION_TITLE:
        return None
    title = await generate_title(
        text,
        prepared.api_keys,
        registry=prepared.orchestrator.registry,
        disabled_models=prepared.orchestrator.disabled_models,
        adapter_factory=adapter_factory,
    )
    if title:
        update_session_title(session, record, title)
    return title


async def run_buffered_turn(
    session: Session,
    record: ChatSession,
    turn: ChatTurn,
    *,
    registry: Optional[ProviderRegistry] = None,
    adapter_factory: AdapterFactory = build_adapter,
) -> BufferedTurnResult:
    prepared = prepare_turn(session, turn, registry=registry, adapter_factory=adapter_factory)
    title = await maybe_generate_title(session, record, turn.text, prepared, adapter_factory=adapter_factory)
    outcome = await prepared.orchestrator.run_buffered(
        requested_model=prepared.model.requested_model,
        history=prepared.history,
        content=prepared.content,
        system_prompt=prepared.system_prompt,
        requested_label=prepared.model.label,
    )
    if outcome is None:
        content = EXHAUSTED_MESSAGE if prepared.orchestrator.has_candidates else NO_PROVIDERS_MESSAGE
        ai_message = append_message(session, turn.session_id, ChatSender.AI, content)
    else:
        ai_message = append_message(
            session,
            turn.session_id,
            ChatSender.AI,
            outcome.content,
            model_used=outcome.model_used,
            reasoning_content=outcome.reasoning,
            citations=outcome.citations,
        )
    record = touch_session(session, record, ai_message.timestamp)
    logger.info(
        'ai.chat.buffered.done',
        session_id=turn.session_id,
        model_used=ai_message.model_used,
        fallback=outcome is None,
    )
    return BufferedTurnResult(ai_message=ai_message, chat_session=record, title=title)


async def run_streaming_turn(
    turn: ChatTurn,
    emit: Emit,
    user_message: dict,
    *,
    registry: Optional[ProviderRegistry] = None,
    adapter_factory: AdapterFactory = build_adapter,
) -> None:
    """Producer for one SSE response; always ends with ``done`` or a terminal ``error``."""
    emit({'type': 'user_message_saved', 'message': user_message})
    logger.info('ai.chat.stream.start', session_id=turn.session_id, user_id=turn.user_id, model=turn.model)
    try:
        with Session(engine) as session:
            record = get_chat_session(session, turn.session_id)
            if record is None:
                emit({'type': 'error', 'message': 'Chat session not found'})
                return
            prepared = prepare_turn(session, turn, registry=registry, adapter_factory=adapter_factory)
            title = await maybe_generate_title(session, record, turn.text, prepared, adapter_factory=adapter_factory)
            if title:
                emit({'type': 'title_update', 'title': title})
            outcome = await prepared.orchestrator.run_streaming(
                requested_model=prepared.model.requested_model,
                history=prepared.history,
                content=prepared.content,
                emit=emit,
                system_prompt=prepared.system_prompt,
                requested_label=prepared.model.label,
            )
            if outcome is None:
                message = STREAM_EXHAUSTED_ERROR if prepared.orchestrator.has_candidates else STREAM_NO_KEYS_ERROR
                logger.warning('ai.chat.stream.exhausted', session_id=turn.session_id)
                emit({'type': 'error', 'message': message})
                return
            ai_message = append_message(
                session,
                turn.session_id,
                ChatSender.AI,
                outcome.content,
                model_used=outcome.model_used,
                reasoning_content=outcome.reasoning,
                citations=outcome.citations,
            )
            record = touch_session(session, record, ai_message.timestamp)
            emit({'type': 'model_info', 'modelUsed': outcome.model_used})
            emit(
                {
                    'type': 'done',
                    'updatedSession': to_session_out(record).model_dump(mode='json'),
                    'aiMessage': to_message_out(ai_message).model_dump(mode='json'),
                }
            )
            logger.info(
                'ai.chat.stream.done',
                session_id=turn.session_id,
                provider=outcome.provider,
                model_used=outcome.model_used,
                content_len=len(outcome.content),
            )
    except Exception:  # noqa: BLE001
        logger.exception('ai.chat.stream.failed', session_id=turn.session_id)
        emit({'type': 'error', 'message': STREAM_INTERNAL_ERROR})
