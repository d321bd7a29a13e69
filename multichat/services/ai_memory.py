from __future__ import annotations

from typing import Optional, Sequence

from loguru import logger
from sqlmodel import Session

from multichat.core.config import settings
from multichat.services.memory_service import get_user_memory, list_contexts

MEMORY_PREAMBLE = (
    'The following is context the user has asked you to remember about them. '
    'Use it when it is relevant to the conversation:'
)


def render_memory_block(texts: Sequence[str]) -> str:
    lines = [f'- {text}' for text in texts if text]
    if not lines:
        return ''
    return '\n'.join([MEMORY_PREAMBLE, *lines])


def compose_system_prompt(memory_block: str, base_prompt: Optional[str]) -> Optional[str]:
    if not memory_block:
        return base_prompt or None
    if base_prompt:
        return f'{memory_block}\n\n{base_prompt}'
    return memory_block


def build_system_prompt(
    session: Session,
    user_id: str,
    use_memory: bool,
    base_prompt: Optional[str] = None,
) -> Optional[str]:
    if not use_memory:
        return base_prompt or None
    memory = get_user_memory(session, user_id)
    if memory is None or not memory.is_globally_enabled:
        return base_prompt or None
    limit = min(settings.MEMORY_INJECTION_LIMIT, memory.max_contexts)
    contexts = list_contexts(session, memory, limit=limit)
    if contexts:
        logger.debug('ai.memory.injected', user_id=user_id, contexts=len(contexts))
    return compose_system_prompt(render_memory_block([item.text for item in contexts]), base_prompt)
