from __future__ import annotations

from collections.abc import Callable
from typing import Iterable, Optional, Sequence

from multichat.models.chat_message import ChatMessage
from multichat.models.enums import ChatSender
from multichat.services.ai_types import HistoryTurn, ImagePart, TextPart, UserContent

DEFAULT_IMAGE_PROMPT = 'Analyze this image.'

USER_ROLE = 'user'
ASSISTANT_ROLE = 'assistant'

MessageEncoder = Callable[[str, UserContent], dict]


def _sender_value(sender) -> str:
    return sender.value if hasattr(sender, 'value') else str(sender)


def build_history_turns(history: Sequence[ChatMessage]) -> list[HistoryTurn]:
    turns: list[HistoryTurn] = []
    for item in history:
        role = USER_ROLE if _sender_value(item.sender) == ChatSender.USER.value else ASSISTANT_ROLE
        turns.append(HistoryTurn(role=role, content=item.content or ''))
    return turns


def trim_latest_user_message(history: Iterable[ChatMessage], latest_message_id: str) -> list[ChatMessage]:
    items = list(history)
    if items and items[-1].id == latest_message_id:
        return items[:-1]
    return [item for item in items if item.id != latest_message_id]


def build_user_content(text: Optional[str], image: Optional[ImagePart] = None) -> UserContent:
    if image is None:
        return text or ''
    return [image, TextPart(text=text or DEFAULT_IMAGE_PROMPT)]


def text_only(content: UserContent) -> str:
    if isinstance(content, str):
        return content
    return '\n'.join(part.text for part in content if isinstance(part, TextPart))


def has_image(content: UserContent) -> bool:
    return not isinstance(content, str) and any(isinstance(part, ImagePart) for part in content)


def enforce_alternation(turns: Sequence[HistoryTurn]) -> list[HistoryTurn]:
    items = list(turns)
    while items and items[0].role == ASSISTANT_ROLE:
        items.pop(0)
    kept: list[HistoryTurn] = []
    for item in items:
        if kept and kept[-1].role == item.role:
            continue
        kept.append(item)
    return kept


def format_messages(
    history: Sequence[HistoryTurn],
    content: UserContent,
    *,
    encode: MessageEncoder,
    assistant_role: str = ASSISTANT_ROLE,
    strict_alternation: bool = False,
) -> list[dict]:
    """Map prior turns plus the new user content into provider messages.

    ``history`` must not contain the new user turn; ``content`` is always sent
    as the final user message, exactly once.
    """
    turns = [turn for turn in history if turn.content]
    if strict_alternation:
        turns = enforce_alternation(turns)
        # an unanswered user turn would collide with the new one
        if turns and turns[-1].role == USER_ROLE:
            turns.pop()
    messages = [
        encode(USER_ROLE if turn.role == USER_ROLE else assistant_role, turn.content)
        for turn in turns
    ]
    messages.append(encode(USER_ROLE, content))
    return messages
