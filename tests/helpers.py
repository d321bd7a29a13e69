from collections.abc import AsyncIterator
from typing import Optional
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlmodel import Session, select

from multichat.core.providers import ProviderConfig
from multichat.db.session import engine
from multichat.models.api_key import ApiKey
from multichat.models.enums import UserRole
from multichat.models.user import User
from multichat.services.ai_provider_base import ProviderAdapter
from multichat.services.ai_types import (
    CitationsReady,
    CompletionResult,
    ProviderResponseError,
    StreamEvent,
    TextDelta,
    TextPart,
    UserContent,
)


def register_and_login(client: TestClient, admin: bool = False) -> dict:
    email = f'{uuid4()}@example.com'
    client.post('/api/v1/auth/register', json={'email': email, 'password': 'secret123'})
    if admin:
        with Session(engine) as session:
            user = session.exec(select(User).where(User.email == email)).one()
            user.role = UserRole.ADMIN
            session.add(user)
            session.commit()
    login = client.post('/api/v1/auth/login', json={'email': email, 'password': 'secret123'})
    return {'Authorization': f"Bearer {login.json()['access_token']}"}


def add_api_key(provider_name: str, priority: int = 99, enabled: bool = True) -> None:
    with Session(engine) as session:
        session.add(ApiKey(provider_name=provider_name, key_value=f'{provider_name}-key', priority=priority, is_enabled=enabled))
        session.commit()


class ScriptedAdapter(ProviderAdapter):
    """Adapter whose replies are looked up by model; unknown models fail."""

    replies: dict[str, str] = {}
    citations: dict[str, list[dict]] = {}
    calls: list[tuple[str, str, bool]] = []
    seen_content: list[UserContent] = []
    seen_system: list[Optional[str]] = []

    @classmethod
    def reset(cls, replies: Optional[dict[str, str]] = None) -> None:
        cls.replies = dict(replies or {})
        cls.citations = {}
        cls.calls = []
        cls.seen_content = []
        cls.seen_system = []

    def encode_message(self, role: str, content: UserContent) -> dict:
        if isinstance(content, str):
            return {'role': role, 'content': content}
        return {'role': role, 'content': [part.text if isinstance(part, TextPart) else 'image' for part in content]}

    def _record(self, model: str, messages: list[dict], system_prompt: Optional[str], stream: bool) -> str:
        ScriptedAdapter.calls.append((self.name, model, stream))
        ScriptedAdapter.seen_content.append(messages[-1]['content'])
        ScriptedAdapter.seen_system.append(system_prompt)
        reply = ScriptedAdapter.replies.get(model)
        if reply is None:
            raise ProviderResponseError(f'{model} is down')
        return reply

    async def _complete(self, *, api_key: str, model: str, messages: list[dict], system_prompt: Optional[str]) -> CompletionResult:
        reply = self._record(model, messages, system_prompt, stream=False)
        return CompletionResult(content=reply, citations=ScriptedAdapter.citations.get(model))

    async def _stream(
        self,
        *,
        api_key: str,
        model: str,
        messages: list[dict],
        system_prompt: Optional[str],
    ) -> AsyncIterator[StreamEvent]:
        reply = self._record(model, messages, system_prompt, stream=True)
        for word in reply.split(' '):
            yield TextDelta(word + ' ')
        if model in ScriptedAdapter.citations:
            yield CitationsReady(ScriptedAdapter.citations[model])


def scripted_factory(provider: ProviderConfig) -> ProviderAdapter:
    return ScriptedAdapter(provider)
