import pytest

from helpers import ScriptedAdapter, scripted_factory
from multichat.core.providers import get_provider_registry
from multichat.services.ai_title import (
    build_title_prompt,
    clean_title,
    generate_title,
    is_vietnamese,
    pick_title_key,
    title_model_for,
)
from multichat.services.ai_types import ApiKeyCandidate


def _key(name, priority=99):
    return ApiKeyCandidate(provider_name=name, key_value='k', priority=priority)


def test_vietnamese_detection():
    assert is_vietnamese('Xin chào, bạn có khỏe không?')
    assert is_vietnamese('Đi đâu vậy')
    assert not is_vietnamese('Hello there, how are you?')
    # French shares some accents but none of the Vietnamese-only letters
    assert not is_vietnamese('Ça va très bien, merci')


def test_title_prompt_language():
    assert 'tiếng Việt' in build_title_prompt('Xin chào bạn')
    assert 'in English' in build_title_prompt('hello')


def test_clean_title():
    assert clean_title('"Trip Planning Ideas."') == 'Trip Planning Ideas'
    assert clean_title('Title: with subtitle') == 'Title'
    assert clean_title('First line\nsecond line') == 'First line'
    long_title = 'x' * 80
    assert clean_title(long_title) == 'x' * 50 + '...'
    assert clean_title('   ') is None
    assert clean_title(None) is None


def test_pick_title_key_follows_preference():
    keys = [_key('Gemini', 1), _key('OpenAI', 2), _key('Perplexity', 0)]
    assert pick_title_key(keys, ['Anthropic', 'OpenAI', 'DeepSeek', 'Gemini']).provider_name == 'OpenAI'
    assert pick_title_key([_key('Perplexity')], ['Anthropic', 'OpenAI']) is None


@pytest.mark.anyio
async def test_generate_title_uses_provider_default_model():
    ScriptedAdapter.reset({'gpt-3.5-turbo': '"Weekend Hiking Plans."'})
    title = await generate_title('Help me plan a hiking weekend', [_key('OpenAI')], adapter_factory=scripted_factory)
    assert title == 'Weekend Hiking Plans'
    assert ScriptedAdapter.calls == [('OpenAI', 'gpt-3.5-turbo', False)]
    assert 'Help me plan a hiking weekend' in ScriptedAdapter.seen_content[0]


@pytest.mark.anyio
async def test_generate_title_failure_returns_none():
    ScriptedAdapter.reset()
    assert await generate_title('hello', [_key('OpenAI')], adapter_factory=scripted_factory) is None
    assert await generate_title('hello', [], adapter_factory=scripted_factory) is None
    assert await generate_title('   ', [_key('OpenAI')], adapter_factory=scripted_factory) is None


@pytest.mark.anyio
async def test_generate_title_skips_provider_with_disabled_default():
    ScriptedAdapter.reset({'gpt-3.5-turbo': 'Greeting Chat', 'claude-3-haiku-20240307': 'Should Not Run'})
    keys = [_key('Anthropic', 1), _key('OpenAI', 2)]
    title = await generate_title(
        'hello there',
        keys,
        disabled_models={'claude-3-haiku-20240307'},
        adapter_factory=scripted_factory,
    )
    assert title == 'Greeting Chat'
    assert ScriptedAdapter.calls == [('OpenAI', 'gpt-3.5-turbo', False)]


@pytest.mark.anyio
async def test_generate_title_without_usable_default_makes_no_call():
    ScriptedAdapter.reset({'gpt-3.5-turbo': 'Never'})
    title = await generate_title('hello', [_key('OpenAI')], disabled_models=['gpt-3.5-turbo'], adapter_factory=scripted_factory)
    assert title is None
    assert ScriptedAdapter.calls == []


def test_title_model_for_requires_usable_default():
    registry = get_provider_registry()
    openai = registry.get('OpenAI')
    assert title_model_for(openai) == 'gpt-3.5-turbo'
    assert title_model_for(openai, {'gpt-3.5-turbo'}) is None
    assert title_model_for(openai.model_copy(update={'default_model': None})) is None
    assert title_model_for(None) is None
