import json

import httpx
import pytest
import respx

from multichat.core.providers import get_provider_registry
from multichat.services.ai_provider import build_adapter
from multichat.services.ai_stream import consume_stream
from multichat.services.ai_types import HistoryTurn, ImagePart, StreamFailed, TextPart

HISTORY = [HistoryTurn(role='user', content='earlier'), HistoryTurn(role='assistant', content='reply')]


def _adapter(name):
    return build_adapter(get_provider_registry().get(name))


def _sse(*events):
    body = ''.join(f'data: {json.dumps(event)}\n\n' for event in events)
    return httpx.Response(200, text=body, headers={'content-type': 'text/event-stream'})


def _openai_sse(*chunks):
    body = ''.join(f'data: {json.dumps(chunk)}\n\n' for chunk in chunks) + 'data: [DONE]\n\n'
    return httpx.Response(200, text=body, headers={'content-type': 'text/event-stream'})


def _completion(content, **extra):
    payload = {
        'id': 'cmpl-1',
        'object': 'chat.completion',
        'created': 1,
        'model': 'm',
        'choices': [{'index': 0, 'message': {'role': 'assistant', 'content': content}, 'finish_reason': 'stop'}],
    }
    payload.update(extra)
    return payload


def _chunk(content=None, **delta_extra):
    delta = {'content': content} if content is not None else {}
    delta.update(delta_extra)
    return {
        'id': 'c1',
        'object': 'chat.completion.chunk',
        'created': 1,
        'model': 'm',
        'choices': [{'index': 0, 'delta': delta, 'finish_reason': None}],
    }


@pytest.mark.anyio
async def test_anthropic_complete_sends_system_field():
    with respx.mock(assert_all_called=True) as mock:
        route = mock.post(host='api.anthropic.com', path='/v1/messages').mock(
            return_value=httpx.Response(200, json={'content': [{'type': 'text', 'text': 'Hi there'}]})
        )
        result = await _adapter('Anthropic').complete(
            api_key='sk-ant',
            model='claude-3-haiku-20240307',
            history=HISTORY,
            content='hello',
            system_prompt='be brief',
        )
    assert result.content == 'Hi there'
    request = route.calls.last.request
    body = json.loads(request.content)
    assert request.headers['x-api-key'] == 'sk-ant'
    assert request.headers['anthropic-version'] == '2023-06-01'
    assert body['system'] == 'be brief'
    assert body['messages'][-1] == {'role': 'user', 'content': 'hello'}


@pytest.mark.anyio
async def test_anthropic_image_block_precedes_text():
    image = ImagePart(mime_type='image/png', data='aGVsbG8=')
    with respx.mock() as mock:
        route = mock.post(host='api.anthropic.com', path='/v1/messages').mock(
            return_value=httpx.Response(200, json={'content': [{'type': 'text', 'text': 'A cat'}]})
        )
        await _adapter('Anthropic').complete(
            api_key='k',
            model='claude-3-haiku-20240307',
            history=[],
            content=[image, TextPart(text='What is this?')],
        )
    blocks = json.loads(route.calls.last.request.content)['messages'][-1]['content']
    assert blocks[0]['type'] == 'image'
    assert blocks[0]['source'] == {'type': 'base64', 'media_type': 'image/png', 'data': 'aGVsbG8='}
    assert blocks[1] == {'type': 'text', 'text': 'What is this?'}


@pytest.mark.anyio
async def test_anthropic_http_error_is_swallowed():
    with respx.mock() as mock:
        mock.post(host='api.anthropic.com', path='/v1/messages').mock(return_value=httpx.Response(500, json={}))
        result = await _adapter('Anthropic').complete(
            api_key='k', model='claude-3-haiku-20240307', history=[], content='hello'
        )
    assert result.content is None
    assert result.citations is None


@pytest.mark.anyio
async def test_anthropic_stream_text_and_thinking():
    with respx.mock() as mock:
        mock.post(host='api.anthropic.com', path='/v1/messages').mock(
            return_value=_sse(
                {'type': 'message_start'},
                {'type': 'content_block_delta', 'delta': {'type': 'thinking_delta', 'thinking': 'hmm'}},
                {'type': 'content_block_delta', 'delta': {'type': 'text_delta', 'text': 'Hel'}},
                {'type': 'content_block_delta', 'delta': {'type': 'text_delta', 'text': 'lo'}},
                {'type': 'message_stop'},
            )
        )
        emitted = []
        result = await consume_stream(
            _adapter('Anthropic').stream(api_key='k', model='claude-3-haiku-20240307', history=[], content='hi'),
            emitted.append,
        )
    assert result.full_response_content == 'Hello'
    assert result.full_reasoning_content == 'hmm'
    assert not result.error_occurred


@pytest.mark.anyio
async def test_anthropic_stream_without_stop_fails():
    with respx.mock() as mock:
        mock.post(host='api.anthropic.com', path='/v1/messages').mock(
            return_value=_sse({'type': 'content_block_delta', 'delta': {'type': 'text_delta', 'text': 'cut'}})
        )
        events = [
            event
            async for event in _adapter('Anthropic').stream(
                api_key='k', model='claude-3-haiku-20240307', history=[], content='hi'
            )
        ]
    assert isinstance(events[-1], StreamFailed)
    assert events[-1].message.startswith('Error from Anthropic:')


@pytest.mark.anyio
async def test_gemini_uses_model_role_and_header_key():
    with respx.mock() as mock:
        route = mock.post(
            host='generativelanguage.googleapis.com',
            path='/v1beta/models/gemini-1.5-flash-latest:generateContent',
        ).mock(
            return_value=httpx.Response(
                200, json={'candidates': [{'content': {'parts': [{'text': 'Xin chào'}]}}]}
            )
        )
        result = await _adapter('Gemini').complete(
            api_key='g-key',
            model='gemini-1.5-flash-latest',
            history=HISTORY,
            content='hello',
            system_prompt='sys',
        )
    assert result.content == 'Xin chào'
    request = route.calls.last.request
    body = json.loads(request.content)
    assert request.headers['x-goog-api-key'] == 'g-key'
    assert 'key=' not in str(request.url)
    assert [item['role'] for item in body['contents']] == ['user', 'model', 'user']
    assert body['contents'][-1]['parts'] == [{'text': 'hello'}]
    assert body['systemInstruction'] == {'parts': [{'text': 'sys'}]}


@pytest.mark.anyio
async def test_gemini_blocked_prompt_is_a_failure():
    with respx.mock() as mock:
        mock.post(
            host='generativelanguage.googleapis.com',
            path='/v1beta/models/gemini-1.5-flash-latest:generateContent',
        ).mock(return_value=httpx.Response(200, json={'promptFeedback': {'blockReason': 'SAFETY'}}))
        result = await _adapter('Gemini').complete(
            api_key='k', model='gemini-1.5-flash-latest', history=[], content='hello'
        )
    assert result.content is None


@pytest.mark.anyio
async def test_gemini_stream():
    with respx.mock() as mock:
        mock.post(
            host='generativelanguage.googleapis.com',
            path='/v1beta/models/gemini-1.5-flash-latest:streamGenerateContent',
        ).mock(
            return_value=_sse(
                {'candidates': [{'content': {'parts': [{'text': 'One '}]}}]},
                {'candidates': [{'content': {'parts': [{'text': 'two'}]}}]},
            )
        )
        result = await consume_stream(
            _adapter('Gemini').stream(api_key='k', model='gemini-1.5-flash-latest', history=[], content='count'),
            lambda payload: None,
        )
    assert result.full_response_content == 'One two'


@pytest.mark.anyio
async def test_openai_complete_with_system_message():
    with respx.mock() as mock:
        route = mock.post(host='api.openai.com', path='/v1/chat/completions').mock(
            return_value=httpx.Response(200, json=_completion('Hello!'))
        )
        result = await _adapter('OpenAI').complete(
            api_key='sk-test', model='gpt-4o', history=HISTORY, content='hi', system_prompt='sys'
        )
    assert result.content == 'Hello!'
    body = json.loads(route.calls.last.request.content)
    assert body['model'] == 'gpt-4o'
    assert body['messages'][0] == {'role': 'system', 'content': 'sys'}
    assert body['messages'][-1] == {'role': 'user', 'content': 'hi'}


@pytest.mark.anyio
async def test_openai_error_status_becomes_stream_failure():
    with respx.mock() as mock:
        mock.post(host='api.openai.com', path='/v1/chat/completions').mock(
            return_value=httpx.Response(429, json={'error': {'message': 'slow down'}})
        )
        events = [
            event
            async for event in _adapter('OpenAI').stream(api_key='k', model='gpt-4o', history=[], content='hi')
        ]
    assert events == [StreamFailed('Error from OpenAI: HTTP 429')]


@pytest.mark.anyio
async def test_perplexity_strips_prefix_and_normalizes_citations():
    with respx.mock() as mock:
        route = mock.post(host='api.perplexity.ai', path='/chat/completions').mock(
            return_value=httpx.Response(
                200,
                json=_completion('Answer', citations=['https://one.test', 'https://two.test']),
            )
        )
        result = await _adapter('Perplexity').complete(
            api_key='pplx', model='perplexity/sonar', history=[], content='question'
        )
    assert json.loads(route.calls.last.request.content)['model'] == 'sonar'
    assert result.citations == [
        {'url': 'https://one.test', 'title': 'Source 1'},
        {'url': 'https://two.test', 'title': 'Source 2'},
    ]


@pytest.mark.anyio
async def test_deepseek_stream_reasoning_channel():
    with respx.mock() as mock:
        mock.post(host='api.deepseek.com', path='/v1/chat/completions').mock(
            return_value=_openai_sse(
                _chunk(reasoning_content='step 1'),
                _chunk('Final'),
                _chunk(' answer'),
            )
        )
        emitted = []
        result = await consume_stream(
            _adapter('DeepSeek').stream(api_key='k', model='deepseek-reasoner', history=[], content='q'),
            emitted.append,
        )
    assert result.full_response_content == 'Final answer'
    assert result.full_reasoning_content == 'step 1'
    assert emitted[0] == {'type': 'reasoning_chunk', 'content': 'step 1'}


@pytest.mark.anyio
async def test_citation_probe_only_for_capable_providers():
    assert (
        await _adapter('OpenAI').probe_citations(api_key='k', model='gpt-4o', history=[], content='q')
    ) is None
    with respx.mock() as mock:
        mock.post(host='api.perplexity.ai', path='/chat/completions').mock(return_value=httpx.Response(503))
        citations = await _adapter('Perplexity').probe_citations(
            api_key='k', model='perplexity/sonar', history=[], content='q'
        )
    assert citations is None


@pytest.mark.anyio
@pytest.mark.parametrize(
    'payload',
    [['unexpected'], 'text', None, {'content': 'not blocks'}, {'content': ['stray', {'type': 'text', 'text': 7}]}],
)
async def test_anthropic_wrong_shape_body_is_a_failure(payload):
    with respx.mock() as mock:
        mock.post(host='api.anthropic.com', path='/v1/messages').mock(
            return_value=httpx.Response(200, json=payload)
        )
        result = await _adapter('Anthropic').complete(
            api_key='k', model='claude-3-haiku-20240307', history=[], content='hello'
        )
    assert result.content is None


@pytest.mark.anyio
async def test_anthropic_stream_skips_stray_blocks_and_fails_on_non_object_event():
    with respx.mock() as mock:
        mock.post(host='api.anthropic.com', path='/v1/messages').mock(
            return_value=_sse(
                {'type': 'content_block_delta', 'delta': 'junk'},
                {'type': 'content_block_delta', 'delta': {'type': 'text_delta', 'text': 'partial'}},
                ['not', 'an', 'event'],
            )
        )
        events = [
            event
            async for event in _adapter('Anthropic').stream(
                api_key='k', model='claude-3-haiku-20240307', history=[], content='hi'
            )
        ]
    assert events[0].text == 'partial'
    assert isinstance(events[-1], StreamFailed)


@pytest.mark.anyio
@pytest.mark.parametrize('payload', [['unexpected'], {'candidates': 'x'}, {'candidates': ['x']}])
async def test_gemini_wrong_shape_body_is_a_failure(payload):
    with respx.mock() as mock:
        mock.post(
            host='generativelanguage.googleapis.com',
            path='/v1beta/models/gemini-1.5-flash-latest:generateContent',
        ).mock(return_value=httpx.Response(200, json=payload))
        result = await _adapter('Gemini').complete(
            api_key='k', model='gemini-1.5-flash-latest', history=[], content='hello'
        )
    assert result.content is None


@pytest.mark.anyio
async def test_gemini_stream_non_object_event_fails():
    with respx.mock() as mock:
        mock.post(
            host='generativelanguage.googleapis.com',
            path='/v1beta/models/gemini-1.5-flash-latest:streamGenerateContent',
        ).mock(return_value=_sse('oops'))
        events = [
            event
            async for event in _adapter('Gemini').stream(
                api_key='k', model='gemini-1.5-flash-latest', history=[], content='hi'
            )
        ]
    assert len(events) == 1
    assert isinstance(events[0], StreamFailed)
    assert events[0].message.startswith('Error from Gemini:')


@pytest.mark.anyio
async def test_openai_wrong_shape_body_is_a_failure():
    with respx.mock() as mock:
        mock.post(host='api.openai.com', path='/v1/chat/completions').mock(
            return_value=httpx.Response(200, json={'id': 'x', 'choices': 'none'})
        )
        result = await _adapter('OpenAI').complete(api_key='k', model='gpt-4o', history=[], content='hi')
    assert result.content is None
