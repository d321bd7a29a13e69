from datetime import timedelta

from multichat.models.base import utc_now
from multichat.models.enums import ContextSource
from multichat.models.user_memory import MemoryContext
from multichat.schemas.memory import MemorySettingsUpdate
from multichat.services.ai_memory import MEMORY_PREAMBLE, build_system_prompt, compose_system_prompt, render_memory_block
from multichat.services.memory_service import (
    add_context,
    get_or_create_user_memory,
    list_contexts,
    update_context,
    update_settings,
)

import pytest


def _seed_contexts(db_session, memory, count):
    start = utc_now()
    for index in range(count):
        moment = start + timedelta(seconds=index)
        db_session.add(
            MemoryContext(memory_id=memory.id, text=f'fact {index}', created_at=moment, updated_at=moment)
        )
    db_session.commit()


def test_render_memory_block():
    block = render_memory_block(['likes tea', 'lives in Hanoi'])
    assert block.splitlines() == [MEMORY_PREAMBLE, '- likes tea', '- lives in Hanoi']
    assert render_memory_block([]) == ''


def test_compose_system_prompt_passes_through_without_memory():
    assert compose_system_prompt('', 'base prompt') == 'base prompt'
    assert compose_system_prompt('', None) is None
    assert compose_system_prompt('memory', 'base') == 'memory\n\nbase'


def test_injection_uses_most_recent_within_limit(db_session):
    memory = get_or_create_user_memory(db_session, 'user-1')
    memory.max_contexts = 5
    db_session.add(memory)
    db_session.commit()
    _seed_contexts(db_session, memory, 12)

    prompt = build_system_prompt(db_session, 'user-1', use_memory=True, base_prompt='You are a bot.')
    bullets = [line for line in prompt.splitlines() if line.startswith('- ')]
    assert len(bullets) == 5
    assert bullets[0] == '- fact 11'
    assert prompt.endswith('You are a bot.')


def test_injection_is_capped_at_ten(db_session):
    memory = get_or_create_user_memory(db_session, 'user-2')
    _seed_contexts(db_session, memory, 12)
    prompt = build_system_prompt(db_session, 'user-2', use_memory=True)
    assert len([line for line in prompt.splitlines() if line.startswith('- ')]) == 10


def test_injection_respects_flags(db_session):
    memory = get_or_create_user_memory(db_session, 'user-3')
    _seed_contexts(db_session, memory, 2)
    assert build_system_prompt(db_session, 'user-3', use_memory=False, base_prompt='base') == 'base'
    memory.is_globally_enabled = False
    db_session.add(memory)
    db_session.commit()
    assert build_system_prompt(db_session, 'user-3', use_memory=True) is None
    assert build_system_prompt(db_session, 'nobody', use_memory=True, base_prompt='base') == 'base'


def test_trim_after_every_mutation(db_session):
    memory = get_or_create_user_memory(db_session, 'user-4')
    memory = update_settings(db_session, memory, MemorySettingsUpdate(max_contexts=3))
    for index in range(5):
        add_context(db_session, memory, f'item {index}')
    contexts = list_contexts(db_session, memory)
    assert len(contexts) == 3
    assert [item.text for item in contexts] == ['item 4', 'item 3', 'item 2']

    update_settings(db_session, memory, MemorySettingsUpdate(max_contexts=1))
    assert [item.text for item in list_contexts(db_session, memory)] == ['item 4']


def test_readding_refreshes_and_upgrades_source(db_session):
    memory = get_or_create_user_memory(db_session, 'user-5')
    first = add_context(db_session, memory, 'likes tea', ContextSource.CHAT_AUTO_EXTRACTED)
    add_context(db_session, memory, 'likes coffee')
    again = add_context(db_session, memory, '  likes tea  ')
    assert again.id == first.id
    assert again.source == ContextSource.MANUAL
    assert [item.text for item in list_contexts(db_session, memory)] == ['likes tea', 'likes coffee']


def test_update_context_rejects_duplicate_text(db_session):
    memory = get_or_create_user_memory(db_session, 'user-6')
    first = add_context(db_session, memory, 'a')
    add_context(db_session, memory, 'b')
    with pytest.raises(ValueError):
        update_context(db_session, memory, first, 'b')
    with pytest.raises(ValueError):
        add_context(db_session, memory, '   ')
