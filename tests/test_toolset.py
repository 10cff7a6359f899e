"""
Tests for per-user toolset construction and dispatch.
"""

from unittest.mock import Mock

import pytest

from brane.services.entity_store import EventStore, MemoryStore
from brane.tools import ToolName, create_toolset
from brane.utils.config import StoreConfig


@pytest.fixture
def stores():
    return Mock(spec=MemoryStore), Mock(spec=EventStore), Mock()


def test_toolset_contains_the_seven_tools(stores):
    toolset = create_toolset('u1', *stores)

    assert set(toolset) == set(ToolName)
    assert len(toolset) == 7


def test_empty_user_id_is_rejected(stores):
    with pytest.raises(ValueError):
        create_toolset('', *stores)


def test_toolsets_are_bound_to_their_user(stores):
    memories, events, search = stores
    memories.insert.return_value = 1

    create_toolset('alice', *stores).execute('storeMemory', {'text': 'a'})
    create_toolset('bob', *stores).execute('storeMemory', {'text': 'b'})

    assert [call.args[0] for call in memories.insert.call_args_list] == ['alice', 'bob']


def test_unknown_tool_returns_failure_envelope(stores):
    result = create_toolset('u1', *stores).execute('deleteEverything', {})

    assert result.success is False
    assert 'deleteEverything' in result.message


def test_tool_config_lists_schemas_without_user_ids(stores):
    config = create_toolset('u1', *stores).tool_config()

    specs = {tool['toolSpec']['name']: tool['toolSpec'] for tool in config['tools']}
    assert set(specs) == {name.value for name in ToolName}
    for spec in specs.values():
        properties = spec['inputSchema']['json'].get('properties', {})
        assert not any('user' in key.lower() for key in properties)

    update_event = specs['updateEvent']['inputSchema']['json']
    assert update_event['required'] == ['id']
    assert {'startTime', 'endTime', 'eventType', 'status'} <= set(update_event['properties'])
    assert specs['searchMemories']['inputSchema']['json']['properties']['limit']['maximum'] == 20


def test_search_schemas_advertise_the_configured_limits(stores):
    limits = StoreConfig(default_search_limit=3, max_search_limit=50)

    config = create_toolset('u1', *stores, limits).tool_config()

    specs = {tool['toolSpec']['name']: tool['toolSpec'] for tool in config['tools']}
    for name in ('searchMemories', 'searchEvents'):
        limit = specs[name]['inputSchema']['json']['properties']['limit']
        assert limit['maximum'] == 50
        assert '(default: 3, at most 50)' in limit['description']
