"""
Tests for the MCP chat tool.
"""

from unittest.mock import Mock

import pytest

from brane import mcp_interface
from brane.models.events import Finished, FinishReason
from brane.services.chat import UnauthorizedError
from brane.utils.config import ConfigurationError

HELLO = [{'role': 'user', 'parts': [{'type': 'text', 'text': 'Hi'}]}]


@pytest.fixture
def service(monkeypatch):
    service = Mock()
    monkeypatch.setattr(mcp_interface, 'chat_service', service)
    monkeypatch.setattr(mcp_interface.config.mcp, 'user_id', 'owner-1')
    return service


def test_chat_runs_for_the_configured_owner(service):
    service.respond.return_value = iter([Finished(text='Hello!', steps=1, reason=FinishReason.STOP)])

    result = mcp_interface.chat(HELLO)

    service.respond.assert_called_once_with('owner-1', HELLO)
    assert result == {'text': 'Hello!', 'steps': 1, 'finishReason': 'stop', 'toolCalls': []}


def test_unauthorized_is_raised_as_tool_error(service):
    service.respond.side_effect = UnauthorizedError('Unauthorized')

    with pytest.raises(Exception, match='Unauthorized'):
        mcp_interface.chat(HELLO)


def test_chat_requires_started_service(monkeypatch):
    monkeypatch.setattr(mcp_interface, 'chat_service', None)

    with pytest.raises(RuntimeError):
        mcp_interface.chat(HELLO)


def test_main_refuses_to_start_without_owner(monkeypatch):
    monkeypatch.setattr(mcp_interface.config.mcp, 'user_id', None)

    with pytest.raises(ConfigurationError):
        mcp_interface.main()
