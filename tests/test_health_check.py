"""
Tests for component health reporting.
"""

from unittest.mock import Mock

from brane.utils.health_check import get_health_status


def healthy(value=True):
    client = Mock()
    client.health_check.return_value = value
    return client


def test_reports_each_component():
    status = get_health_status(llm=healthy(), embed=healthy(), database=healthy(False), search=healthy())

    assert {name: entry['healthy'] for name, entry in status.items()} == {
        'bedrock_llm': True,
        'bedrock_embed': True,
        'postgres': False,
        'exa': True,
    }


def test_client_exceptions_are_reported_not_raised():
    broken = Mock()
    broken.health_check.side_effect = RuntimeError('boom')

    status = get_health_status(llm=broken, embed=healthy(), database=healthy(), search=healthy())

    assert status['bedrock_llm'] == {'healthy': False, 'service': 'Amazon Bedrock LLM', 'error': 'boom'}
