"""
Tests for the Exa search client using httpx's mock transport.
"""

import json

import httpx
import pytest

from brane.utils.config import SearchConfig
from brane.utils.exa_client import ExaClient, ExaSearchError

CONFIG = SearchConfig(api_key='exa-key', endpoint='https://api.exa.test', timeout=1)


def client_returning(handler):
    return ExaClient(CONFIG, transport=httpx.MockTransport(handler))


def test_search_requests_text_contents():
    seen = {}

    def handler(request):
        seen['url'] = str(request.url)
        seen['key'] = request.headers['x-api-key']
        seen['body'] = json.loads(request.content)
        return httpx.Response(200, json={'results': [{'title': 'Green tea', 'text': 'All about tea'}]})

    result = client_returning(handler).search('green tea')

    assert seen == {
        'url': 'https://api.exa.test/search',
        'key': 'exa-key',
        'body': {'query': 'green tea', 'type': 'auto', 'contents': {'text': True}}
    }
    assert result['results'][0]['title'] == 'Green tea'


def test_http_error_status_is_wrapped():
    client = client_returning(lambda request: httpx.Response(500, text='oops'))

    with pytest.raises(ExaSearchError, match='500'):
        client.search('green tea')


def test_transport_failure_is_wrapped():

    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    with pytest.raises(ExaSearchError, match='connection refused'):
        client_returning(handler).search('green tea')


def test_missing_api_key_fails_at_construction():
    with pytest.raises(ExaSearchError):
        ExaClient(SearchConfig(api_key=None, endpoint='https://api.exa.test', timeout=1))
