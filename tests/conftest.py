"""
Shared fixtures for the brane test suite.
"""

import pytest

from brane.services.entity_store import EventStore, MemoryStore
from brane.utils.config import AgentConfig, StoreConfig
from tests.fakes import FakeDatabase, FakeEmbedder


@pytest.fixture
def store_config():
    return StoreConfig(default_search_limit=5, max_search_limit=20)


@pytest.fixture
def agent_config():
    return AgentConfig(assistant_name='brane', max_steps=5, request_timeout=30, max_parallel_tools=4)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def database():
    return FakeDatabase()


@pytest.fixture
def memory_store(embedder, database, store_config):
    return MemoryStore(embedder, database, store_config)


@pytest.fixture
def event_store(embedder, database, store_config):
    return EventStore(embedder, database, store_config)
