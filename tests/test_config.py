"""
Tests for configuration loading and startup validation.
"""

import pytest

from brane.utils.config import ConfigurationError, load_config, validate_config


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv('DATABASE_URL', 'postgresql://localhost/brane')
    monkeypatch.setenv('EXA_API_KEY', 'exa-key')
    return monkeypatch


class TestLoadConfig:

    def test_defaults(self, env):
        config = load_config()

        assert config.store.default_search_limit == 5
        assert config.store.max_search_limit == 20
        assert config.agent.max_steps == 10
        assert config.agent.request_timeout == 30
        assert config.bedrock_embed.model_id == 'amazon.titan-embed-text-v2:0'
        assert config.bedrock_embed.dimension == 1024
        assert config.database.url == 'postgresql://localhost/brane'

    def test_environment_overrides(self, env):
        env.setenv('AGENT_MAX_STEPS', '5')
        env.setenv('SEARCH_MAX_LIMIT', '50')
        env.setenv('MCP_USER_ID', 'user-1')

        config = load_config()

        assert config.agent.max_steps == 5
        assert config.store.max_search_limit == 50
        assert config.mcp.user_id == 'user-1'


class TestValidateConfig:

    def test_valid_configuration_passes(self, env):
        validate_config(load_config())

    def test_missing_credentials_are_all_reported(self, monkeypatch):
        monkeypatch.delenv('DATABASE_URL', raising=False)
        monkeypatch.delenv('EXA_API_KEY', raising=False)

        with pytest.raises(ConfigurationError) as excinfo:
            validate_config(load_config())

        assert 'DATABASE_URL' in str(excinfo.value)
        assert 'EXA_API_KEY' in str(excinfo.value)

    def test_default_limit_outside_range(self, env):
        env.setenv('SEARCH_DEFAULT_LIMIT', '30')

        with pytest.raises(ConfigurationError, match='SEARCH_DEFAULT_LIMIT'):
            validate_config(load_config())

    def test_non_positive_step_budget(self, env):
        env.setenv('AGENT_MAX_STEPS', '0')

        with pytest.raises(ConfigurationError, match='AGENT_MAX_STEPS'):
            validate_config(load_config())

    def test_non_positive_dimension(self, env):
        env.setenv('BEDROCK_EMBED_DIMENSION', '0')

        with pytest.raises(ConfigurationError, match='BEDROCK_EMBED_DIMENSION'):
            validate_config(load_config())
