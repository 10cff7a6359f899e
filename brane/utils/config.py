"""
Configuration management for AWS services, the database and application settings.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_SEARCH_LIMIT = 5
DEFAULT_SEARCH_MAX_LIMIT = 20


class ConfigurationError(Exception):
    """Raised when the application cannot start with the given configuration."""
    pass


@dataclass
class BedrockLLMConfig:
    """Configuration for the Amazon Bedrock Converse API."""
    region: str
    model_id: str
    max_tokens: int
    temperature: float
    connect_timeout: int
    read_timeout: int
    max_attempts: int


@dataclass
class BedrockEmbedConfig:
    """Configuration for Amazon Bedrock Embed service."""
    region: str
    model_id: str
    dimension: int
    connect_timeout: int
    read_timeout: int
    max_attempts: int


@dataclass
class DatabaseConfig:
    """Configuration for PostgreSQL with the pgvector extension."""
    url: Optional[str]
    connect_timeout: int
    statement_timeout_ms: int


@dataclass
class StoreConfig:
    """Configuration for memory and event search."""
    default_search_limit: int
    max_search_limit: int


@dataclass
class SearchConfig:
    """Configuration for the Exa internet search API."""
    api_key: Optional[str]
    endpoint: str
    timeout: float


@dataclass
class AgentConfig:
    """Configuration for the agent loop."""
    assistant_name: str
    max_steps: int
    request_timeout: float
    max_parallel_tools: int


@dataclass
class MCPConfig:
    """Configuration for MCP interface."""
    transport: str
    host: str
    port: int
    user_id: Optional[str]


@dataclass
class AppConfig:
    """Main application configuration."""
    environment: str
    log_level: str
    bedrock_llm: BedrockLLMConfig
    bedrock_embed: BedrockEmbedConfig
    database: DatabaseConfig
    store: StoreConfig
    search: SearchConfig
    agent: AgentConfig
    mcp: MCPConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    environment = os.getenv('ENVIRONMENT', 'development')

    # Bedrock configuration
    bedrock_llm_config = BedrockLLMConfig(region=os.getenv('BEDROCK_LLM_AWS_REGION', 'us-east-1'),
                                          model_id=os.getenv('BEDROCK_LLM_MODEL_ID', 'anthropic.claude-3-5-sonnet-20240620-v1:0'),
                                          max_tokens=int(os.getenv('BEDROCK_LLM_MAX_TOKENS', '4096')),
                                          temperature=float(os.getenv('BEDROCK_LLM_TEMPERATURE', '0.3')),
                                          connect_timeout=int(os.getenv('BEDROCK_LLM_CONNECT_TIMEOUT', '10')),
                                          read_timeout=int(os.getenv('BEDROCK_LLM_READ_TIMEOUT', '30')),
                                          max_attempts=int(os.getenv('BEDROCK_LLM_MAX_ATTEMPTS', '3')))

    # Bedrock Embed configuration
    bedrock_embed_config = BedrockEmbedConfig(region=os.getenv('BEDROCK_EMBED_AWS_REGION', 'us-east-1'),
                                              model_id=os.getenv('BEDROCK_EMBED_MODEL_ID', 'amazon.titan-embed-text-v2:0'),
                                              dimension=int(os.getenv('BEDROCK_EMBED_DIMENSION', '1024')),
                                              connect_timeout=int(os.getenv('BEDROCK_EMBED_CONNECT_TIMEOUT', '5')),
                                              read_timeout=int(os.getenv('BEDROCK_EMBED_READ_TIMEOUT', '10')),
                                              max_attempts=int(os.getenv('BEDROCK_EMBED_MAX_ATTEMPTS', '3')))

    # PostgreSQL configuration
    database_config = DatabaseConfig(url=os.getenv('DATABASE_URL'),
                                     connect_timeout=int(os.getenv('DATABASE_CONNECT_TIMEOUT', '5')),
                                     statement_timeout_ms=int(os.getenv('DATABASE_STATEMENT_TIMEOUT_MS', '10000')))

    store_config = StoreConfig(
        default_search_limit=int(os.getenv('SEARCH_DEFAULT_LIMIT', str(DEFAULT_SEARCH_LIMIT))),
        max_search_limit=int(os.getenv('SEARCH_MAX_LIMIT', str(DEFAULT_SEARCH_MAX_LIMIT))))

    # Internet search configuration
    search_config = SearchConfig(api_key=os.getenv('EXA_API_KEY'),
                                 endpoint=os.getenv('EXA_ENDPOINT', 'https://api.exa.ai'),
                                 timeout=float(os.getenv('EXA_TIMEOUT', '15')))

    agent_config = AgentConfig(assistant_name=os.getenv('ASSISTANT_NAME', 'brane'),
                               max_steps=int(os.getenv('AGENT_MAX_STEPS', '10')),
                               request_timeout=float(os.getenv('AGENT_REQUEST_TIMEOUT', '30')),
                               max_parallel_tools=int(os.getenv('AGENT_MAX_PARALLEL_TOOLS', '4')))

    # MCP configuration
    mcp_config = MCPConfig(transport=os.getenv('MCP_TRANSPORT', 'stdio'),
                           host=os.getenv('MCP_HOST', '127.0.0.1'),
                           port=int(os.getenv('MCP_PORT', '8000')),
                           user_id=os.getenv('MCP_USER_ID'))

    return AppConfig(environment=environment,
                     log_level=os.getenv('LOG_LEVEL', 'INFO'),
                     bedrock_llm=bedrock_llm_config,
                     bedrock_embed=bedrock_embed_config,
                     database=database_config,
                     store=store_config,
                     search=search_config,
                     agent=agent_config,
                     mcp=mcp_config)


def validate_config(app_config: AppConfig) -> None:
    """Fail fast on configuration the application cannot run with.

    Args:
        app_config: AppConfig instance to check

    Raises:
        ConfigurationError: Listing every problem found
    """
    problems: List[str] = []

    if not app_config.database.url:
        problems.append('DATABASE_URL is not set')
    if not app_config.search.api_key:
        problems.append('EXA_API_KEY is not set')
    if app_config.bedrock_embed.dimension <= 0:
        problems.append(f'BEDROCK_EMBED_DIMENSION must be positive, got {app_config.bedrock_embed.dimension}')

    store = app_config.store
    if store.max_search_limit < 1:
        problems.append(f'SEARCH_MAX_LIMIT must be at least 1, got {store.max_search_limit}')
    elif not 1 <= store.default_search_limit <= store.max_search_limit:
        problems.append(f'SEARCH_DEFAULT_LIMIT must be between 1 and {store.max_search_limit}, '
                        f'got {store.default_search_limit}')

    if app_config.agent.max_steps < 1:
        problems.append(f'AGENT_MAX_STEPS must be at least 1, got {app_config.agent.max_steps}')
    if app_config.agent.request_timeout <= 0:
        problems.append(f'AGENT_REQUEST_TIMEOUT must be positive, got {app_config.agent.request_timeout}')
    if app_config.agent.max_parallel_tools < 1:
        problems.append(f'AGENT_MAX_PARALLEL_TOOLS must be at least 1, got {app_config.agent.max_parallel_tools}')

    if problems:
        raise ConfigurationError('Invalid configuration: ' + '; '.join(problems))


# Global configuration instance
config = load_config()
