"""
Health check utilities for the application.
"""

from typing import Any, Dict, Optional

from .bedrock_embed import BedrockEmbed
from .bedrock_llm import BedrockLLM
from .config import AppConfig, config
from .exa_client import ExaClient
from .logging_config import get_logger
from .postgres_client import PostgresClient

logger = get_logger(__name__)


def check_health(app_config: Optional[AppConfig] = None) -> bool:
    """Check the health of all system components.

    Returns:
        True if all components are healthy, False otherwise
    """
    try:
        health_status = get_health_status(app_config)

        # Check if all components are healthy
        all_healthy = all(status.get('healthy', False) for status in health_status.values())

        if all_healthy:
            logger.info('All system components are healthy')
        else:
            logger.warning('Some system components are unhealthy')

        return all_healthy

    except Exception as e:
        logger.error(f'Health check failed: {e}')
        return False


def get_health_status(app_config: Optional[AppConfig] = None,
                      llm: Optional[BedrockLLM] = None,
                      embed: Optional[BedrockEmbed] = None,
                      database: Optional[PostgresClient] = None,
                      search: Optional[ExaClient] = None) -> Dict[str, Any]:
    """Get detailed health status of all components.

    Clients that are not passed in are built from the configuration.

    Returns:
        Dictionary with health status of each component
    """
    app_config = app_config or config
    health_status = {}

    # Check Bedrock LLM
    try:
        llm = llm or BedrockLLM(app_config.bedrock_llm)
        health_status['bedrock_llm'] = {
            'healthy': llm.health_check(),
            'service': 'Amazon Bedrock LLM',
            'model': app_config.bedrock_llm.model_id
        }
    except Exception as e:
        health_status['bedrock_llm'] = {'healthy': False, 'service': 'Amazon Bedrock LLM', 'error': str(e)}

    # Check Bedrock Embed
    try:
        embed = embed or BedrockEmbed(app_config.bedrock_embed)
        health_status['bedrock_embed'] = {
            'healthy': embed.health_check(),
            'service': 'Amazon Bedrock Embed',
            'model': app_config.bedrock_embed.model_id
        }
    except Exception as e:
        health_status['bedrock_embed'] = {'healthy': False, 'service': 'Amazon Bedrock Embed', 'error': str(e)}

    # Check PostgreSQL
    try:
        database = database or PostgresClient(app_config.database)
        health_status['postgres'] = {'healthy': database.health_check(), 'service': 'PostgreSQL (pgvector)'}
    except Exception as e:
        health_status['postgres'] = {'healthy': False, 'service': 'PostgreSQL (pgvector)', 'error': str(e)}

    # Check Exa
    try:
        search = search or ExaClient(app_config.search)
        health_status['exa'] = {
            'healthy': search.health_check(),
            'service': 'Exa Search',
            'endpoint': app_config.search.endpoint
        }
    except Exception as e:
        health_status['exa'] = {'healthy': False, 'service': 'Exa Search', 'error': str(e)}

    return health_status
