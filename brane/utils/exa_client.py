"""
Exa internet search client.
"""

from typing import Any, Dict, Optional

import httpx

from .config import SearchConfig
from .logging_config import get_logger

logger = get_logger(__name__)


class ExaSearchError(Exception):
    """Custom exception for Exa search errors."""
    pass


class ExaClient:
    """Exa search API client returning results with page text."""

    def __init__(self, config: SearchConfig, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize Exa client.

        Args:
            config: SearchConfig instance with credentials and endpoint
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
        """
        if not config.api_key:
            raise ExaSearchError('Exa API key is not configured')

        self.config = config
        self.client = httpx.Client(base_url=config.endpoint,
                                   headers={
                                       'x-api-key': config.api_key,
                                       'Content-Type': 'application/json'
                                   },
                                   timeout=config.timeout,
                                   transport=transport)

        logger.info(f'Initialized Exa client for endpoint: {config.endpoint}')

    def search(self, query: str) -> Dict[str, Any]:
        """
        Search the internet and include the text of each result.

        Args:
            query: Search query

        Returns:
            Raw Exa response payload

        Raises:
            ExaSearchError: If the request fails or the response is not JSON
        """
        if not query or not query.strip():
            raise ExaSearchError('Search query must not be empty')

        payload = {'query': query, 'type': 'auto', 'contents': {'text': True}}

        try:
            response = self.client.post('/search', json=payload)
            response.raise_for_status()
            result = response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f'Exa search returned status {e.response.status_code}')
            raise ExaSearchError(f'Search request returned status {e.response.status_code}')
        except httpx.HTTPError as e:
            logger.error(f'Exa search request failed: {e}')
            raise ExaSearchError(f'Search request failed: {e}')
        except ValueError as e:
            logger.error(f'Exa search returned malformed JSON: {e}')
            raise ExaSearchError(f'Search response could not be parsed: {e}')

        logger.debug(f"Exa search returned {len(result.get('results', []))} results")
        return result

    def health_check(self) -> bool:
        """
        Perform a health check on the Exa search API.

        Returns:
            True if a probe search succeeds, False otherwise
        """
        try:
            self.search('health check')
            return True

        except Exception as e:
            logger.error(f'Exa health check failed: {e}')
            return False

    def close(self) -> None:
        self.client.close()
