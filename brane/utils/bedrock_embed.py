"""
Amazon Bedrock embedding client wrapper with dimension checks and error handling.
"""

import json
from typing import List

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockEmbedConfig, ConfigurationError
from .logging_config import get_logger

logger = get_logger(__name__)


class BedrockEmbedError(Exception):
    """Custom exception for Bedrock embedding errors."""
    pass


class EmbeddingDimensionError(ConfigurationError):
    """The embedding model and the vector columns disagree on dimension."""
    pass


class BedrockEmbed:
    """Amazon Bedrock embedding client.

    One ``invoke_model`` call per embedding. Retries are left to botocore's
    own retry configuration.
    """

    def __init__(self, config: BedrockEmbedConfig, client=None):
        """
        Initialize Bedrock embedding client.

        Args:
            config: BedrockEmbedConfig instance with connection parameters
            client: Pre-built bedrock-runtime client (tests pass a stub)
        """
        self.config = config
        self.model_id = config.model_id
        self.output_embedding_length = config.dimension

        if 'cohere' in self.model_id.lower() and self.output_embedding_length != 1024:
            raise EmbeddingDimensionError(f'Cohere models only support 1024 dimensions, got {self.output_embedding_length}')

        # Create Bedrock runtime client
        self.bedrock = client or boto3.client(service_name='bedrock-runtime',
                                              region_name=config.region,
                                              config=BotoConfig(connect_timeout=config.connect_timeout,
                                                                read_timeout=config.read_timeout,
                                                                retries={
                                                                    'max_attempts': config.max_attempts,
                                                                    'mode': 'standard'
                                                                }))

        logger.info(f'Initialized Bedrock Embed client with model: {self.model_id}')

    def _invoke(self, data: dict) -> dict:
        """
        Make a single Bedrock API call.

        Args:
            data: Request data dictionary

        Returns:
            Response dictionary from Bedrock API

        Raises:
            BedrockEmbedError: If the call fails
        """
        try:
            response = self.bedrock.invoke_model(body=json.dumps(data),
                                                 modelId=self.model_id,
                                                 accept='application/json',
                                                 contentType='application/json')
            return json.loads(response.get('body').read())

        except (ClientError, BotoCoreError) as e:
            logger.error(f'Bedrock Embed request failed: {e}')
            raise BedrockEmbedError(f'Embedding request failed: {e}')
        except json.JSONDecodeError as e:
            logger.error(f'Bedrock Embed returned malformed JSON: {e}')
            raise BedrockEmbedError(f'Embedding response could not be parsed: {e}')

    def _embed(self, text: str, input_type: str) -> List[float]:
        if not text or not text.strip():
            raise BedrockEmbedError('Cannot embed empty text')

        if 'titan' in self.model_id.lower():
            response = self._invoke({'inputText': text, 'dimensions': self.output_embedding_length})
            embedding = response.get('embedding')
        elif 'cohere' in self.model_id.lower():
            response = self._invoke({'input_type': input_type, 'texts': [text]})
            embeddings = response.get('embeddings') or [None]
            embedding = embeddings[0]
        else:
            raise BedrockEmbedError(f'Unsupported embedding model: {self.model_id}')

        if not embedding:
            raise BedrockEmbedError('Embedding response contained no vector')

        if len(embedding) != self.output_embedding_length:
            raise EmbeddingDimensionError(f'Model {self.model_id} returned {len(embedding)} dimensions, '
                                          f'expected {self.output_embedding_length}')

        logger.debug(f'Generated {input_type} embedding for {len(text)} characters')
        return [float(value) for value in embedding]

    def embed(self, text: str) -> List[float]:
        """
        Generate the embedding stored alongside a memory or event.

        Args:
            text: Text to embed

        Returns:
            List of embedding values

        Raises:
            BedrockEmbedError: If embedding generation fails
            EmbeddingDimensionError: If the model returns a vector of the wrong size
        """
        return self._embed(text, 'search_document')

    def embed_query(self, text: str) -> List[float]:
        """
        Generate the embedding for a search query.

        Identical to ``embed`` for Titan models; Cohere distinguishes
        queries from documents.
        """
        return self._embed(text, 'search_query')

    def health_check(self) -> bool:
        """
        Perform a health check on the Bedrock embedding service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            test_embedding = self.embed('test')
            return len(test_embedding) == self.output_embedding_length

        except Exception as e:
            logger.error(f'Bedrock Embed health check failed: {e}')
            return False
