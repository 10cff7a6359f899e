"""
Amazon Bedrock LLM client wrapper for streamed, tool-using conversations.
"""

import json
from typing import Any, Dict, Iterator, List, Optional, Union

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..models.events import ModelTurn, TextDelta, ToolCall
from .config import BedrockLLMConfig
from .logging_config import get_logger

logger = get_logger(__name__)


class BedrockLLMError(Exception):
    """Custom exception for Bedrock LLM errors."""
    pass


class BedrockLLM:
    """Amazon Bedrock LLM client built on the Converse streaming API."""

    def __init__(self, config: BedrockLLMConfig, client=None):
        """
        Initialize Bedrock LLM client.

        Args:
            config: BedrockLLMConfig instance with connection parameters
            client: Pre-built bedrock-runtime client (tests pass a stub)
        """
        self.config = config
        self.model_id = config.model_id

        # Create Bedrock runtime client with timeout configuration
        self.bedrock_runtime = client or boto3.client(
            'bedrock-runtime',
            region_name=config.region,
            config=BotoConfig(
                connect_timeout=config.connect_timeout,
                read_timeout=config.read_timeout,
                retries={'max_attempts': config.max_attempts, 'mode': 'standard'}
            ))

        logger.info(f'Initialized Bedrock LLM client with model: {self.model_id}')

    def stream_turn(self,
                    messages: List[Dict[str, Any]],
                    system_prompt: str,
                    tool_config: Optional[Dict[str, Any]] = None,
                    max_tokens: Optional[int] = None,
                    temperature: Optional[float] = None) -> Iterator[Union[TextDelta, ModelTurn]]:
        """
        Stream one model turn.

        Text is yielded as ``TextDelta`` items while it arrives. The last item
        is always the assembled ``ModelTurn`` with any tool calls requested.

        Args:
            messages: List of message dictionaries in Bedrock format
            system_prompt: System prompt for the conversation
            tool_config: Bedrock ``toolConfig`` describing available tools
            max_tokens: Maximum tokens to generate (uses config default if None)
            temperature: Temperature for generation (uses config default if None)

        Raises:
            BedrockLLMError: If the request or the stream fails
        """
        request = {
            'modelId': self.model_id,
            'messages': messages,
            'system': [{'text': system_prompt}],
            'inferenceConfig': {
                'maxTokens': max_tokens or self.config.max_tokens,
                'temperature': self.config.temperature if temperature is None else temperature,
            },
        }
        if tool_config:
            request['toolConfig'] = tool_config

        text_parts: List[str] = []
        # Tool use blocks keyed by content block index
        tool_blocks: Dict[int, Dict[str, Any]] = {}
        stop_reason = None
        usage = None

        try:
            stream = self.bedrock_runtime.converse_stream(**request).get('stream')

            for event in stream or []:
                if 'contentBlockStart' in event:
                    block = event['contentBlockStart']
                    tool_use = block.get('start', {}).get('toolUse')
                    if tool_use:
                        tool_blocks[block['contentBlockIndex']] = {
                            'id': tool_use['toolUseId'],
                            'name': tool_use['name'],
                            'input': '',
                        }
                elif 'contentBlockDelta' in event:
                    block = event['contentBlockDelta']
                    delta = block['delta']
                    if 'text' in delta:
                        text_parts.append(delta['text'])
                        yield TextDelta(text=delta['text'])
                    elif 'toolUse' in delta:
                        tool_blocks[block['contentBlockIndex']]['input'] += delta['toolUse'].get('input', '')
                elif 'messageStop' in event:
                    stop_reason = event['messageStop'].get('stopReason')
                elif 'metadata' in event:
                    usage = event['metadata'].get('usage')

        except (ClientError, BotoCoreError) as e:
            logger.error(f'Bedrock LLM request failed: {e}')
            raise BedrockLLMError(f'Bedrock LLM request failed: {e}')

        tool_calls = []
        for index in sorted(tool_blocks):
            block = tool_blocks[index]
            try:
                tool_input = json.loads(block['input']) if block['input'] else {}
            except json.JSONDecodeError:
                # The adapter reports the bad arguments back to the model
                logger.warning(f"Model sent malformed JSON arguments for tool {block['name']}")
                tool_input = {'_raw': block['input']}
            tool_calls.append(ToolCall(id=block['id'], name=block['name'], input=tool_input))

        text = ''.join(text_parts)
        logger.debug(f'Bedrock LLM turn complete (text length: {len(text)}, tool calls: {len(tool_calls)}, '
                     f'stop reason: {stop_reason})')
        yield ModelTurn(text=text, tool_calls=tool_calls, stop_reason=stop_reason, usage=usage)

    def health_check(self) -> bool:
        """
        Perform a health check on the Bedrock LLM service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            test_messages = [{'role': 'user', 'content': [{'text': 'Hi'}]}]
            turn = None
            for item in self.stream_turn(messages=test_messages,
                                         system_prompt="You are a helpful assistant. Respond with just 'OK'.",
                                         max_tokens=10,
                                         temperature=0.0):
                if isinstance(item, ModelTurn):
                    turn = item
            return turn is not None and len(turn.text.strip()) > 0

        except Exception as e:
            logger.error(f'Bedrock LLM health check failed: {e}')
            return False
