"""
Chat Service: the entry point for one authenticated chat request.
"""

import threading
from typing import Any, Dict, Iterable, Iterator, List, Optional

import boto3

from ..tools import create_toolset
from ..utils.bedrock_embed import BedrockEmbed, BedrockEmbedError
from ..utils.bedrock_llm import BedrockLLM
from ..utils.config import AppConfig, ConfigurationError, validate_config
from ..utils.exa_client import ExaClient
from ..utils.logging_config import get_logger
from ..utils.postgres_client import PostgresClient
from .agent import AgentEvent, AgentLoop, build_system_prompt
from .entity_store import EventStore, MemoryStore
from .messages import MessageValidationError, is_first_user_message, to_bedrock_messages, validate_messages

logger = get_logger(__name__)


class UnauthorizedError(Exception):
    """The request carries no authenticated user."""
    pass


class ChatService:
    """Holds the process-wide clients and runs chat requests against them."""

    def __init__(self,
                 config: AppConfig,
                 llm: BedrockLLM,
                 memory_store: MemoryStore,
                 event_store: EventStore,
                 search_client: ExaClient):
        """
        Initialize the chat service with already constructed dependencies.

        Use ``from_config`` at startup; tests pass fakes here.
        """
        self.config = config
        self.llm = llm
        self.memory_store = memory_store
        self.event_store = event_store
        self.search_client = search_client

        logger.info('Initialized ChatService')

    @classmethod
    def from_config(cls, app_config: AppConfig) -> 'ChatService':
        """
        Build the service and fail fast on bad configuration.

        Validates settings, checks that AWS credentials resolve, creates the
        external clients once and embeds a sample text to confirm the model
        produces vectors of the configured dimension. Then creates the
        database schema and checks that its vector columns match.

        Raises:
            ConfigurationError: If the configuration, the AWS credentials or the embedding model is unusable
            PostgresError: If the database cannot be reached
        """
        validate_config(app_config)

        if boto3.Session().get_credentials() is None:
            raise ConfigurationError('AWS credentials could not be resolved')

        embedder = BedrockEmbed(app_config.bedrock_embed)
        try:
            embedder.embed('startup check')
        except BedrockEmbedError as e:
            raise ConfigurationError(f'Embedding model {app_config.bedrock_embed.model_id} is unusable with '
                                     f'dimension {app_config.bedrock_embed.dimension}: {e}')

        database = PostgresClient(app_config.database)
        database.initialize_schema(app_config.bedrock_embed.dimension)

        return cls(config=app_config,
                   llm=BedrockLLM(app_config.bedrock_llm),
                   memory_store=MemoryStore(embedder, database, app_config.store),
                   event_store=EventStore(embedder, database, app_config.store),
                   search_client=ExaClient(app_config.search))

    def respond(self,
                user_id: Optional[str],
                messages: Any,
                cancel_event: Optional[threading.Event] = None) -> Iterator[AgentEvent]:
        """
        Start answering a chat request.

        Authentication and message validation happen before this returns, so
        callers can turn those failures into client errors.

        Args:
            user_id: Authenticated user, or None for an anonymous request
            messages: Decoded JSON list of inbound messages
            cancel_event: Set by the caller when the request is aborted

        Returns:
            Iterator of agent events

        Raises:
            UnauthorizedError: If there is no authenticated user
            MessageValidationError: If the messages are malformed
        """
        if not user_id:
            logger.warning('Rejected chat request without an authenticated user')
            raise UnauthorizedError('Unauthorized')

        try:
            validated = validate_messages(messages)
        except MessageValidationError as e:
            logger.warning(f'Rejected chat request: {e}')
            raise

        logger.info(f'Chat request: {len(validated)} messages, '
                    f"{sum(1 for m in validated if m.role == 'user')} from the user, "
                    f'first message: {is_first_user_message(validated)}')

        toolset = create_toolset(user_id, self.memory_store, self.event_store, self.search_client, self.config.store)
        loop = AgentLoop(llm=self.llm,
                         toolset=toolset,
                         system_prompt=build_system_prompt(self.config.agent.assistant_name),
                         config=self.config.agent)
        return loop.run(to_bedrock_messages(validated), cancel_event=cancel_event)


def collect_response(events: Iterable[AgentEvent]) -> Dict[str, Any]:
    """
    Fold an agent event stream into a single response.

    Returns:
        ``{'text', 'steps', 'finishReason', 'toolCalls'}`` on success or
        ``{'error', 'steps', 'toolCalls'}`` on failure
    """
    tool_calls: List[Dict[str, Any]] = []
    by_id: Dict[str, Dict[str, Any]] = {}

    for event in events:
        if event.type == 'tool-call':
            entry = {'toolCallId': event.tool_call_id, 'toolName': event.tool_name, 'input': event.input}
            tool_calls.append(entry)
            by_id[event.tool_call_id] = entry
        elif event.type == 'tool-result':
            by_id.setdefault(event.tool_call_id, {})['output'] = event.output
        elif event.type == 'finish':
            return {
                'text': event.text,
                'steps': event.steps,
                'finishReason': event.reason.value,
                'toolCalls': tool_calls
            }
        elif event.type == 'error':
            return {'error': event.message, 'steps': event.steps, 'toolCalls': tool_calls}

    return {'error': 'The response ended unexpectedly', 'steps': 0, 'toolCalls': tool_calls}
