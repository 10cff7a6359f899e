"""
MCP Interface Layer using fastmcp to expose the assistant as a chat tool.
"""
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from .services.chat import ChatService, UnauthorizedError, collect_response
from .services.messages import MessageValidationError
from .utils.config import ConfigurationError, config
from .utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('Brane')
chat_service: Optional[ChatService] = None


def _get_service() -> ChatService:
    if chat_service is None:
        raise RuntimeError('Chat service is not initialized; start the server with main()')
    return chat_service


def chat(messages: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Chat with the assistant on behalf of the configured owner.

    Args:
        messages: Conversation as role-tagged messages with text, tool-call and tool-result parts;
            the last message must be from the user

    Returns:
        Dictionary with the final text, step count, finish reason and the tool calls made,
        or an error message
    """
    try:
        events = _get_service().respond(config.mcp.user_id, messages)
        result = collect_response(events)

        logger.debug(f"MCP chat finished with {result.get('finishReason', 'error')} after {result['steps']} steps")
        return result

    except UnauthorizedError as e:
        logger.error(f'Unauthorized MCP chat request: {e}')
        raise Exception('Unauthorized')
    except MessageValidationError as e:
        raise Exception(f'Invalid messages: {e}')


mcp.tool()(chat)


def main() -> None:
    """Start the MCP server for the configured owner."""
    global chat_service

    if not config.mcp.user_id:
        raise ConfigurationError('MCP_USER_ID must be set to the user this server acts for')

    chat_service = ChatService.from_config(config)

    if config.mcp.transport == 'stdio':
        mcp.run(transport='stdio')
    else:
        mcp.run(transport=config.mcp.transport, host=config.mcp.host, port=config.mcp.port)


if __name__ == '__main__':
    main()
