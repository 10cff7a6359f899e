"""
Tool registry: builds the per-user set of tools available to the agent.
"""

from typing import Any, Dict, Iterator, List, Optional

from ..services.entity_store import EventStore, MemoryStore
from ..utils.config import StoreConfig
from ..utils.exa_client import ExaClient
from ..utils.logging_config import get_logger
from .base import ToolAdapter, ToolName, ToolResult
from .events import SearchEventsTool, StoreEventTool, UpdateEventTool
from .memories import SearchMemoriesTool, StoreMemoryTool, UpdateMemoryTool
from .search_internet import SearchInternetTool

logger = get_logger(__name__)

__all__ = ['Toolset', 'ToolAdapter', 'ToolName', 'ToolResult', 'create_toolset']


class Toolset:
    """The tools of one request, with the user ID bound into each user-scoped tool."""

    def __init__(self, user_id: str, tools: Dict[ToolName, ToolAdapter]):
        self.user_id = user_id
        self.tools = tools

    def __getitem__(self, name: ToolName) -> ToolAdapter:
        return self.tools[ToolName(name)]

    def __iter__(self) -> Iterator[ToolName]:
        return iter(self.tools)

    def __len__(self) -> int:
        return len(self.tools)

    def names(self) -> List[str]:
        return [name.value for name in self.tools]

    def execute(self, name: str, arguments: Any) -> ToolResult:
        """
        Dispatch a tool call by name.

        Args:
            name: Tool name requested by the model
            arguments: Raw arguments supplied by the model

        Returns:
            ToolResult envelope; unknown tools yield a failure envelope
        """
        try:
            tool = self.tools[ToolName(name)]
        except (ValueError, KeyError):
            logger.warning(f'Model requested unknown tool: {name}')
            return ToolResult(success=False, message=f'Unknown tool: {name}')

        logger.debug(f'Executing tool {name} for user {self.user_id}')
        return tool.execute(arguments)

    def tool_config(self) -> Dict[str, Any]:
        """Bedrock ``toolConfig`` listing every tool in the set."""
        return {'tools': [tool.spec() for tool in self.tools.values()]}


def create_toolset(user_id: str, memory_store: MemoryStore, event_store: EventStore,
                   search_client: ExaClient, limits: Optional[StoreConfig] = None) -> Toolset:
    """
    Build the toolset for one authenticated user.

    Must be called per request; a toolset is never shared between users.

    Args:
        user_id: Authenticated user the tools act for
        memory_store: Shared memory store
        event_store: Shared event store
        search_client: Shared internet search client
        limits: Search result-count bounds advertised to the model; defaults when omitted

    Returns:
        Toolset keyed by ToolName

    Raises:
        ValueError: If user_id is empty
    """
    if not user_id or not str(user_id).strip():
        raise ValueError('A toolset requires an authenticated user ID')

    tools: Dict[ToolName, ToolAdapter] = {
        ToolName.SEARCH_INTERNET: SearchInternetTool(search_client),
        ToolName.STORE_MEMORY: StoreMemoryTool(user_id, memory_store),
        ToolName.SEARCH_MEMORIES: SearchMemoriesTool(user_id, memory_store, limits),
        ToolName.UPDATE_MEMORY: UpdateMemoryTool(user_id, memory_store),
        ToolName.STORE_EVENT: StoreEventTool(user_id, event_store),
        ToolName.SEARCH_EVENTS: SearchEventsTool(user_id, event_store, limits),
        ToolName.UPDATE_EVENT: UpdateEventTool(user_id, event_store),
    }
    return Toolset(user_id, tools)
