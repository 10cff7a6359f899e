"""
Tools for storing, searching and updating memories about the user.
"""

from typing import Optional

from pydantic import Field

from ..services.entity_store import MemoryStore
from ..utils.config import DEFAULT_SEARCH_LIMIT, DEFAULT_SEARCH_MAX_LIMIT, StoreConfig
from ..utils.timestamp_utils import to_iso
from .base import (ToolAdapter, ToolArguments, ToolName, ToolResult, advertise_search_limits, search_limit_field,
                   similarity_percent)


class StoreMemoryArguments(ToolArguments):
    text: str = Field(min_length=1, description='The memory content to store')


class SearchMemoriesArguments(ToolArguments):
    query: str = Field(min_length=1, description='The search query to find relevant memories')
    limit: Optional[int] = search_limit_field()


class UpdateMemoryArguments(ToolArguments):
    id: int = Field(gt=0, description='The ID of the memory to update')
    text: str = Field(min_length=1, description='New text content for the memory')


class MemoryTool(ToolAdapter):
    """A memory tool bound to one user."""

    def __init__(self, user_id: str, store: MemoryStore):
        self.user_id = user_id
        self.store = store


class StoreMemoryTool(MemoryTool):
    name = ToolName.STORE_MEMORY
    description = ('Store a new memory about the user for future reference. Use this to remember important facts, '
                   'preferences, or context about the user.')
    arguments_model = StoreMemoryArguments
    failure_message = 'Failed to store memory'

    def run(self, args: StoreMemoryArguments) -> ToolResult:
        memory_id = self.store.insert(self.user_id, args.text)
        return ToolResult(success=True,
                          message=f'Memory stored successfully with ID {memory_id}',
                          data={'memoryId': memory_id})


class SearchMemoriesTool(MemoryTool):
    name = ToolName.SEARCH_MEMORIES
    description = ('Search for relevant memories about the user using semantic search. Returns memories ranked by '
                   'relevance to the query.')
    arguments_model = SearchMemoriesArguments
    failure_message = 'Failed to search memories'

    def __init__(self, user_id: str, store: MemoryStore, limits: Optional[StoreConfig] = None):
        super().__init__(user_id, store)
        self.limits = limits or StoreConfig(default_search_limit=DEFAULT_SEARCH_LIMIT,
                                            max_search_limit=DEFAULT_SEARCH_MAX_LIMIT)

    def input_schema(self):
        return advertise_search_limits(super().input_schema(), self.limits.default_search_limit,
                                       self.limits.max_search_limit)

    def run(self, args: SearchMemoriesArguments) -> ToolResult:
        memories = self.store.search(args.query, self.user_id, args.limit)

        if not memories:
            return ToolResult(success=True, message='No relevant memories found', data={'memories': []})

        formatted = [{
            'id': memory.id,
            'text': memory.text,
            'similarity': similarity_percent(memory.similarity),
            'createdAt': to_iso(memory.created_at),
        } for memory in memories]

        noun = 'memory' if len(memories) == 1 else 'memories'
        return ToolResult(success=True,
                          message=f'Found {len(memories)} relevant {noun}',
                          data={'memories': formatted})


class UpdateMemoryTool(MemoryTool):
    name = ToolName.UPDATE_MEMORY
    description = 'Update an existing memory by ID. Updates the text content of the memory.'
    arguments_model = UpdateMemoryArguments
    failure_message = 'Failed to update memory'

    def run(self, args: UpdateMemoryArguments) -> ToolResult:
        if not self.store.update(args.id, self.user_id, args.text):
            return ToolResult(success=False, message='Memory not found or you do not have permission to update it')

        return ToolResult(success=True, message=f'Memory {args.id} updated successfully')
