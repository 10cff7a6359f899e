"""
Tool for searching the internet through Exa.
"""

from pydantic import Field

from ..utils.exa_client import ExaClient
from .base import ToolAdapter, ToolArguments, ToolName, ToolResult


class SearchInternetArguments(ToolArguments):
    query: str = Field(min_length=1, description='The search query.')


class SearchInternetTool(ToolAdapter):
    """Internet search; the only tool not bound to a user."""

    name = ToolName.SEARCH_INTERNET
    description = 'Search the internet for relevant information.'
    arguments_model = SearchInternetArguments
    failure_message = 'Failed to search'

    def __init__(self, client: ExaClient):
        self.client = client

    def run(self, args: SearchInternetArguments) -> ToolResult:
        results = self.client.search(args.query)
        count = len(results.get('results', []))
        return ToolResult(success=True, message=f'Found {count} search results', data=results)

    def on_failure(self, error: Exception) -> ToolResult:
        result = super().on_failure(error)
        result.error = True
        return result
