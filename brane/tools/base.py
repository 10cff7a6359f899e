"""
Base types shared by all tool adapters.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..utils.logging_config import get_logger
from ..utils.timestamp_utils import parse_timestamp

logger = get_logger(__name__)


class ToolName(str, Enum):
    """The closed set of tools the agent can call."""
    STORE_MEMORY = 'storeMemory'
    SEARCH_MEMORIES = 'searchMemories'
    UPDATE_MEMORY = 'updateMemory'
    STORE_EVENT = 'storeEvent'
    SEARCH_EVENTS = 'searchEvents'
    UPDATE_EVENT = 'updateEvent'
    SEARCH_INTERNET = 'searchInternet'


@dataclass
class ToolResult:
    """Uniform result envelope returned by every tool."""
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    error: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'success': self.success, 'message': self.message}
        if self.data is not None:
            result['data'] = self.data
        if self.error:
            result['error'] = True
        return result


class ToolArguments(BaseModel):
    """Base model for tool arguments; unknown keys, such as user IDs, are rejected."""
    model_config = ConfigDict(extra='forbid', populate_by_name=True)


def coerce_timestamp(value: Any) -> Any:
    """Pydantic ``before`` validator hook turning ISO strings into aware datetimes."""
    if isinstance(value, str):
        return parse_timestamp(value)
    return value


def search_limit_field():
    """Optional result count; values above the store maximum are clamped, not rejected."""
    return Field(None, ge=1, description='Maximum number of results to return')


def advertise_search_limits(schema: Dict[str, Any], default_limit: int, max_limit: int) -> Dict[str, Any]:
    """Write the configured result-count bounds into a search schema's ``limit`` property."""
    limit = schema['properties']['limit']
    limit['maximum'] = max_limit
    limit['description'] = f'Maximum number of results to return (default: {default_limit}, at most {max_limit})'
    return schema


def similarity_percent(similarity: float) -> int:
    """Cosine similarity as a whole percentage, halves rounded up."""
    return math.floor(similarity * 100 + 0.5)


def format_validation_error(error: ValidationError) -> str:
    """Summarize a pydantic validation error in one line the model can act on."""
    problems = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item['loc']) or 'arguments'
        problems.append(f"{location}: {item['msg']}")
    return '; '.join(problems)


class ToolAdapter:
    """A typed tool exposed to the model.

    Subclasses set ``name``, ``description``, ``arguments_model`` and
    ``failure_message`` and implement ``run``. ``execute`` never raises:
    invalid arguments and runtime failures both come back as a failed
    ``ToolResult``.
    """

    name: ToolName
    description: str
    arguments_model: Type[ToolArguments]
    failure_message: str

    def input_schema(self) -> Dict[str, Any]:
        """JSON schema of the tool's arguments."""
        return self.arguments_model.model_json_schema()

    def spec(self) -> Dict[str, Any]:
        """Tool specification in Bedrock Converse format."""
        return {
            'toolSpec': {
                'name': self.name.value,
                'description': self.description,
                'inputSchema': {
                    'json': self.input_schema()
                }
            }
        }

    def execute(self, arguments: Any) -> ToolResult:
        """
        Validate arguments and run the tool.

        Args:
            arguments: Raw arguments supplied by the model

        Returns:
            ToolResult envelope
        """
        try:
            args = self.arguments_model.model_validate(arguments if arguments is not None else {})
        except ValidationError as e:
            logger.warning(f'Rejected arguments for {self.name.value}: {format_validation_error(e)}')
            return ToolResult(success=False, message=f'Invalid arguments: {format_validation_error(e)}')

        try:
            return self.run(args)
        except Exception as e:
            logger.error(f'Tool {self.name.value} failed: {e}')
            return self.on_failure(e)

    def run(self, args: ToolArguments) -> ToolResult:
        raise NotImplementedError

    def on_failure(self, error: Exception) -> ToolResult:
        return ToolResult(success=False, message=f'{self.failure_message}: {str(error) or type(error).__name__}')
