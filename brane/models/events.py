"""
Events streamed by the agent loop to its caller.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FinishReason(str, Enum):
    """Why an agent loop stopped."""
    STOP = 'stop'  # the model produced a turn without tool calls
    MAX_STEPS = 'max_steps'
    CANCELLED = 'cancelled'


@dataclass
class StepStarted:
    step: int
    type: str = field(default='step-start', init=False)


@dataclass
class TextDelta:
    text: str
    type: str = field(default='text-delta', init=False)


@dataclass
class ToolCallRequested:
    tool_call_id: str
    tool_name: str
    input: Dict[str, Any]
    type: str = field(default='tool-call', init=False)


@dataclass
class ToolResultReady:
    tool_call_id: str
    tool_name: str
    output: Dict[str, Any]
    type: str = field(default='tool-result', init=False)


@dataclass
class Finished:
    text: str
    steps: int
    reason: FinishReason
    usage: Optional[Dict[str, int]] = None
    type: str = field(default='finish', init=False)


@dataclass
class ErrorOccurred:
    """Terminal failure; the message is safe to show to the end user."""
    message: str
    steps: int = 0
    type: str = field(default='error', init=False)


@dataclass
class ToolCall:
    """A tool invocation requested by the model in one turn."""
    id: str
    name: str
    input: Dict[str, Any]


@dataclass
class ModelTurn:
    """A complete model turn assembled from the response stream."""
    text: str
    tool_calls: List[ToolCall]
    stop_reason: Optional[str] = None
    usage: Optional[Dict[str, int]] = None

    def to_message(self) -> Dict[str, Any]:
        """Render the turn as an assistant message in Bedrock Converse format."""
        content: List[Dict[str, Any]] = []
        if self.text:
            content.append({'text': self.text})
        for call in self.tool_calls:
            content.append({'toolUse': {'toolUseId': call.id, 'name': call.name, 'input': call.input}})
        return {'role': 'assistant', 'content': content}
