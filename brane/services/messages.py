"""
Validation and conversion of inbound chat messages.

Inbound messages carry role-tagged parts::

    {'id': 'm1', 'role': 'user', 'parts': [{'type': 'text', 'text': 'Hi'}]}

Assistant messages may also carry ``tool-call`` parts
(``toolCallId``, ``toolName``, ``input``) and ``tool-result`` parts
(``toolCallId``, ``toolName``, ``output``). The history is validated as a
whole before anything reaches the model.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..tools.base import ToolName, format_validation_error
from ..utils.json_utils import to_tool_result_content


class MessageValidationError(Exception):
    """The inbound conversation is malformed; a client error."""
    pass


class MessagePart(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class TextPart(MessagePart):
    type: Literal['text']
    text: str


class ToolCallPart(MessagePart):
    type: Literal['tool-call']
    tool_call_id: str = Field(alias='toolCallId', min_length=1)
    tool_name: str = Field(alias='toolName')
    input: Dict[str, Any] = Field(default_factory=dict)


class ToolResultPart(MessagePart):
    type: Literal['tool-result']
    tool_call_id: str = Field(alias='toolCallId', min_length=1)
    tool_name: str = Field(alias='toolName')
    output: Any = None


Part = Annotated[Union[TextPart, ToolCallPart, ToolResultPart], Field(discriminator='type')]


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra='ignore')

    id: Optional[str] = None
    role: Literal['user', 'assistant']
    parts: List[Part] = Field(min_length=1)

    def text(self) -> str:
        return ''.join(part.text for part in self.parts if isinstance(part, TextPart))


_messages_adapter = TypeAdapter(List[ChatMessage])


def validate_messages(raw: Any) -> List[ChatMessage]:
    """
    Validate an inbound conversation.

    Args:
        raw: Decoded JSON list of messages

    Returns:
        Parsed messages

    Raises:
        MessageValidationError: If the shape or the tool-call bookkeeping is invalid
    """
    if not isinstance(raw, list):
        raise MessageValidationError('Messages must be a list')
    if not raw:
        raise MessageValidationError('Messages must not be empty')

    try:
        messages = _messages_adapter.validate_python(raw)
    except ValidationError as e:
        raise MessageValidationError(f'Invalid messages: {format_validation_error(e)}')

    known_tools = {name.value for name in ToolName}
    pending_calls: Dict[str, str] = {}

    for index, message in enumerate(messages):
        for part in message.parts:
            if isinstance(part, TextPart):
                continue

            if message.role == 'user':
                raise MessageValidationError(f'Message {index}: user messages may only contain text parts')
            if part.tool_name not in known_tools:
                raise MessageValidationError(f'Message {index}: unknown tool {part.tool_name}')

            if isinstance(part, ToolCallPart):
                if part.tool_call_id in pending_calls:
                    raise MessageValidationError(f'Message {index}: duplicate tool call {part.tool_call_id}')
                pending_calls[part.tool_call_id] = part.tool_name
            else:
                expected = pending_calls.pop(part.tool_call_id, None)
                if expected is None:
                    raise MessageValidationError(f'Message {index}: result for unknown tool call {part.tool_call_id}')
                if expected != part.tool_name:
                    raise MessageValidationError(f'Message {index}: result for {part.tool_call_id} names tool '
                                                 f'{part.tool_name}, but the call was to {expected}')

    if pending_calls:
        raise MessageValidationError(f"Tool calls without results: {', '.join(sorted(pending_calls))}")
    if messages[0].role != 'user':
        raise MessageValidationError('The conversation must start with a user message')
    if messages[-1].role != 'user':
        raise MessageValidationError('The last message must be from the user')
    if not messages[-1].text().strip():
        raise MessageValidationError('The last user message has no text')

    return messages


def is_first_user_message(messages: List[ChatMessage]) -> bool:
    """True when the conversation holds exactly one user message."""
    return sum(1 for message in messages if message.role == 'user') == 1


def to_bedrock_messages(messages: List[ChatMessage]) -> List[Dict[str, Any]]:
    """
    Convert validated messages to Bedrock Converse format.

    Tool results move into a user turn following the assistant turn that
    requested them, and consecutive turns of the same role are merged.

    Args:
        messages: Output of ``validate_messages``

    Returns:
        List of Bedrock message dictionaries
    """
    blocks = []
    for message in messages:
        for part in message.parts:
            if isinstance(part, TextPart):
                if part.text.strip():
                    blocks.append((message.role, {'text': part.text}))
            elif isinstance(part, ToolCallPart):
                blocks.append(('assistant', {
                    'toolUse': {
                        'toolUseId': part.tool_call_id,
                        'name': part.tool_name,
                        'input': part.input
                    }
                }))
            else:
                blocks.append(('user', {
                    'toolResult': {
                        'toolUseId': part.tool_call_id,
                        'content': to_tool_result_content(part.output)
                    }
                }))

    converted: List[Dict[str, Any]] = []
    for role, block in blocks:
        if converted and converted[-1]['role'] == role:
            converted[-1]['content'].append(block)
        else:
            converted.append({'role': role, 'content': [block]})
    return converted
