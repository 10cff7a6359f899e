"""
Agent loop: alternates model turns with tool execution under a step budget.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from ..models.events import (ErrorOccurred, Finished, FinishReason, ModelTurn, StepStarted, TextDelta, ToolCall,
                             ToolCallRequested, ToolResultReady)
from ..tools import Toolset
from ..tools.base import ToolName, ToolResult
from ..utils.bedrock_llm import BedrockLLM
from ..utils.config import AgentConfig
from ..utils.json_utils import to_tool_result_content
from ..utils.logging_config import get_logger

logger = get_logger(__name__)

AgentEvent = Union[StepStarted, TextDelta, ToolCallRequested, ToolResultReady, Finished, ErrorOccurred]

MODEL_ERROR_MESSAGE = 'The assistant could not generate a response. Please try again.'
TIMEOUT_MESSAGE = 'The request took too long to complete.'

TOOL_SUMMARIES = {
    ToolName.SEARCH_INTERNET: 'Search the web for information',
    ToolName.STORE_MEMORY: 'Store new memories about the user, you can use this without the user asking you to',
    ToolName.SEARCH_MEMORIES: 'Search for relevant memories about the user',
    ToolName.UPDATE_MEMORY: 'Update existing memories by ID',
    ToolName.STORE_EVENT: 'Store new events related to the user',
    ToolName.SEARCH_EVENTS: 'Search for relevant events',
    ToolName.UPDATE_EVENT: 'Update existing events by ID',
}


def build_system_prompt(assistant_name: str, now: Optional[datetime] = None) -> str:
    """
    Build the system prompt for one request.

    Args:
        assistant_name: Name the assistant introduces itself with
        now: Current local time (computed per request when None)

    Returns:
        System prompt text
    """
    now = now or datetime.now().astimezone()
    current = now.strftime('%A, %B %d, %Y at %H:%M %Z').strip()
    tool_lines = '\n'.join(f'- {name.value}: {summary}' for name, summary in TOOL_SUMMARIES.items())

    return f"""You are a helpful assistant named {assistant_name}. The current date is {current}.
Use the provided tools to answer user queries to the best of your ability.
If you don't know the answer, use the internet search tool to find relevant information.

You have access to the following tools:
{tool_lines}

At the start of each conversation, you MUST call the {ToolName.SEARCH_MEMORIES.value} tool and the \
{ToolName.SEARCH_EVENTS.value} tool right away before saying anything.
You should only initialize the conversation after completing those two tool calls. Do not mention that you made \
those tool calls in your response to the user."""


class AgentLoop:
    """Runs one chat request to completion.

    Each step is one model turn. Tool calls requested in a turn run in
    parallel and their results are appended in the order the model asked
    for them. The loop ends when a turn requests no tools, after
    ``max_steps`` turns, on cancellation, on a model error, or when the
    request deadline passes.
    """

    def __init__(self,
                 llm: BedrockLLM,
                 toolset: Toolset,
                 system_prompt: str,
                 config: AgentConfig,
                 clock: Callable[[], float] = time.monotonic):
        self.llm = llm
        self.toolset = toolset
        self.system_prompt = system_prompt
        self.config = config
        self.clock = clock

    def run(self,
            messages: List[Dict[str, Any]],
            cancel_event: Optional[threading.Event] = None) -> Iterator[AgentEvent]:
        """
        Run the loop, yielding events as they happen.

        Args:
            messages: Conversation in Bedrock Converse format
            cancel_event: Set by the caller when the request is aborted

        Yields:
            Agent events; the last one is ``Finished`` or ``ErrorOccurred``
        """
        deadline = self.clock() + self.config.request_timeout
        conversation = list(messages)
        tool_config = self.toolset.tool_config()
        final_text = ''
        usage: Dict[str, int] = {}
        steps = 0

        while steps < self.config.max_steps:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f'Agent loop cancelled after {steps} steps')
                yield Finished(text=final_text, steps=steps, reason=FinishReason.CANCELLED, usage=usage or None)
                return
            if self.clock() >= deadline:
                logger.warning(f'Agent loop exceeded its deadline after {steps} steps')
                yield ErrorOccurred(message=TIMEOUT_MESSAGE, steps=steps)
                return

            steps += 1
            yield StepStarted(step=steps)

            turn = None
            try:
                for item in self.llm.stream_turn(conversation, self.system_prompt, tool_config):
                    if isinstance(item, ModelTurn):
                        turn = item
                    else:
                        yield item
                    if self.clock() >= deadline:
                        break
            except Exception as e:
                logger.error(f'Model turn {steps} failed: {e}')
                yield ErrorOccurred(message=MODEL_ERROR_MESSAGE, steps=steps)
                return

            if turn is None:
                logger.warning(f'Agent loop exceeded its deadline during step {steps}')
                yield ErrorOccurred(message=TIMEOUT_MESSAGE, steps=steps)
                return

            if turn.text:
                final_text = turn.text
            for key, value in (turn.usage or {}).items():
                if isinstance(value, int):
                    usage[key] = usage.get(key, 0) + value

            if not turn.tool_calls:
                logger.info(f'Agent loop finished after {steps} steps')
                yield Finished(text=final_text, steps=steps, reason=FinishReason.STOP, usage=usage or None)
                return

            conversation.append(turn.to_message())
            for call in turn.tool_calls:
                yield ToolCallRequested(tool_call_id=call.id, tool_name=call.name, input=call.input)

            results = self._execute_tools(turn.tool_calls, deadline)

            tool_results = []
            for call, result in zip(turn.tool_calls, results):
                yield ToolResultReady(tool_call_id=call.id, tool_name=call.name, output=result)
                tool_results.append({'toolResult': {'toolUseId': call.id, 'content': to_tool_result_content(result)}})
            conversation.append({'role': 'user', 'content': tool_results})

        if self.clock() >= deadline:
            logger.warning(f'Agent loop exceeded its deadline during step {steps}')
            yield ErrorOccurred(message=TIMEOUT_MESSAGE, steps=steps)
            return

        logger.info(f'Agent loop reached the step budget of {self.config.max_steps}')
        yield Finished(text=final_text, steps=steps, reason=FinishReason.MAX_STEPS, usage=usage or None)

    def _execute_tools(self, calls: List[ToolCall], deadline: float) -> List[Dict[str, Any]]:
        """Run a turn's tool calls in parallel and return their results in request order."""
        logger.debug(f"Executing tools: {', '.join(call.name for call in calls)}")
        executor = ThreadPoolExecutor(max_workers=min(len(calls), self.config.max_parallel_tools),
                                      thread_name_prefix='brane-tool')
        timed_out = False
        results = []
        try:
            futures = [executor.submit(self.toolset.execute, call.name, call.input) for call in calls]
            for call, future in zip(calls, futures):
                try:
                    result = future.result(timeout=max(deadline - self.clock(), 0))
                except FutureTimeoutError:
                    logger.warning(f'Tool call {call.name} ({call.id}) did not finish before the deadline')
                    timed_out = True
                    result = ToolResult(success=False, message=f'Tool {call.name} timed out')
                results.append(result.to_dict())
        finally:
            # Calls already running finish in the background; queued ones are dropped
            executor.shutdown(wait=not timed_out, cancel_futures=True)
        return results
