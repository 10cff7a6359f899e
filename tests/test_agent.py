"""
Tests for the agent loop: termination, ordering, cancellation and deadlines.
"""

import threading
import time
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from brane.models.events import ErrorOccurred, Finished, FinishReason, StepStarted, TextDelta, ToolResultReady
from brane.services.agent import MODEL_ERROR_MESSAGE, TIMEOUT_MESSAGE, AgentLoop, build_system_prompt
from brane.services.entity_store import EventStore, MemoryStore
from brane.tools import ToolName, ToolResult, create_toolset
from brane.utils.bedrock_llm import BedrockLLMError
from brane.utils.config import AgentConfig
from tests.fakes import FakeModel, text_turn, tool_turn

MESSAGES = [{'role': 'user', 'content': [{'text': 'Hi'}]}]


class FakeToolset:
    """Toolset whose tools run caller-supplied functions."""

    def __init__(self, handlers=None):
        self.handlers = handlers or {}
        self.calls = []
        self.lock = threading.Lock()

    def tool_config(self):
        return {'tools': []}

    def execute(self, name, arguments):
        with self.lock:
            self.calls.append((name, arguments))
        handler = self.handlers.get(name)
        if handler is not None:
            return handler(arguments)
        return ToolResult(success=True, message=f'{name} done')


@pytest.fixture
def toolset():
    memories = Mock(spec=MemoryStore)
    memories.search.return_value = []
    events = Mock(spec=EventStore)
    events.search.return_value = []
    return create_toolset('u1', memories, events, Mock())


def run(model, toolset, config, cancel_event=None, clock=time.monotonic):
    loop = AgentLoop(llm=model, toolset=toolset, system_prompt='system', config=config, clock=clock)
    return list(loop.run(MESSAGES, cancel_event=cancel_event))


class TestTermination:

    def test_turn_without_tools_stops(self, toolset, agent_config):
        model = FakeModel([text_turn('Hello!')])

        events = run(model, toolset, agent_config)

        assert isinstance(events[0], StepStarted)
        assert isinstance(events[1], TextDelta)
        assert events[-1] == Finished(text='Hello!', steps=1, reason=FinishReason.STOP)
        assert model.turns == 1

    def test_step_budget_is_never_exceeded(self, toolset, agent_config):
        model = FakeModel([tool_turn(('c', 'searchMemories', {'query': 'tea'}), text='Still looking')])

        events = run(model, toolset, agent_config)

        assert model.turns == 5
        finished = events[-1]
        assert finished.reason is FinishReason.MAX_STEPS
        assert finished.steps == 5
        assert finished.text == 'Still looking'
        # Tools requested in the last turn are still executed
        assert sum(isinstance(e, ToolResultReady) for e in events) == 5

    def test_final_text_is_the_last_text_produced(self, toolset, agent_config):
        model = FakeModel([
            tool_turn(('c1', 'searchMemories', {'query': 'tea'}), text='Let me check.'),
            text_turn(''),
        ])

        events = run(model, toolset, agent_config)

        assert events[-1].text == 'Let me check.'
        assert events[-1].steps == 2

    def test_model_failure_ends_with_generic_error(self, toolset, agent_config):
        model = FakeModel([BedrockLLMError('AccessDeniedException: secret account details')])

        events = run(model, toolset, agent_config)

        assert events[-1] == ErrorOccurred(message=MODEL_ERROR_MESSAGE, steps=1)
        assert 'secret' not in events[-1].message


class TestToolExecution:

    def test_results_are_appended_in_request_order(self, agent_config):

        def slow(arguments):
            time.sleep(0.2)
            return ToolResult(success=True, message='slow done')

        toolset = FakeToolset({'searchMemories': slow})
        model = FakeModel([
            tool_turn(('c1', 'searchMemories', {'query': 'tea'}), ('c2', 'searchEvents', {'query': 'today'})),
            text_turn('Hi!'),
        ])

        events = run(model, toolset, agent_config)

        results = [e for e in events if isinstance(e, ToolResultReady)]
        assert [r.tool_call_id for r in results] == ['c1', 'c2']
        tool_message = model.requests[1][-1]
        assert tool_message['role'] == 'user'
        assert [block['toolResult']['toolUseId'] for block in tool_message['content']] == ['c1', 'c2']
        assert tool_message['content'][0]['toolResult']['content'] == [{
            'json': {'success': True, 'message': 'slow done'}
        }]

    def test_conversation_grows_with_assistant_turn_and_results(self, toolset, agent_config):
        model = FakeModel([tool_turn(('c1', 'searchMemories', {'query': 'tea'})), text_turn('Done')])

        run(model, toolset, agent_config)

        assert model.requests[0] == MESSAGES
        second = model.requests[1]
        assert second[1]['role'] == 'assistant'
        assert second[1]['content'][0]['toolUse']['name'] == 'searchMemories'

    def test_invalid_tool_arguments_are_reported_to_the_model(self, toolset, agent_config):
        model = FakeModel([tool_turn(('c1', 'storeMemory', {'userId': 'u2', 'text': 'x'})), text_turn('Sorry')])

        events = run(model, toolset, agent_config)

        [result] = [e for e in events if isinstance(e, ToolResultReady)]
        assert result.output['success'] is False
        assert events[-1].reason is FinishReason.STOP

    def test_tools_run_in_parallel(self):
        barrier = threading.Barrier(2, timeout=2)

        def meet(arguments):
            barrier.wait()
            return ToolResult(success=True, message='met')

        toolset = FakeToolset({'searchMemories': meet, 'searchEvents': meet})
        config = AgentConfig(assistant_name='brane', max_steps=3, request_timeout=5, max_parallel_tools=2)
        model = FakeModel([tool_turn(('a', 'searchMemories', {}), ('b', 'searchEvents', {})), text_turn('ok')])

        events = run(model, toolset, config)

        assert all(e.output['success'] for e in events if isinstance(e, ToolResultReady))


class TestCancellationAndDeadline:

    def test_cancelled_before_start(self, toolset, agent_config):
        cancel = threading.Event()
        cancel.set()
        model = FakeModel([text_turn('never')])

        events = run(model, toolset, agent_config, cancel_event=cancel)

        assert model.turns == 0
        assert events == [Finished(text='', steps=0, reason=FinishReason.CANCELLED)]

    def test_in_flight_tools_complete_but_no_further_step(self, agent_config):
        cancel = threading.Event()

        def abort(arguments):
            cancel.set()
            return ToolResult(success=True, message='stored')

        toolset = FakeToolset({'storeMemory': abort})
        model = FakeModel([tool_turn(('c1', 'storeMemory', {'text': 'x'}), text='Saving.')])

        events = run(model, toolset, agent_config, cancel_event=cancel)

        assert model.turns == 1
        assert toolset.calls == [('storeMemory', {'text': 'x'})]
        assert any(isinstance(e, ToolResultReady) for e in events)
        assert events[-1] == Finished(text='Saving.', steps=1, reason=FinishReason.CANCELLED)

    def test_deadline_stops_the_loop(self, agent_config):
        now = [0.0]

        def slow_clock_tool(arguments):
            now[0] += 100
            return ToolResult(success=True, message='done')

        toolset = FakeToolset({'searchMemories': slow_clock_tool})
        model = FakeModel([tool_turn(('c1', 'searchMemories', {'query': 'tea'}))])

        events = run(model, toolset, agent_config, clock=lambda: now[0])

        assert model.turns == 1
        assert events[-1] == ErrorOccurred(message=TIMEOUT_MESSAGE, steps=1)

    def test_deadline_in_the_last_budgeted_step_is_a_timeout(self):
        now = [0.0]

        def slow_clock_tool(arguments):
            now[0] += 100
            return ToolResult(success=True, message='done')

        toolset = FakeToolset({'searchMemories': slow_clock_tool})
        config = AgentConfig(assistant_name='brane', max_steps=1, request_timeout=30, max_parallel_tools=2)
        model = FakeModel([tool_turn(('c1', 'searchMemories', {'query': 'tea'}))])

        events = run(model, toolset, config, clock=lambda: now[0])

        assert model.turns == 1
        assert sum(isinstance(e, ToolResultReady) for e in events) == 1
        assert events[-1] == ErrorOccurred(message=TIMEOUT_MESSAGE, steps=1)

    def test_hung_tool_times_out_with_failure_envelope(self):
        release = threading.Event()

        def hang(arguments):
            release.wait(5)
            return ToolResult(success=True, message='too late')

        toolset = FakeToolset({'searchInternet': hang})
        config = AgentConfig(assistant_name='brane', max_steps=5, request_timeout=0.2, max_parallel_tools=2)
        model = FakeModel([tool_turn(('c1', 'searchInternet', {'query': 'news'})), text_turn('never')])

        try:
            events = run(model, toolset, config)
        finally:
            release.set()

        [result] = [e for e in events if isinstance(e, ToolResultReady)]
        assert result.output == {'success': False, 'message': 'Tool searchInternet timed out'}
        assert isinstance(events[-1], ErrorOccurred)
        assert model.turns == 1


def test_system_prompt_mentions_date_tools_and_first_turn_policy():
    prompt = build_system_prompt('brane', now=datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc))

    assert 'named brane' in prompt
    assert 'June 01, 2024' in prompt
    for name in ToolName:
        assert f'- {name.value}:' in prompt
    assert 'MUST call the searchMemories tool and the searchEvents tool' in prompt
