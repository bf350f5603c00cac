from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from toolloop import Agent
from toolloop.agent_types import AgentStatus
from toolloop.conversation import CompactionStrategy, Conversation
from toolloop.errors import (
    AgentBusyError,
    DuplicateToolError,
    ModelInvocationError,
    ToolNotDefinedError,
)
from toolloop.message import Message, ToolCall
from toolloop.model import Model, ModelRequest
from toolloop.tool import Parameter, Tool, ToolSchema
from toolloop.tool_decorators import define_tool


class _FakeModel(Model):
    """Replays scripted replies and records every request."""

    def __init__(self, replies: List[Any]) -> None:
        self.replies = list(replies)
        self.requests: List[ModelRequest] = []

    async def invoke(self, request: ModelRequest) -> Message:
        self.requests.append(request)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def token_limit(self) -> int:
        return 1000


class _RecordingTool(Tool):
    def __init__(self, name: str, log: List[str], result: Any = None, error: Exception = None) -> None:
        self.name = name
        self.log = log
        self.result = result
        self.error = error

    def get_name(self) -> str:
        return self.name

    def get_description(self) -> str:
        return f"records calls to {self.name}"

    def get_tool_schema(self) -> ToolSchema:
        return ToolSchema([Parameter("value", "anything")], "whatever")

    async def execute(self, arguments: Dict[str, Any]) -> Any:
        self.log.append(self.name)
        if self.error is not None:
            raise self.error
        return self.result


def _assistant(text: str = None, calls: List[ToolCall] = None) -> Message:
    return Message.builder().role("assistant").content(text).tool_calls(calls).build()


def _make_agent(model: Model, tools=(), **opts) -> Agent:
    return Agent({
        "name": "test",
        "system_prompt": "You are a test agent.",
        "tools": list(tools),
        "model": model,
        "response_callback": None,
        **opts,
    })


@define_tool(parameters=[Parameter("value", "text to echo", required=True)])
def echo(value):
    """Echo the value back."""
    return {"received": value}


def test_terminal_reply_produces_system_user_assistant():
    model = _FakeModel([_assistant("hello")])
    agent = _make_agent(model)

    final = asyncio.run(agent.invoke("hi"))

    assert final.text == "hello"
    assert [m.role for m in agent.conversation.messages] == ["system", "user", "assistant"]
    assert len(model.requests) == 1
    sent = model.requests[0].messages
    assert [m.role for m in sent] == ["system", "user"]
    assert sent[0].text == "You are a test agent."
    assert sent[1].text == "hi"
    assert agent.state.status is AgentStatus.IDLE
    assert agent.state.turns == 1


def test_no_system_message_without_prompt():
    model = _FakeModel([_assistant("hello")])
    agent = Agent({"model": model, "response_callback": None})
    asyncio.run(agent.invoke("hi"))
    assert [m.role for m in agent.conversation.messages] == ["user", "assistant"]


def test_echo_tool_round_trip():
    call = ToolCall(name="echo", arguments={"value": "ping"}, id="call-1")
    model = _FakeModel([_assistant(calls=[call]), _assistant("done")])
    agent = _make_agent(model, tools=[echo])

    final = asyncio.run(agent.invoke("say ping"))

    messages = agent.conversation.messages
    assert [m.role for m in messages] == ["system", "user", "assistant", "tool", "assistant"]
    assert messages[2].tool_calls == [call]
    [result] = messages[3].tool_results
    assert result.id == "call-1"
    assert result.tool_name == "echo"
    assert result.result == {"received": "ping"}
    assert result.is_error is False
    assert final is messages[4]
    assert len(model.requests) == 2
    assert model.requests[1].tools == [echo]
    assert [m.role for m in model.requests[1].messages] == ["system", "user", "assistant", "tool"]


def test_unknown_tool_becomes_error_result_and_loop_continues():
    call = ToolCall(name="missing", arguments={}, id="c1")
    model = _FakeModel([_assistant(calls=[call]), _assistant("sorry")])
    agent = _make_agent(model, tools=[echo])

    final = asyncio.run(agent.invoke("use a tool"))

    assert final.text == "sorry"
    [result] = agent.conversation.messages[3].tool_results
    assert result.is_error is True
    assert result.id == "c1"
    assert result.result["error"] == "ToolNotFoundError"
    assert "missing" in result.result["message"]
    assert len(model.requests) == 2


def test_tool_exception_is_isolated():
    log: List[str] = []
    broken = _RecordingTool("broken", log, error=RuntimeError("kaboom"))
    call = ToolCall(name="broken", id="c1")
    model = _FakeModel([_assistant(calls=[call]), _assistant("recovered")])
    agent = _make_agent(model, tools=[broken])

    final = asyncio.run(agent.invoke("go"))

    assert final.text == "recovered"
    [result] = agent.conversation.messages[3].tool_results
    assert result.is_error is True
    assert result.result == {"error": "RuntimeError", "message": "kaboom"}
    assert agent.state.error is None


def test_tool_calls_run_in_sequence_order():
    log: List[str] = []
    tools = [_RecordingTool(f"t{i}", log, result=i) for i in range(3)]
    calls = [
        ToolCall(name="t2", id="c2", sequence=2),
        ToolCall(name="t0", id="c0", sequence=0),
        ToolCall(name="t1", id="c1", sequence=1),
    ]
    model = _FakeModel([_assistant(calls=calls), _assistant("done")])
    agent = _make_agent(model, tools=tools)

    asyncio.run(agent.invoke("go"))

    assert log == ["t0", "t1", "t2"]
    tool_messages = [m for m in agent.conversation.messages if m.role == "tool"]
    assert [m.tool_results[0].id for m in tool_messages] == ["c0", "c1", "c2"]


def test_equal_sequence_numbers_keep_emission_order():
    log: List[str] = []
    tools = [_RecordingTool(name, log) for name in ("a", "b", "c")]
    calls = [ToolCall(name="b"), ToolCall(name="a"), ToolCall(name="c", sequence=-1)]
    model = _FakeModel([_assistant(calls=calls), _assistant("done")])
    agent = _make_agent(model, tools=tools)

    asyncio.run(agent.invoke("go"))

    assert log == ["c", "b", "a"]


def test_parallel_tool_calls_still_append_in_sequence_order():
    order: List[str] = []

    class _SlowTool(_RecordingTool):
        def __init__(self, name, delay):
            super().__init__(name, order, result=name)
            self.delay = delay

        async def execute(self, arguments):
            await asyncio.sleep(self.delay)
            order.append(self.name)
            return self.name

    tools = [_SlowTool("slow", 0.05), _SlowTool("fast", 0.0)]
    calls = [ToolCall(name="slow", id="s", sequence=0), ToolCall(name="fast", id="f", sequence=1)]
    model = _FakeModel([_assistant(calls=calls), _assistant("done")])
    agent = _make_agent(model, tools=tools, parallel_tool_calls=True)

    asyncio.run(agent.invoke("go"))

    assert order == ["fast", "slow"]
    tool_messages = [m for m in agent.conversation.messages if m.role == "tool"]
    assert [m.tool_results[0].result for m in tool_messages] == ["slow", "fast"]


def test_last_n_compaction_bounds_every_request():
    class _KeepLast(CompactionStrategy):
        def __init__(self, n):
            self.n = n
            self.configured_with = None

        def configure(self, model):
            self.configured_with = model.token_limit()

        def compact(self, messages):
            return messages[-self.n:]

    replies = []
    for i in range(5):
        replies.append(_assistant(calls=[ToolCall(name="echo", arguments={"value": str(i)})]))
    replies.append(_assistant("done"))
    model = _FakeModel(replies)
    strategy = _KeepLast(3)
    agent = _make_agent(model, tools=[echo], compaction_strategy=strategy)

    asyncio.run(agent.invoke("loop"))

    assert strategy.configured_with == 1000
    assert len(model.requests) == 6
    assert all(len(request.messages) <= 3 for request in model.requests)
    assert len(agent.conversation) == 3


def test_model_failure_propagates_and_keeps_history():
    model = _FakeModel([ModelInvocationError("HTTP error 500", status_code=500)])
    agent = _make_agent(model)

    with pytest.raises(ModelInvocationError) as excinfo:
        asyncio.run(agent.invoke("hi"))

    assert excinfo.value.status_code == 500
    assert [m.role for m in agent.conversation.messages] == ["system", "user"]
    assert agent.state.error == "HTTP error 500"
    assert agent.state.status is AgentStatus.IDLE

    model.replies.append(_assistant("back"))
    asyncio.run(agent.invoke("retry"))
    assert [m.role for m in agent.conversation.messages] == ["system", "user", "user", "assistant"]
    assert agent.state.error is None


def test_non_message_reply_is_a_model_failure():
    model = _FakeModel([{"role": "assistant"}])
    agent = _make_agent(model)
    with pytest.raises(ModelInvocationError):
        asyncio.run(agent.invoke("hi"))


def test_concurrent_invoke_is_rejected():
    class _BlockingModel(_FakeModel):
        async def invoke(self, request):
            await self.release.wait()
            return await super().invoke(request)

    async def _run():
        model = _BlockingModel([_assistant("one")])
        model.release = asyncio.Event()
        agent = _make_agent(model)
        first = asyncio.ensure_future(agent.invoke("first"))
        await asyncio.sleep(0)
        with pytest.raises(AgentBusyError):
            await agent.invoke("second")
        with pytest.raises(AgentBusyError):
            agent.reset()
        model.release.set()
        return await first

    final = asyncio.run(_run())
    assert final.text == "one"


def test_second_invoke_continues_conversation_and_reset_starts_over():
    model = _FakeModel([_assistant("one"), _assistant("two"), _assistant("three")])
    agent = _make_agent(model)

    asyncio.run(agent.invoke("first"))
    asyncio.run(agent.invoke("second"))
    assert [m.role for m in agent.conversation.messages] == [
        "system", "user", "assistant", "user", "assistant",
    ]

    agent.reset()
    assert agent.conversation is None
    asyncio.run(agent.invoke("third"))
    assert [m.role for m in agent.conversation.messages] == ["system", "user", "assistant"]


def test_injected_conversation_is_used_as_is():
    existing = Conversation()
    existing.append(Message.builder().role("user").content("earlier").build())
    model = _FakeModel([_assistant("ok")])
    agent = _make_agent(model, conversation=existing)

    asyncio.run(agent.invoke("now"))

    assert agent.conversation is existing
    assert [m.text for m in existing.messages] == ["earlier", "now", "ok"]


def test_restored_conversation_uses_agent_compaction_strategy():
    class _KeepLast(CompactionStrategy):
        def configure(self, model):
            pass

        def compact(self, messages):
            return messages[-3:]

    saved = [Message.builder().role("user").content(str(i)).build().to_dict() for i in range(10)]
    restored = Conversation.from_dicts(saved)
    strategy = _KeepLast()
    model = _FakeModel([_assistant("ok")])
    agent = _make_agent(model, conversation=restored, compaction_strategy=strategy)

    asyncio.run(agent.invoke("now"))

    assert restored.strategy is strategy
    assert len(model.requests[0].messages) <= 3
    assert [m.text for m in restored.messages] == ["9", "now", "ok"]


def test_injected_conversation_keeps_its_own_strategy_by_default():
    class _KeepLast(CompactionStrategy):
        def __init__(self):
            self.configured = False

        def configure(self, model):
            self.configured = True

        def compact(self, messages):
            return messages[-2:]

    strategy = _KeepLast()
    existing = Conversation(strategy=strategy)
    agent = _make_agent(_FakeModel([_assistant("ok")]), conversation=existing)

    assert agent.compaction_strategy is strategy
    assert strategy.configured
    asyncio.run(agent.invoke("now"))
    assert [m.text for m in existing.messages] == ["now", "ok"]


def test_response_callback_sees_every_model_reply():
    seen: List[Message] = []

    async def _callback(message):
        seen.append(message)

    call = ToolCall(name="echo", arguments={"value": "x"})
    model = _FakeModel([_assistant(calls=[call]), _assistant("done")])
    agent = _make_agent(model, tools=[echo], response_callback=_callback)

    asyncio.run(agent.invoke("go"))

    assert [m.role for m in seen] == ["assistant", "assistant"]
    assert seen[1].text == "done"


def test_default_response_callback_prints_reply(capsys):
    model = _FakeModel([_assistant("hello there")])
    agent = Agent({"model": model})
    asyncio.run(agent.invoke("hi"))
    assert "[content] hello there" in capsys.readouterr().out


def test_events_are_emitted_in_order_and_listener_errors_are_ignored():
    call = ToolCall(name="echo", arguments={"value": "x"}, id="c1")
    model = _FakeModel([_assistant(calls=[call]), _assistant("done")])
    agent = _make_agent(model, tools=[echo])
    events: List[str] = []
    statuses: List[AgentStatus] = []

    def _listener(event):
        events.append(event["type"])
        statuses.append(agent.state.status)

    def _broken(event):
        raise RuntimeError("listener bug")

    agent.subscribe(_broken)
    unsubscribe = agent.subscribe(_listener)
    asyncio.run(agent.invoke("go"))

    assert events == [
        "agent_start",
        "message_end",
        "turn_start",
        "message_end",
        "tool_execution_start",
        "tool_execution_end",
        "message_end",
        "turn_end",
        "turn_start",
        "message_end",
        "turn_end",
        "agent_end",
    ]
    assert statuses[events.index("tool_execution_start")] is AgentStatus.EXECUTING_TOOLS
    assert agent.state.turns == 2

    unsubscribe()
    model.replies.append(_assistant("again"))
    asyncio.run(agent.invoke("more"))
    assert events.count("agent_start") == 1


def test_tool_validation_at_construction():
    model = _FakeModel([])
    log: List[str] = []
    with pytest.raises(DuplicateToolError):
        _make_agent(model, tools=[_RecordingTool("dup", log), _RecordingTool("dup", log)])
    with pytest.raises(ValueError):
        _make_agent(model, tools=[_RecordingTool("", log)])
    with pytest.raises(ToolNotDefinedError):
        _make_agent(model, tools=[Tool()])
    with pytest.raises(ValueError):
        Agent({"name": "no model"})


def test_builder_assembles_agent():
    log: List[str] = []
    model = _FakeModel([_assistant("hi")])
    agent = (
        Agent.builder()
        .name("built")
        .system_prompt("prompt")
        .tools([echo])
        .add_tool(_RecordingTool("extra", log))
        .model(model)
        .response_callback(None)
        .build()
    )
    assert agent.name == "built"
    assert agent.system_prompt == "prompt"
    assert agent.model is model
    assert [t.get_name() for t in agent.tools] == ["echo", "extra"]
    assert agent.find_tool("extra").get_name() == "extra"
    assert agent.find_tool("nope") is None
    asyncio.run(agent.invoke("hello"))
    assert agent.conversation.messages[0].text == "prompt"
