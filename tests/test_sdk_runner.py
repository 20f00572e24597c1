from __future__ import annotations

import types
from typing import Any

import pytest

pytest.importorskip("agents")

from agents import MaxTurnsExceeded  # noqa: E402
from openai import AsyncOpenAI  # noqa: E402

import todoagent.agent.sdk_runner as sdk_runner  # noqa: E402
from todoagent.agent.config import load_config  # noqa: E402
from todoagent.agent.factory import run_todo_agent  # noqa: E402
from todoagent.agent.loop import FALLBACK_REPLY  # noqa: E402
from todoagent.cli import main  # noqa: E402
from todoagent.models.chat import ChatTurn  # noqa: E402
from todoagent.store.task_store import InMemoryTaskStore  # noqa: E402
from todoagent.tools.executor import ToolExecutor  # noqa: E402


class _FakeSDKRunner:
    calls: list[dict[str, Any]] = []
    outcome: Any = None

    @staticmethod
    async def run(agent: Any, input: Any, max_turns: int) -> Any:
        _FakeSDKRunner.calls.append({"agent": agent, "input": input, "max_turns": max_turns})
        if isinstance(_FakeSDKRunner.outcome, Exception):
            raise _FakeSDKRunner.outcome
        return types.SimpleNamespace(final_output=_FakeSDKRunner.outcome)


def _patch_sdk_runner(monkeypatch: pytest.MonkeyPatch, outcome: Any) -> None:
    _FakeSDKRunner.calls = []
    _FakeSDKRunner.outcome = outcome
    monkeypatch.setattr(sdk_runner, "Runner", _FakeSDKRunner)


@pytest.mark.asyncio
async def test_function_tools_route_through_executor() -> None:
    store = InMemoryTaskStore()
    tools = sdk_runner.build_function_tools(ToolExecutor(store), "alice")

    assert [t.name for t in tools] == [
        "add_todo",
        "list_todos",
        "update_todo",
        "complete_todo",
        "delete_todo",
    ]
    add = tools[0]
    out = await add.on_invoke_tool(None, '{"title": "Buy milk"}')  # type: ignore[arg-type]
    assert out.startswith("Created task: **Buy milk**")

    listing = await tools[1].on_invoke_tool(None, "{}")  # type: ignore[arg-type]
    assert "**Buy milk**" in listing
    assert await store.list_tasks("bob") == []


@pytest.mark.asyncio
async def test_run_with_agents_sdk_returns_final_output(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_sdk_runner(monkeypatch, "All done.")

    reply = await sdk_runner.run_with_agents_sdk(
        "add milk",
        "alice",
        executor=ToolExecutor(InMemoryTaskStore()),
        client=AsyncOpenAI(api_key="test"),
        model="openai/gpt-4o-mini",
        max_iterations=3,
    )

    assert reply.text == "All done."
    assert reply.capped is False
    (call,) = _FakeSDKRunner.calls
    assert call["max_turns"] == 4
    assert call["input"] == "add milk"
    assert len(call["agent"].tools) == 5


@pytest.mark.asyncio
async def test_run_with_agents_sdk_maps_turn_cap_to_fallback(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _patch_sdk_runner(monkeypatch, MaxTurnsExceeded("Max turns (6) exceeded"))

    reply = await sdk_runner.run_with_agents_sdk(
        "loop",
        "alice",
        executor=ToolExecutor(InMemoryTaskStore()),
        client=AsyncOpenAI(api_key="test"),
        model="m",
    )

    assert reply.capped is True
    assert reply.text == FALLBACK_REPLY
    assert _FakeSDKRunner.calls[0]["max_turns"] == 6


@pytest.mark.asyncio
async def test_run_todo_agent_dispatches_to_sdk_runner(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_sdk_runner(monkeypatch, "Here you go.")
    cfg = load_config(
        {
            "AGENT_RUNNER": "sdk",
            "AGENT_MODELS": "a/one,b/two",
            "AGENT_MAX_ITERATIONS": "2",
            "TODO_STORE_BACKEND": "memory",
        }
    )
    history = [
        ChatTurn(role="user", content="hi"),
        ChatTurn(role="assistant", content="Hello!"),
        ChatTurn(role="tool", content="ignored", tool_call_id="c1"),
    ]

    text = await run_todo_agent(
        "list my tasks",
        "alice",
        "sk-user",
        store=InMemoryTaskStore(),
        config=cfg,
        history=history,
    )

    assert text == "Here you go."
    (call,) = _FakeSDKRunner.calls
    assert call["max_turns"] == 3
    assert call["input"] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello!"},
        {"role": "user", "content": "list my tasks"},
    ]
    assert call["agent"].model.model == "a/one"


def test_cli_chat_uses_sdk_runner_when_configured(
    monkeypatch: pytest.MonkeyPatch, capsys: Any
) -> None:
    _patch_sdk_runner(monkeypatch, "Nothing to do.")
    monkeypatch.setenv("AGENT_RUNNER", "sdk")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.setenv("TODO_STORE_BACKEND", "memory")

    with pytest.raises(SystemExit) as ei:
        main(["chat", "anything pending?", "--user", "alice"])

    assert ei.value.code == 0
    assert "Nothing to do." in capsys.readouterr().out.splitlines()
    assert _FakeSDKRunner.calls[0]["input"] == "anything pending?"
