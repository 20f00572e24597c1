from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from agents import (
    Agent,
    FunctionTool,
    MaxTurnsExceeded,
    OpenAIChatCompletionsModel,
    Runner,
    set_tracing_disabled,
)
from openai import AsyncOpenAI

from todoagent.models.chat import AgentReply, ChatTurn
from todoagent.observability import get_json_logger
from todoagent.tools.executor import ToolExecutor
from todoagent.tools.registry import TOOLS

from .config import DEFAULT_INSTRUCTIONS, DEFAULT_MAX_ITERATIONS
from .loop import FALLBACK_REPLY


def build_function_tools(executor: ToolExecutor, user_id: str) -> list[FunctionTool]:
    """Expose every registry tool as an Agents SDK FunctionTool bound to one user.

    Invocations go through the same ToolExecutor as the native loop, so
    resolution, disambiguation and error rendering are identical.
    """
    tools: list[FunctionTool] = []
    for spec in TOOLS.values():

        def _make_invoker(name: str) -> Any:
            async def _invoke(ctx: Any, args_json: str) -> str:
                return await executor.execute(name, args_json, user_id)

            return _invoke

        tools.append(
            FunctionTool(
                name=spec.name,
                description=spec.description,
                params_json_schema=spec.parameters,
                on_invoke_tool=_make_invoker(spec.name),
                strict_json_schema=False,
            )
        )
    return tools


def _sdk_input(user_message: str, history: Sequence[ChatTurn] | None) -> Any:
    if not history:
        return user_message
    items: list[dict[str, str]] = [
        {"role": t.role, "content": t.content}
        for t in history
        if t.role in ("user", "assistant") and t.content
    ]
    items.append({"role": "user", "content": user_message})
    return items


async def run_with_agents_sdk(
    user_message: str,
    user_id: str,
    *,
    executor: ToolExecutor,
    client: AsyncOpenAI,
    model: str,
    instructions: str = DEFAULT_INSTRUCTIONS,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    history: Sequence[ChatTurn] | None = None,
    tracing: bool = False,
) -> AgentReply:
    """Drive the same tools through ``agents.Runner`` instead of the native loop.

    The SDK counts every model call as a turn; ``max_iterations`` tool
    round-trips therefore map to ``max_iterations + 1`` turns. Only the plain
    user and assistant turns of ``history`` are replayed.
    """
    set_tracing_disabled(not tracing)
    _tools_any: Any = build_function_tools(executor, user_id)
    agent = Agent(
        name="TodoAgent",
        instructions=instructions,
        model=OpenAIChatCompletionsModel(model=model, openai_client=client),
        tools=_tools_any,
    )
    try:
        result = await Runner.run(
            agent, _sdk_input(user_message, history), max_turns=max_iterations + 1
        )
    except MaxTurnsExceeded:
        get_json_logger("todoagent.agent").warning(
            "iteration cap reached",
            extra={"event": "agent_capped", "kv": {"max_iterations": max_iterations}},
        )
        return AgentReply(text=FALLBACK_REPLY, iterations=max_iterations, capped=True, model=model)
    text = str(result.final_output or "").strip() or FALLBACK_REPLY
    return AgentReply(text=text, model=model)


__all__ = ["build_function_tools", "run_with_agents_sdk"]
