from __future__ import annotations

import enum
import uuid
from collections.abc import Sequence
from typing import Any

from todoagent.models.chat import AgentReply, ChatTurn, ModelReply
from todoagent.observability import Tracer, get_json_logger, get_metrics, use_run_context
from todoagent.tools.executor import ToolExecutor
from todoagent.tools.registry import tool_declarations

from .config import DEFAULT_INSTRUCTIONS, DEFAULT_MAX_ITERATIONS
from .model import ChatModel

FALLBACK_REPLY = "I processed your request."


class LoopState(enum.Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


class TodoAgent:
    """Tool-calling loop between a chat model and the task tools.

    One ``run`` is one user message in, one assistant answer out:

    - the model is called with the system instructions, any caller-supplied
      history and the new user message, plus every tool declaration
    - each round of tool calls is executed sequentially in emission order and
      answered with one tool turn per call
    - the loop ends when the model answers without tool calls, or after
      ``max_iterations`` round-trips, in which case the last assistant text
      seen (or a generic reply) is returned with ``capped=True``

    Model errors propagate to the caller untouched. Tool errors never do; the
    executor turns them into tool results the model can react to.
    """

    def __init__(
        self,
        model: ChatModel,
        executor: ToolExecutor,
        *,
        instructions: str = DEFAULT_INSTRUCTIONS,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        name: str = "TodoAgent",
    ) -> None:
        self._model = model
        self._executor = executor
        self._instructions = instructions
        self._max_iterations = max(1, int(max_iterations))
        self._name = name
        self._tools: list[dict[str, Any]] = tool_declarations()
        self._logger = get_json_logger("todoagent.agent")
        self._tracer = Tracer(get_json_logger("todoagent.trace"))

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    def initial_turns(
        self, user_message: str, history: Sequence[ChatTurn] | None = None
    ) -> list[ChatTurn]:
        turns = [ChatTurn(role="system", content=self._instructions)]
        turns.extend(history or [])
        turns.append(ChatTurn(role="user", content=user_message))
        return turns

    async def _call_model(self, turns: list[ChatTurn], iteration: int) -> ModelReply:
        span_meta = {"model": self._model.name, "iteration": iteration}
        with self._tracer.span("model.complete", span_meta):
            return await self._model.complete(turns, self._tools)

    async def run(
        self,
        user_message: str,
        user_id: str,
        history: Sequence[ChatTurn] | None = None,
    ) -> AgentReply:
        run_id = str(uuid.uuid4())
        metrics = get_metrics()
        with use_run_context(run_id, user_id, self._name):
            self._logger.info("agent started", extra={"event": "agent_started"})
            metrics.increment("agent_runs", {"agent": self._name})
            try:
                return await self._run_loop(user_message, user_id, history)
            except Exception:
                self._logger.exception("agent errored", extra={"event": "agent_errored"})
                metrics.increment("agent_errors", {"agent": self._name})
                raise

    async def _run_loop(
        self, user_message: str, user_id: str, history: Sequence[ChatTurn] | None
    ) -> AgentReply:
        turns = self.initial_turns(user_message, history)
        iterations = 0
        tool_calls = 0
        last_text: str | None = None

        state = LoopState.AWAITING_MODEL
        reply = await self._call_model(turns, iterations)
        while True:
            if reply.content and reply.content.strip():
                last_text = reply.content
            if not reply.tool_calls:
                state = LoopState.DONE
                break
            if iterations >= self._max_iterations:
                break

            iterations += 1
            state = LoopState.EXECUTING_TOOLS
            turns.append(
                ChatTurn(role="assistant", content=reply.content, tool_calls=reply.tool_calls)
            )
            for call in reply.tool_calls:
                result = await self._executor.execute(call.name, call.arguments, user_id)
                tool_calls += 1
                turns.append(ChatTurn(role="tool", tool_call_id=call.id, content=result))

            state = LoopState.AWAITING_MODEL
            reply = await self._call_model(turns, iterations)

        capped = state is not LoopState.DONE
        if capped:
            self._logger.warning(
                "iteration cap reached",
                extra={"event": "agent_capped", "kv": {"max_iterations": self._max_iterations}},
            )
        result = AgentReply(
            text=last_text or FALLBACK_REPLY,
            iterations=iterations,
            tool_calls=tool_calls,
            capped=capped,
            model=reply.model or self._model.name,
        )
        self._logger.info(
            "agent completed",
            extra={
                "event": "agent_completed",
                "model": result.model,
                "kv": {"iterations": iterations, "tool_calls": tool_calls, "capped": capped},
            },
        )
        return result


__all__ = ["FALLBACK_REPLY", "LoopState", "TodoAgent"]
