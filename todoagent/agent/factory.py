from __future__ import annotations

from collections.abc import Sequence

from todoagent.models.chat import AgentReply, ChatTurn
from todoagent.observability import get_json_logger
from todoagent.store.conversations import (
    ConversationStore,
    InMemoryConversationStore,
    RedisConversationStore,
)
from todoagent.store.redis_store import RedisTaskStore
from todoagent.store.task_store import InMemoryTaskStore, TaskStore
from todoagent.tools.executor import ToolExecutor

from .config import AgentConfig, load_config
from .loop import TodoAgent
from .model import (
    ChatModel,
    FallbackChatModel,
    ModelCallError,
    OpenAIChatModel,
    UnconfiguredChatModel,
    build_openai_client,
)


def build_model(config: AgentConfig, *, api_key: str | None = None) -> ChatModel:
    """One OpenAIChatModel per configured model name, wrapped for fallback when several."""
    key = api_key if api_key is not None else config.api_key
    if not key:
        get_json_logger("todoagent").warning(
            "no model API key configured; chat requests will fail",
            extra={"event": "model_unconfigured"},
        )
        return UnconfiguredChatModel()
    client = build_openai_client(
        key,
        base_url=config.base_url,
        app_url=config.app_url,
        app_title=config.app_title,
    )
    backends: list[ChatModel] = [OpenAIChatModel(name, client) for name in config.models]
    if len(backends) == 1:
        return backends[0]
    return FallbackChatModel(backends)


def build_stores(config: AgentConfig) -> tuple[TaskStore, ConversationStore]:
    if config.store_backend == "memory":
        return InMemoryTaskStore(), InMemoryConversationStore()
    return (
        RedisTaskStore(url=config.redis_url, key_prefix=config.store_prefix),
        RedisConversationStore(url=config.redis_url, key_prefix=config.store_prefix),
    )


def build_agent(
    config: AgentConfig,
    store: TaskStore,
    *,
    model: ChatModel | None = None,
    api_key: str | None = None,
) -> TodoAgent:
    chosen = model or build_model(config, api_key=api_key)
    get_json_logger("todoagent").info(
        "agent configured",
        extra={
            "event": "agent_configured",
            "model": chosen.name,
            "kv": {"max_iterations": config.max_iterations, "store": config.store_backend},
        },
    )
    return TodoAgent(
        chosen,
        ToolExecutor(store),
        instructions=config.instructions,
        max_iterations=config.max_iterations,
    )


async def run_agent_turn(
    config: AgentConfig,
    store: TaskStore,
    user_message: str,
    user_id: str,
    *,
    api_key: str | None = None,
    history: Sequence[ChatTurn] | None = None,
) -> AgentReply:
    """Run one chat turn on the runner ``config.runner`` selects.

    ``native`` drives the built-in TodoAgent loop; ``sdk`` drives the same
    tools through the OpenAI Agents SDK against the first configured model.
    """
    if config.runner != "sdk":
        agent = build_agent(config, store, api_key=api_key)
        return await agent.run(user_message, user_id, history)

    key = api_key if api_key is not None else config.api_key
    if not key:
        raise ModelCallError("no model API key configured; set OPENROUTER_API_KEY")
    # Defer import so the native runner does not pay for the Agents SDK
    from .sdk_runner import run_with_agents_sdk

    get_json_logger("todoagent").info(
        "agent configured",
        extra={
            "event": "agent_configured",
            "model": config.models[0],
            "kv": {"max_iterations": config.max_iterations, "runner": "sdk"},
        },
    )
    client = build_openai_client(
        key,
        base_url=config.base_url,
        app_url=config.app_url,
        app_title=config.app_title,
    )
    return await run_with_agents_sdk(
        user_message,
        user_id,
        executor=ToolExecutor(store),
        client=client,
        model=config.models[0],
        instructions=config.instructions,
        max_iterations=config.max_iterations,
        history=history,
    )


async def run_todo_agent(
    user_message: str,
    user_id: str,
    api_key: str | None,
    *,
    store: TaskStore,
    config: AgentConfig | None = None,
    history: Sequence[ChatTurn] | None = None,
) -> str:
    """Single chat-turn entry point: message and credentials in, assistant text out.

    Persisting the user/assistant turns is left to the caller.
    """
    cfg = config or load_config()
    reply = await run_agent_turn(
        cfg, store, user_message, user_id, api_key=api_key, history=history
    )
    return reply.text


__all__ = [
    "build_agent",
    "build_model",
    "build_stores",
    "run_agent_turn",
    "run_todo_agent",
]
