from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from .model import OPENROUTER_BASE_URL

DEFAULT_INSTRUCTIONS = """You are a smart Todo Management Assistant.
You have direct access to the user's todo list database via tools.
ALWAYS use the provided tools to fetch, create, update, or delete tasks.
Do NOT hallucinate tasks. Always use 'list_todos' if you are unsure about the current state.
When a user refers to a task by name (e.g., "delete the milk task"), the tools are smart enough to find it. Just pass the title to the tool."""

DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_MAX_ITERATIONS = 5
DEFAULT_HISTORY_LIMIT = 20
RUNNERS = ("native", "sdk")


@dataclass(slots=True)
class AgentConfig:
    api_key: str | None
    base_url: str
    models: list[str]
    max_iterations: int
    instructions: str
    history_limit: int
    app_url: str
    app_title: str
    redis_url: str
    store_prefix: str
    store_backend: str
    runner: str = "native"


def _read_instructions(e: dict[str, Any]) -> str:
    path = e.get("AGENT_INSTRUCTIONS_FILE")
    if path:
        try:
            with open(path, encoding="utf-8") as f:
                return f.read()
        except OSError:
            # Fall back to env/defaults if the file is missing or unreadable
            pass
    return e.get("AGENT_INSTRUCTIONS") or DEFAULT_INSTRUCTIONS


def _read_models(e: dict[str, Any]) -> list[str]:
    raw = (e.get("AGENT_MODELS") or e.get("AGENT_MODEL") or "").strip()
    models = [m.strip() for m in raw.split(",") if m.strip()]
    return models or [DEFAULT_MODEL]


def _read_int(e: dict[str, Any], name: str, default: int, *, minimum: int = 1) -> int:
    raw = (e.get(name) or "").strip()
    try:
        value = int(raw) if raw else default
    except ValueError:
        value = default
    return max(minimum, value)


def load_config(env: dict[str, str] | None = None) -> AgentConfig:
    e: dict[str, Any] = dict(os.environ)
    if env:
        e.update(env)
    backend = (e.get("TODO_STORE_BACKEND") or "redis").strip().lower()
    runner = (e.get("AGENT_RUNNER") or "native").strip().lower()
    return AgentConfig(
        api_key=e.get("OPENROUTER_API_KEY") or e.get("OPENAI_API_KEY") or None,
        base_url=e.get("AGENT_BASE_URL") or OPENROUTER_BASE_URL,
        models=_read_models(e),
        max_iterations=_read_int(e, "AGENT_MAX_ITERATIONS", DEFAULT_MAX_ITERATIONS),
        instructions=_read_instructions(e),
        history_limit=_read_int(e, "AGENT_HISTORY_LIMIT", DEFAULT_HISTORY_LIMIT, minimum=0),
        app_url=e.get("APP_URL") or "http://localhost:3000",
        app_title=e.get("APP_TITLE") or "Todo Agent",
        redis_url=e.get("REDIS_URL") or "redis://localhost:6379/0",
        store_prefix=e.get("TODO_STORE_PREFIX") or "todo",
        store_backend=backend if backend in {"redis", "memory"} else "redis",
        runner=runner if runner in RUNNERS else "native",
    )


__all__ = [
    "AgentConfig",
    "DEFAULT_INSTRUCTIONS",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_MODEL",
    "RUNNERS",
    "load_config",
]
