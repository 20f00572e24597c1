from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from openai import AsyncOpenAI

from todoagent.models.chat import ChatTurn, ModelReply, ToolCall
from todoagent.observability import get_json_logger, get_metrics

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class ModelCallError(RuntimeError):
    """Raised when no configured backend produced a model reply."""


class ChatModel(Protocol):
    """A chat-completions backend with tool calling.

    Implementations return the first choice normalised into a ``ModelReply``
    and let transport errors propagate.
    """

    @property
    def name(self) -> str: ...

    async def complete(
        self, turns: Sequence[ChatTurn], tools: list[dict[str, Any]]
    ) -> ModelReply: ...


def build_openai_client(
    api_key: str | None,
    *,
    base_url: str = OPENROUTER_BASE_URL,
    app_url: str | None = None,
    app_title: str | None = None,
) -> AsyncOpenAI:
    headers: dict[str, str] = {}
    # OpenRouter attribution headers; harmless for other OpenAI-compatible hosts
    if app_url:
        headers["HTTP-Referer"] = app_url
    if app_title:
        headers["X-Title"] = app_title
    return AsyncOpenAI(api_key=api_key, base_url=base_url, default_headers=headers or None)


class OpenAIChatModel:
    """Calls an OpenAI-compatible chat completions endpoint (OpenRouter by default)."""

    def __init__(self, model: str, client: AsyncOpenAI) -> None:
        self._model = model
        self._client = client

    @property
    def name(self) -> str:
        return self._model

    async def complete(
        self, turns: Sequence[ChatTurn], tools: list[dict[str, Any]]
    ) -> ModelReply:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [t.to_openai() for t in turns],
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        resp = await self._client.chat.completions.create(**kwargs)
        if not resp.choices:
            raise ModelCallError(f"model {self._model} returned no choices")
        message = resp.choices[0].message
        calls: list[ToolCall] = []
        for tc in message.tool_calls or []:
            if getattr(tc, "type", "function") != "function":
                continue
            calls.append(
                ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
            )
        usage = resp.usage.model_dump() if resp.usage is not None else None
        return ModelReply(
            content=message.content,
            tool_calls=calls,
            model=getattr(resp, "model", None) or self._model,
            usage=usage,
        )


class UnconfiguredChatModel:
    """Selected when no API key is configured; every call fails with ModelCallError."""

    @property
    def name(self) -> str:
        return "unconfigured"

    async def complete(
        self, turns: Sequence[ChatTurn], tools: list[dict[str, Any]]
    ) -> ModelReply:
        raise ModelCallError("no model API key configured; set OPENROUTER_API_KEY")


class FallbackChatModel:
    """Try an ordered list of backends, moving to the next one on failure.

    Sits in front of the conversation loop so the loop itself never retries.
    """

    def __init__(self, backends: Sequence[ChatModel]) -> None:
        if not backends:
            raise ValueError("FallbackChatModel requires at least one backend")
        self._backends = list(backends)
        self._logger = get_json_logger("todoagent.model")

    @property
    def name(self) -> str:
        return ",".join(b.name for b in self._backends)

    @property
    def backends(self) -> list[ChatModel]:
        return list(self._backends)

    async def complete(
        self, turns: Sequence[ChatTurn], tools: list[dict[str, Any]]
    ) -> ModelReply:
        last_exc: Exception | None = None
        for backend in self._backends:
            try:
                return await backend.complete(turns, tools)
            except Exception as exc:  # noqa: BLE001
                last_exc = exc
                self._logger.warning(
                    "model backend failed, trying next",
                    extra={
                        "event": "model_fallback",
                        "model": backend.name,
                        "metadata": {"error": str(exc)[:200]},
                    },
                )
                get_metrics().increment("model_errors", {"model": backend.name})
        raise ModelCallError(f"all model backends failed ({self.name})") from last_exc


__all__ = [
    "ChatModel",
    "FallbackChatModel",
    "ModelCallError",
    "OPENROUTER_BASE_URL",
    "OpenAIChatModel",
    "UnconfiguredChatModel",
    "build_openai_client",
]
