from __future__ import annotations

import datetime
import uuid
from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    """One model-emitted tool invocation; ``arguments`` is the raw JSON text."""

    id: str
    name: str
    arguments: str = "{}"


class ChatTurn(BaseModel):
    """A single entry in the conversation sent to the model."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    def to_openai(self) -> dict[str, Any]:
        msg: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.role == "tool":
            msg["tool_call_id"] = self.tool_call_id
        if self.role == "assistant" and self.tool_calls:
            msg["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return msg


class ModelReply(BaseModel):
    content: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    model: str | None = None
    usage: dict[str, Any] | None = None


class AgentReply(BaseModel):
    """Outcome of one agent invocation."""

    text: str
    iterations: int = 0
    tool_calls: int = 0
    capped: bool = False
    model: str | None = None


class Conversation(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    title: str = "New Chat"
    created_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )
    updated_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )


class StoredMessage(BaseModel):
    """A persisted user or assistant turn shown in chat history."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    conversation_id: str
    user_id: str
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )

    def to_turn(self) -> ChatTurn:
        return ChatTurn(role=self.role, content=self.content)


__all__ = [
    "AgentReply",
    "ChatTurn",
    "Conversation",
    "ModelReply",
    "StoredMessage",
    "ToolCall",
]
