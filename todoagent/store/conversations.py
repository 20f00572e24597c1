from __future__ import annotations

import datetime as _dt
import json
from typing import Literal, cast

import redis.asyncio as aioredis

from todoagent.models.chat import Conversation, StoredMessage

Role = Literal["user", "assistant"]


class ConversationStore:
    """Chat history persisted per user and conversation.

    History is stored for display and for feeding prior turns back to the
    agent; only user and assistant turns are kept, never tool turns.
    """

    async def create_conversation(
        self, user_id: str, title: str = "New Chat"
    ) -> Conversation:  # pragma: no cover - interface only
        raise NotImplementedError

    async def list_conversations(
        self, user_id: str
    ) -> list[Conversation]:  # pragma: no cover - interface only
        raise NotImplementedError

    async def add_message(
        self, user_id: str, conversation_id: str, role: Role, content: str
    ) -> StoredMessage:  # pragma: no cover - interface only
        raise NotImplementedError

    async def get_history(
        self, user_id: str, conversation_id: str
    ) -> list[StoredMessage]:  # pragma: no cover - interface only
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class InMemoryConversationStore(ConversationStore):
    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._messages: dict[tuple[str, str], list[StoredMessage]] = {}

    async def create_conversation(self, user_id: str, title: str = "New Chat") -> Conversation:
        conv = Conversation(user_id=user_id, title=title or "New Chat")
        self._conversations[conv.id] = conv
        return conv.model_copy()

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        owned = [c for c in self._conversations.values() if c.user_id == user_id]
        owned.sort(key=lambda c: c.created_at, reverse=True)
        return [c.model_copy() for c in owned]

    async def add_message(
        self, user_id: str, conversation_id: str, role: Role, content: str
    ) -> StoredMessage:
        msg = StoredMessage(
            conversation_id=conversation_id, user_id=user_id, role=role, content=content
        )
        self._messages.setdefault((user_id, conversation_id), []).append(msg)
        conv = self._conversations.get(conversation_id)
        # Messages may reference a conversation that was never created explicitly
        if conv is not None and conv.user_id == user_id:
            conv.updated_at = msg.created_at
        return msg

    async def get_history(self, user_id: str, conversation_id: str) -> list[StoredMessage]:
        return list(self._messages.get((user_id, conversation_id), []))


class RedisConversationStore(ConversationStore):
    """Redis-backed history.

    Data structures:
    - Hash per conversation: key `{prefix}:conv:{id}` with field `json`
    - Sorted set per user: key `{prefix}:convs:{user_id}` scored by created_at
    - List per (user, conversation): key `{prefix}:msgs:{user_id}:{conversation_id}`
    """

    def __init__(self, *, url: str, key_prefix: str = "todo") -> None:
        self._redis: aioredis.Redis = aioredis.Redis.from_url(url)
        self._prefix = key_prefix.rstrip(":")

    def _conv_key(self, conversation_id: str) -> str:
        return f"{self._prefix}:conv:{conversation_id}"

    def _user_convs_key(self, user_id: str) -> str:
        return f"{self._prefix}:convs:{user_id}"

    def _msgs_key(self, user_id: str, conversation_id: str) -> str:
        return f"{self._prefix}:msgs:{user_id}:{conversation_id}"

    async def _load_conversation(self, conversation_id: str) -> Conversation | None:
        raw = cast(bytes | None, await self._redis.hget(self._conv_key(conversation_id), "json"))
        if raw is None:
            return None
        return Conversation.model_validate(json.loads(raw.decode("utf-8")))

    async def _save_conversation(self, conv: Conversation) -> None:
        payload = json.dumps(conv.model_dump(mode="json"), separators=(",", ":"))
        await self._redis.hset(self._conv_key(conv.id), mapping={"json": payload})

    async def create_conversation(self, user_id: str, title: str = "New Chat") -> Conversation:
        conv = Conversation(user_id=user_id, title=title or "New Chat")
        payload = json.dumps(conv.model_dump(mode="json"), separators=(",", ":"))
        async with self._redis.pipeline(transaction=True) as p:
            p.hset(self._conv_key(conv.id), mapping={"json": payload})
            p.zadd(self._user_convs_key(user_id), {conv.id: conv.created_at.timestamp()})
            await p.execute()
        return conv

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        ids_bytes = cast(
            list[bytes], await self._redis.zrevrange(self._user_convs_key(user_id), 0, -1)
        )
        result: list[Conversation] = []
        for raw_id in ids_bytes:
            conv = await self._load_conversation(raw_id.decode("utf-8"))
            if conv is not None and conv.user_id == user_id:
                result.append(conv)
        return result

    async def add_message(
        self, user_id: str, conversation_id: str, role: Role, content: str
    ) -> StoredMessage:
        msg = StoredMessage(
            conversation_id=conversation_id, user_id=user_id, role=role, content=content
        )
        payload = json.dumps(msg.model_dump(mode="json"), separators=(",", ":"))
        await self._redis.rpush(self._msgs_key(user_id, conversation_id), payload)
        conv = await self._load_conversation(conversation_id)
        if conv is not None and conv.user_id == user_id:
            conv.updated_at = _dt.datetime.now(_dt.UTC)
            await self._save_conversation(conv)
        return msg

    async def get_history(self, user_id: str, conversation_id: str) -> list[StoredMessage]:
        raw_items = cast(
            list[bytes], await self._redis.lrange(self._msgs_key(user_id, conversation_id), 0, -1)
        )
        return [StoredMessage.model_validate(json.loads(b.decode("utf-8"))) for b in raw_items]

    async def aclose(self) -> None:
        await self._redis.aclose()


__all__ = ["ConversationStore", "InMemoryConversationStore", "RedisConversationStore"]
