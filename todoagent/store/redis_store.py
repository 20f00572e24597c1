from __future__ import annotations

import json
from typing import cast

import redis.asyncio as aioredis

from todoagent.models.task import (
    Task,
    TaskFilter,
    filter_tasks,
    validate_description,
    validate_title,
)

from .task_store import TaskStore, apply_update


class RedisTaskStore(TaskStore):
    """Redis-backed Task store.

    Data structures:
    - Hash per task: key `{prefix}:task:{id}` with field `json`
    - Sorted set per user for ordering by `created_at`:
      key `{prefix}:user:{user_id}` with score=created_at epoch seconds, member=task_id

    The client is created per store instance and owns its connection pool;
    call ``aclose()`` when the hosting process shuts down.
    """

    def __init__(self, *, url: str, key_prefix: str = "todo") -> None:
        self._redis: aioredis.Redis = aioredis.Redis.from_url(url)
        self._prefix = key_prefix.rstrip(":")

    # key helpers
    def _task_key(self, task_id: str) -> str:
        return f"{self._prefix}:task:{task_id}"

    def _user_key(self, user_id: str) -> str:
        return f"{self._prefix}:user:{user_id}"

    @staticmethod
    def _dump(task: Task) -> str:
        return json.dumps(task.model_dump(mode="json"), separators=(",", ":"))

    async def _load(self, task_id: str) -> Task | None:
        raw = cast(bytes | None, await self._redis.hget(self._task_key(task_id), "json"))
        if raw is None:
            return None
        return Task.model_validate(json.loads(raw.decode("utf-8")))

    async def _save(self, task: Task) -> None:
        await self._redis.hset(self._task_key(task.id), mapping={"json": self._dump(task)})

    async def create_task(self, user_id: str, title: str, description: str | None = None) -> Task:
        task = Task(
            user_id=user_id,
            title=validate_title(title),
            description=validate_description(description),
        )
        async with self._redis.pipeline(transaction=True) as p:
            p.hset(self._task_key(task.id), mapping={"json": self._dump(task)})
            p.zadd(self._user_key(user_id), {task.id: task.created_at.timestamp()})
            await p.execute()
        return task

    async def get_task(self, user_id: str, task_id: str) -> Task | None:
        task = await self._load(task_id)
        if task is None or task.user_id != user_id:
            return None
        return task

    async def list_tasks(self, user_id: str, task_filter: TaskFilter = "all") -> list[Task]:
        ids_bytes = cast(list[bytes], await self._redis.zrevrange(self._user_key(user_id), 0, -1))
        result: list[Task] = []
        for raw_id in ids_bytes:
            t = await self.get_task(user_id, raw_id.decode("utf-8"))
            if t is not None:
                result.append(t)
        return filter_tasks(result, task_filter)

    async def update_task(
        self,
        user_id: str,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Task | None:
        current = await self.get_task(user_id, task_id)
        if current is None:
            return None
        apply_update(current, title=title, description=description)
        await self._save(current)
        return current

    async def set_completed(self, user_id: str, task_id: str, completed: bool) -> Task | None:
        current = await self.get_task(user_id, task_id)
        if current is None:
            return None
        current.is_completed = completed
        current.touch()
        await self._save(current)
        return current

    async def delete_task(self, user_id: str, task_id: str) -> Task | None:
        task = await self.get_task(user_id, task_id)
        if task is None:
            return None
        async with self._redis.pipeline(transaction=True) as p:
            p.delete(self._task_key(task_id))
            p.zrem(self._user_key(user_id), task_id)
            await p.execute()
        return task

    async def aclose(self) -> None:
        await self._redis.aclose()


__all__ = ["RedisTaskStore"]
