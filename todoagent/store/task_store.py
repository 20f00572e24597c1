from __future__ import annotations

from todoagent.models.task import (
    Task,
    TaskFilter,
    filter_tasks,
    validate_description,
    validate_title,
)


class TaskStore:
    """User-scoped async Task store interface.

    Every call takes the owning ``user_id``. Implementations must never return
    or mutate a task owned by another user: lookups by a foreign id behave
    exactly like lookups of a missing id and yield ``None``.

    Listing is newest first (``created_at`` descending) and stable while the
    underlying data is unchanged.
    """

    async def create_task(
        self, user_id: str, title: str, description: str | None = None
    ) -> Task:  # pragma: no cover - interface only
        raise NotImplementedError

    async def get_task(self, user_id: str, task_id: str) -> Task | None:  # pragma: no cover
        raise NotImplementedError

    async def list_tasks(
        self, user_id: str, task_filter: TaskFilter = "all"
    ) -> list[Task]:  # pragma: no cover - interface only
        raise NotImplementedError

    async def update_task(
        self,
        user_id: str,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Task | None:  # pragma: no cover - interface only
        raise NotImplementedError

    async def set_completed(
        self, user_id: str, task_id: str, completed: bool
    ) -> Task | None:  # pragma: no cover - interface only
        raise NotImplementedError

    async def delete_task(self, user_id: str, task_id: str) -> Task | None:  # pragma: no cover
        raise NotImplementedError

    async def search_tasks(self, user_id: str, query: str) -> list[Task]:
        tasks = await self.list_tasks(user_id, "all")
        return [t for t in tasks if t.matches(query)]

    async def complete_task(self, user_id: str, task_id: str) -> Task | None:
        return await self.set_completed(user_id, task_id, True)

    async def aclose(self) -> None:
        return None


def apply_update(task: Task, *, title: str | None, description: str | None) -> Task:
    """Validate and apply a title/description change in place."""
    if title is not None:
        task.title = validate_title(title)
    if description is not None:
        task.description = validate_description(description)
    task.touch()
    return task


class InMemoryTaskStore(TaskStore):
    """Dict-backed store used by tests, the CLI and local demos."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        # insertion sequence breaks created_at ties deterministically
        self._seq: dict[str, int] = {}
        self._counter = 0

    def _owned(self, user_id: str, task_id: str) -> Task | None:
        task = self._tasks.get(task_id)
        if task is None or task.user_id != user_id:
            return None
        return task

    async def create_task(self, user_id: str, title: str, description: str | None = None) -> Task:
        task = Task(
            user_id=user_id,
            title=validate_title(title),
            description=validate_description(description),
        )
        self._counter += 1
        self._tasks[task.id] = task
        self._seq[task.id] = self._counter
        return task.model_copy()

    async def get_task(self, user_id: str, task_id: str) -> Task | None:
        task = self._owned(user_id, task_id)
        return task.model_copy() if task is not None else None

    async def list_tasks(self, user_id: str, task_filter: TaskFilter = "all") -> list[Task]:
        owned = [t for t in self._tasks.values() if t.user_id == user_id]
        owned.sort(key=lambda t: (t.created_at, self._seq[t.id]), reverse=True)
        return [t.model_copy() for t in filter_tasks(owned, task_filter)]

    async def update_task(
        self,
        user_id: str,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
    ) -> Task | None:
        task = self._owned(user_id, task_id)
        if task is None:
            return None
        # Validate on a copy so a rejected update leaves the stored task untouched
        updated = apply_update(task.model_copy(), title=title, description=description)
        self._tasks[task_id] = updated
        return updated.model_copy()

    async def set_completed(self, user_id: str, task_id: str, completed: bool) -> Task | None:
        task = self._owned(user_id, task_id)
        if task is None:
            return None
        task.is_completed = completed
        task.touch()
        return task.model_copy()

    async def delete_task(self, user_id: str, task_id: str) -> Task | None:
        task = self._owned(user_id, task_id)
        if task is None:
            return None
        del self._tasks[task_id]
        self._seq.pop(task_id, None)
        return task


__all__ = ["InMemoryTaskStore", "TaskStore", "apply_update"]
