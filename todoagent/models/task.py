from __future__ import annotations

import datetime as _dt
import uuid
from typing import Literal

from pydantic import BaseModel, Field

TaskFilter = Literal["all", "completed", "pending"]

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 1000


def _utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.UTC)


class Task(BaseModel):
    """A user-owned todo task.

    - ``user_id`` scopes every read and write; a task never changes owner
    - ``updated_at`` is refreshed by the store on every mutation
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    title: str
    description: str | None = None
    is_completed: bool = False
    created_at: _dt.datetime = Field(default_factory=_utcnow)
    updated_at: _dt.datetime = Field(default_factory=_utcnow)

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match over title or description."""
        needle = query.lower()
        if needle in self.title.lower():
            return True
        return bool(self.description) and needle in (self.description or "").lower()

    def touch(self) -> None:
        self.updated_at = _utcnow()


def validate_title(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("Title must be a string.")
    title = value.strip()
    if not title:
        raise ValueError("Title is required.")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValueError(f"Title must be less than {TITLE_MAX_LENGTH} characters.")
    return title


def validate_description(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("Description must be a string.")
    if len(value) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(f"Description must be less than {DESCRIPTION_MAX_LENGTH} characters.")
    return value or None


def filter_tasks(tasks: list[Task], task_filter: TaskFilter = "all") -> list[Task]:
    if task_filter == "completed":
        return [t for t in tasks if t.is_completed]
    if task_filter == "pending":
        return [t for t in tasks if not t.is_completed]
    return list(tasks)


__all__ = [
    "DESCRIPTION_MAX_LENGTH",
    "TITLE_MAX_LENGTH",
    "Task",
    "TaskFilter",
    "filter_tasks",
    "validate_description",
    "validate_title",
]
