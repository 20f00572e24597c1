from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from todoagent.models.task import Task, TaskFilter
from todoagent.observability import Tracer, get_json_logger, get_metrics
from todoagent.store.task_store import TaskStore

from .registry import (
    AddTodoArgs,
    CompleteTodoArgs,
    DeleteTodoArgs,
    ListTodosArgs,
    ToolArguments,
    ToolArgumentsError,
    UnknownToolError,
    UpdateTodoArgs,
    parse_arguments,
)

_EMPTY_LIST_MESSAGES: dict[TaskFilter, str] = {
    "all": "You have no tasks currently.",
    "completed": "You have no completed tasks.",
    "pending": "You have no pending tasks.",
}


class TaskResolutionError(LookupError):
    """A task reference could not be resolved to exactly one task.

    ``str(exc)`` is a complete sentence suitable for the model and the user.
    """

    def __init__(self, message: str, candidates: list[Task] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.candidates = candidates or []


def _present(value: str | None) -> str | None:
    if value is None:
        return None
    v = value.strip()
    return v or None


def render_task_line(task: Task) -> str:
    box = "x" if task.is_completed else " "
    line = f"- [{box}] **{task.title}**"
    if task.description:
        line += f" _({task.description})_"
    return f"{line} `ID: {task.id}`"


def render_candidates(query: str, matches: list[Task]) -> str:
    lines = [f'Found multiple tasks matching "{query}". Please specify which one by ID:']
    lines.extend(f"- **{t.title}** (ID: {t.id})" for t in matches)
    return "\n".join(lines)


class ToolExecutor:
    """Runs validated tool calls against a user-scoped TaskStore.

    Every outcome is returned as a human-readable string: successes, ambiguous
    or missing references, and unexpected failures alike. Nothing raised by a
    tool reaches the conversation loop.
    """

    def __init__(self, store: TaskStore, *, tracer: Tracer | None = None) -> None:
        self._store = store
        self._logger = get_json_logger("todoagent.tools")
        self._tracer = tracer or Tracer(get_json_logger("todoagent.trace"))

    @property
    def store(self) -> TaskStore:
        return self._store

    async def execute(
        self, name: str, arguments: str | Mapping[str, Any] | None, user_id: str
    ) -> str:
        metrics = get_metrics()
        self._logger.info(
            "tool call",
            extra={"event": "tool_call", "tool": name, "user_id": user_id},
        )
        metrics.increment("tool_calls", {"tool": name})
        try:
            args = parse_arguments(name, arguments)
            with self._tracer.span(f"tool.{name}", {"user_id": user_id}):
                return await self._dispatch(args, user_id)
        except UnknownToolError:
            self._logger.warning(
                "unknown tool", extra={"event": "tool_unknown", "tool": name}
            )
            metrics.increment("tool_errors", {"tool": name})
            return f"Unknown tool: {name}"
        except TaskResolutionError as exc:
            self._logger.info(
                "tool reference unresolved",
                extra={
                    "event": "tool_unresolved",
                    "tool": name,
                    "metadata": {"candidates": len(exc.candidates)},
                },
            )
            return exc.message
        except ToolArgumentsError as exc:
            self._logger.warning(
                "invalid tool arguments",
                extra={
                    "event": "tool_invalid_arguments",
                    "tool": name,
                    "metadata": {"reason": exc.reason[:200]},
                },
            )
            metrics.increment("tool_errors", {"tool": name})
            return f"Error executing {name}: {exc}"
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "tool error",
                exc_info=True,
                extra={
                    "event": "tool_error",
                    "tool": name,
                    "metadata": {"error": str(exc)[:200]},
                },
            )
            metrics.increment("tool_errors", {"tool": name})
            return f"Error executing {name}: {exc}"

    async def _dispatch(self, args: ToolArguments, user_id: str) -> str:
        # DeleteTodoArgs subclasses CompleteTodoArgs, so test it first
        if isinstance(args, AddTodoArgs):
            return await self._add(args, user_id)
        if isinstance(args, ListTodosArgs):
            return await self._list(args, user_id)
        if isinstance(args, UpdateTodoArgs):
            return await self._update(args, user_id)
        if isinstance(args, DeleteTodoArgs):
            return await self._delete(args, user_id)
        if isinstance(args, CompleteTodoArgs):
            return await self._complete(args, user_id)
        raise UnknownToolError(type(args).__name__)

    async def resolve(
        self, user_id: str, task_id: str | None, reference: str | None, *, action: str
    ) -> str:
        """Return the id of the single task a call targets.

        An explicit id is trusted as-is and skips the search; scoping is
        enforced later by the store. A text reference must match exactly one
        of the user's tasks.
        """
        explicit = _present(task_id)
        if explicit is not None:
            return explicit
        query = _present(reference)
        if query is None:
            if action == "update":
                raise TaskResolutionError(
                    "Please provide either a task ID or the current title to update a task."
                )
            raise TaskResolutionError(
                f"Please provide either a task ID or title to {action} a task."
            )
        matches = await self._store.search_tasks(user_id, query)
        if not matches:
            raise TaskResolutionError(f'Could not find any task matching "{query}".')
        if len(matches) > 1:
            raise TaskResolutionError(render_candidates(query, matches), matches)
        return matches[0].id

    async def _add(self, args: AddTodoArgs, user_id: str) -> str:
        task = await self._store.create_task(user_id, args.title, args.description)
        return f"Created task: **{task.title}** (ID: {task.id})"

    async def _list(self, args: ListTodosArgs, user_id: str) -> str:
        tasks = await self._store.list_tasks(user_id, args.filter)
        if not tasks:
            return _EMPTY_LIST_MESSAGES[args.filter]
        return "\n".join(render_task_line(t) for t in tasks)

    async def _update(self, args: UpdateTodoArgs, user_id: str) -> str:
        target = await self.resolve(user_id, args.id, args.reference, action="update")
        if args.new_title is None and args.new_description is None:
            return "Please provide a new title or a new description to update the task."
        task = await self._store.update_task(
            user_id, target, title=args.new_title, description=args.new_description
        )
        if task is None:
            return "Task not found."
        return f"Updated task: **{task.title}**"

    async def _complete(self, args: CompleteTodoArgs, user_id: str) -> str:
        target = await self.resolve(user_id, args.id, args.reference, action="complete")
        task = await self._store.complete_task(user_id, target)
        if task is None:
            return "Task not found."
        return f"Completed: **{task.title}**"

    async def _delete(self, args: DeleteTodoArgs, user_id: str) -> str:
        target = await self.resolve(user_id, args.id, args.reference, action="delete")
        task = await self._store.delete_task(user_id, target)
        if task is None:
            return "Task not found."
        return f"Deleted: **{task.title}**"


__all__ = ["TaskResolutionError", "ToolExecutor", "render_candidates", "render_task_line"]
