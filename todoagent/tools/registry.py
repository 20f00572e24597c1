from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from todoagent.models.task import TaskFilter


class ToolArgumentsError(ValueError):
    """Tool arguments failed structural validation against the declared schema."""

    def __init__(self, tool: str, reason: str) -> None:
        super().__init__(f"invalid arguments for {tool}: {reason}")
        self.tool = tool
        self.reason = reason


class UnknownToolError(KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name


class _ToolArgs(BaseModel):
    # Models occasionally send numeric ids or extra keys; accept both
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True, frozen=True)

    tool: ClassVar[str]


class AddTodoArgs(_ToolArgs):
    tool: ClassVar[str] = "add_todo"

    title: str
    description: str | None = None


class ListTodosArgs(_ToolArgs):
    tool: ClassVar[str] = "list_todos"

    filter: TaskFilter = "all"

    @field_validator("filter", mode="before")
    @classmethod
    def _default_filter(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
        if value is None or value == "":
            return "all"
        return value


class UpdateTodoArgs(_ToolArgs):
    tool: ClassVar[str] = "update_todo"

    id: str | None = None
    current_title: str | None = None
    new_title: str | None = None
    new_description: str | None = None

    @property
    def reference(self) -> str | None:
        return self.current_title


class CompleteTodoArgs(_ToolArgs):
    tool: ClassVar[str] = "complete_todo"

    id: str | None = None
    title: str | None = None

    @property
    def reference(self) -> str | None:
        return self.title


class DeleteTodoArgs(CompleteTodoArgs):
    tool: ClassVar[str] = "delete_todo"


ToolArguments = AddTodoArgs | ListTodosArgs | UpdateTodoArgs | CompleteTodoArgs | DeleteTodoArgs


@dataclass(frozen=True, slots=True)
class ToolSpec:
    name: str
    description: str
    parameters: dict[str, Any]
    args_model: type[_ToolArgs]

    def declaration(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def _string(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "string", "description": description, **extra}


_TOOLS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="add_todo",
        description="Add a new task to the todo list.",
        parameters={
            "type": "object",
            "properties": {
                "title": _string("The title of the task"),
                "description": _string("Optional description of the task"),
            },
            "required": ["title"],
        },
        args_model=AddTodoArgs,
    ),
    ToolSpec(
        name="list_todos",
        description="List all tasks. Can filter by status.",
        parameters={
            "type": "object",
            "properties": {
                "filter": _string(
                    "Filter tasks by status", enum=["all", "completed", "pending"]
                ),
            },
            "required": [],
        },
        args_model=ListTodosArgs,
    ),
    ToolSpec(
        name="update_todo",
        description=(
            "Update a task. You can identify the task by its ID OR by providing its "
            "current title (fuzzy match)."
        ),
        parameters={
            "type": "object",
            "properties": {
                "id": _string("The exact ID of the task (preferred)"),
                "current_title": _string("The current title of the task to find (fuzzy search)"),
                "new_title": _string("The new title for the task"),
                "new_description": _string("The new description for the task"),
            },
            "required": [],
        },
        args_model=UpdateTodoArgs,
    ),
    ToolSpec(
        name="complete_todo",
        description="Mark a task as completed. Identify by ID or Title.",
        parameters={
            "type": "object",
            "properties": {
                "id": _string("The exact ID of the task"),
                "title": _string("The title of the task to find (fuzzy search)"),
            },
            "required": [],
        },
        args_model=CompleteTodoArgs,
    ),
    ToolSpec(
        name="delete_todo",
        description="Delete a task. Identify by ID or Title.",
        parameters={
            "type": "object",
            "properties": {
                "id": _string("The exact ID of the task"),
                "title": _string("The title of the task to find (fuzzy search)"),
            },
            "required": [],
        },
        args_model=DeleteTodoArgs,
    ),
)

TOOLS: Mapping[str, ToolSpec] = {spec.name: spec for spec in _TOOLS}
TOOL_NAMES: tuple[str, ...] = tuple(TOOLS)


def get_tool(name: str) -> ToolSpec:
    try:
        return TOOLS[name]
    except KeyError:
        raise UnknownToolError(name) from None


def tool_declarations() -> list[dict[str, Any]]:
    """Return the OpenAI chat-completions ``tools`` payload for every tool."""
    return [spec.declaration() for spec in _TOOLS]


def _format_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


def parse_arguments(name: str, raw: str | Mapping[str, Any] | None) -> ToolArguments:
    """Validate raw model-supplied arguments into the tool's argument model.

    ``raw`` may be the JSON text emitted by the model or an already-decoded
    mapping. Empty input counts as an empty object.
    """
    spec = get_tool(name)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        data: Any = {}
    elif isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ToolArgumentsError(name, f"malformed JSON ({exc.msg})") from exc
    else:
        data = dict(raw)
    if not isinstance(data, dict):
        raise ToolArgumentsError(name, "expected a JSON object")
    try:
        return spec.args_model.model_validate(data)  # type: ignore[return-value]
    except ValidationError as exc:
        raise ToolArgumentsError(name, _format_validation_error(exc)) from exc


__all__ = [
    "AddTodoArgs",
    "CompleteTodoArgs",
    "DeleteTodoArgs",
    "ListTodosArgs",
    "TOOLS",
    "TOOL_NAMES",
    "ToolArguments",
    "ToolArgumentsError",
    "ToolSpec",
    "UnknownToolError",
    "UpdateTodoArgs",
    "get_tool",
    "parse_arguments",
    "tool_declarations",
]
