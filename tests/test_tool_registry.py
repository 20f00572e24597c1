from __future__ import annotations

import pytest

from todoagent.tools.registry import (
    TOOL_NAMES,
    AddTodoArgs,
    CompleteTodoArgs,
    DeleteTodoArgs,
    ListTodosArgs,
    ToolArgumentsError,
    UnknownToolError,
    UpdateTodoArgs,
    parse_arguments,
    tool_declarations,
)


def test_declarations_cover_all_five_tools() -> None:
    decls = tool_declarations()
    names = [d["function"]["name"] for d in decls]
    assert names == ["add_todo", "list_todos", "update_todo", "complete_todo", "delete_todo"]
    assert tuple(names) == TOOL_NAMES
    for d in decls:
        assert d["type"] == "function"
        params = d["function"]["parameters"]
        assert params["type"] == "object"
        assert isinstance(params["properties"], dict)


def test_only_add_todo_requires_a_field() -> None:
    required = {
        d["function"]["name"]: d["function"]["parameters"]["required"]
        for d in tool_declarations()
    }
    assert required["add_todo"] == ["title"]
    assert all(required[n] == [] for n in TOOL_NAMES if n != "add_todo")


def test_list_filter_enum_is_declared() -> None:
    (decl,) = [d for d in tool_declarations() if d["function"]["name"] == "list_todos"]
    prop = decl["function"]["parameters"]["properties"]["filter"]
    assert prop["enum"] == ["all", "completed", "pending"]


def test_parse_each_tool_into_its_model() -> None:
    assert isinstance(parse_arguments("add_todo", '{"title": "Buy milk"}'), AddTodoArgs)
    assert isinstance(parse_arguments("list_todos", "{}"), ListTodosArgs)
    assert isinstance(parse_arguments("update_todo", {"id": "1", "new_title": "x"}), UpdateTodoArgs)
    complete = parse_arguments("complete_todo", {"title": "milk"})
    assert type(complete) is CompleteTodoArgs
    delete = parse_arguments("delete_todo", {"title": "milk"})
    assert isinstance(delete, DeleteTodoArgs)
    assert delete.reference == "milk"


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_empty_arguments_count_as_empty_object(raw: str | None) -> None:
    args = parse_arguments("list_todos", raw)
    assert isinstance(args, ListTodosArgs)
    assert args.filter == "all"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('{"filter": null}', "all"),
        ('{"filter": ""}', "all"),
        ('{"filter": "  "}', "all"),
        ('{"filter": "PENDING"}', "pending"),
        ('{"filter": " completed\\n"}', "completed"),
    ],
)
def test_list_filter_normalisation(raw: str, expected: str) -> None:
    args = parse_arguments("list_todos", raw)
    assert isinstance(args, ListTodosArgs)
    assert args.filter == expected


def test_numeric_ids_and_extra_keys_are_tolerated() -> None:
    args = parse_arguments("complete_todo", {"id": 42, "confidence": "high"})
    assert isinstance(args, CompleteTodoArgs)
    assert args.id == "42"


def test_update_reference_is_current_title() -> None:
    args = parse_arguments("update_todo", {"current_title": "milk", "new_title": "oat milk"})
    assert isinstance(args, UpdateTodoArgs)
    assert args.reference == "milk"
    assert args.new_description is None


def test_malformed_json_raises_tool_arguments_error() -> None:
    with pytest.raises(ToolArgumentsError) as ei:
        parse_arguments("add_todo", "{not json")
    assert ei.value.tool == "add_todo"
    assert "malformed JSON" in str(ei.value)


def test_non_object_json_is_rejected() -> None:
    with pytest.raises(ToolArgumentsError, match="expected a JSON object"):
        parse_arguments("add_todo", "[1, 2]")


def test_missing_required_title_is_rejected() -> None:
    with pytest.raises(ToolArgumentsError) as ei:
        parse_arguments("add_todo", "{}")
    assert "title" in ei.value.reason


def test_invalid_filter_value_is_rejected() -> None:
    with pytest.raises(ToolArgumentsError):
        parse_arguments("list_todos", {"filter": "someday"})


def test_unknown_tool_raises() -> None:
    with pytest.raises(UnknownToolError):
        parse_arguments("rename_todo", "{}")
