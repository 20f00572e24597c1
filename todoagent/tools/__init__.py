from .executor import TaskResolutionError, ToolExecutor
from .registry import TOOL_NAMES, ToolArgumentsError, parse_arguments, tool_declarations

__all__ = [
    "TOOL_NAMES",
    "TaskResolutionError",
    "ToolArgumentsError",
    "ToolExecutor",
    "parse_arguments",
    "tool_declarations",
]
