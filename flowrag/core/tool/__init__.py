"""Tools: `BaseTool` interface and `FunctionTool` wrapper."""

from .base_tool import BaseTool
from .function_tool import FunctionTool, build_parameters_schema

__all__ = [
    "BaseTool",
    "FunctionTool",
    "build_parameters_schema",
]
