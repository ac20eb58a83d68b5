"""Tool description and tool output schema."""

from typing import Any

from pydantic import BaseModel, Field


class ToolMetadata(BaseModel):
    """Name, description and JSON-schema parameters of a callable tool."""

    name: str = Field(default="")
    description: str = Field(default="")
    parameters: dict = Field(default_factory=lambda: {"type": "object", "properties": {}, "required": []})
    return_direct: bool = Field(default=False)


class ToolOutput(BaseModel):
    """Result of a tool invocation."""

    content: str = Field(default="")
    tool_name: str = Field(default="")
    raw_input: Any = Field(default=None)
    raw_output: Any = Field(default=None)
    is_error: bool = Field(default=False)
