"""Wrap a plain Python function as a tool."""

import inspect
import json
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from .base_tool import BaseTool
from ..schema import ToolMetadata, ToolOutput

_JSON_TYPES = {str: "string", int: "integer", float: "number", bool: "boolean", list: "array", dict: "object"}


def build_parameters_schema(fn: Callable) -> dict:
    """JSON-schema `parameters` from the function signature; unannotated params are strings."""
    properties: Dict[str, dict] = {}
    required: List[str] = []
    for name, param in inspect.signature(fn).parameters.items():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[name] = {"type": _JSON_TYPES.get(param.annotation, "string")}
        if param.default is param.empty:
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


class FunctionTool(BaseTool):
    """Tool backed by a Python callable.

    Dict input is passed as keyword arguments (an `input` key feeds a
    single-parameter function); any other input is passed positionally.
    """

    def __init__(self, fn: Callable[..., Any], metadata: ToolMetadata):
        super().__init__(metadata)
        self.fn: Callable[..., Any] = fn
        self._param_names: List[str] = list(metadata.parameters.get("properties", {}).keys())

    @classmethod
    def from_defaults(
        cls,
        fn: Callable[..., Any],
        name: Optional[str] = None,
        description: Optional[str] = None,
        return_direct: bool = False,
        parameters: Optional[dict] = None,
    ) -> "FunctionTool":
        name = name or fn.__name__
        description = description or (inspect.getdoc(fn) or f"Function: {name}")
        metadata = ToolMetadata(
            name=name,
            description=description,
            parameters=parameters or build_parameters_schema(fn),
            return_direct=return_direct,
        )
        return cls(fn=fn, metadata=metadata)

    def call(self, tool_input: Any = None, **kwargs) -> ToolOutput:
        if isinstance(tool_input, dict):
            arguments = dict(tool_input)
            if len(self._param_names) == 1 and self._param_names[0] not in arguments and "input" in arguments:
                arguments = {self._param_names[0]: arguments["input"]}
            result = self.fn(**arguments, **kwargs)
        elif tool_input is None:
            result = self.fn(**kwargs)
        else:
            result = self.fn(tool_input, **kwargs)

        logger.debug(f"tool={self.name} input={tool_input} output={result}")
        if isinstance(result, str):
            content = result
        else:
            content = json.dumps(result, ensure_ascii=False, default=str)
        return ToolOutput(content=content, tool_name=self.name, raw_input=tool_input, raw_output=result)
