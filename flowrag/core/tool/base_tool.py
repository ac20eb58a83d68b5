"""Tool collaborator interface."""

from abc import ABC, abstractmethod
from typing import Any

from ..schema import ToolMetadata, ToolOutput


class BaseTool(ABC):
    """A callable capability described by `ToolMetadata`."""

    def __init__(self, metadata: ToolMetadata):
        self._metadata: ToolMetadata = metadata

    @property
    def metadata(self) -> ToolMetadata:
        return self._metadata

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def description(self) -> str:
        return self._metadata.description

    @abstractmethod
    def call(self, tool_input: Any = None, **kwargs) -> ToolOutput:
        """Run the tool on `tool_input` and wrap the result."""

    def __call__(self, tool_input: Any = None, **kwargs) -> ToolOutput:
        return self.call(tool_input, **kwargs)
