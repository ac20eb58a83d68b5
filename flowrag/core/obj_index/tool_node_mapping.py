"""Object mapping specialised for tools."""

from typing import Iterable, Optional

from .object_node_mapping import ObjectNodeMapping
from ..schema import BaseNode
from ..tool import BaseTool


class ToolNodeMapping(ObjectNodeMapping[BaseTool]):
    """Key tools by name and index them by `"{name}: {description}"`."""

    def __init__(self, tools: Optional[Iterable[BaseTool]] = None):
        super().__init__(
            objects=tools,
            id_extractor=lambda tool: tool.metadata.name,
            text_extractor=lambda tool: f"{tool.metadata.name}: {tool.metadata.description}",
        )

    def to_node(self, obj: BaseTool) -> BaseNode:
        node = super().to_node(obj)
        node.set_metadata("name", obj.metadata.name)
        return node
