"""Bijection between application objects and text nodes.

Each object is keyed by a stable id: an explicit `id_extractor`, else the
object's `get_id()` or `id`, else a generated uuid (remembered per object
instance). Its node text comes from an explicit `text_extractor`, else the
object's `get_description()` or `description`, else a JSON serialisation.
"""

import dataclasses
import json
import threading
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar
from uuid import uuid4

from pydantic import BaseModel

from ..exceptions import NotFoundError
from ..schema import BaseNode, TextNode

T = TypeVar("T")


def serialize_object(obj: Any) -> str:
    if isinstance(obj, BaseModel):
        return json.dumps(obj.model_dump(mode="json"), sort_keys=True, ensure_ascii=False)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return json.dumps(dataclasses.asdict(obj), sort_keys=True, ensure_ascii=False, default=str)
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, default=lambda o: getattr(o, "__dict__", str(o)))


class ObjectNodeMapping(Generic[T]):
    """Store `(id -> object)` and `(id -> node)` side by side.

    Example:
        mapping = ObjectNodeMapping[Tool](id_extractor=lambda t: t.name)
        node = mapping.to_node(tool)
        assert mapping.from_node(node) is tool   # once added
    """

    def __init__(
        self,
        objects: Optional[Iterable[T]] = None,
        id_extractor: Optional[Callable[[T], str]] = None,
        text_extractor: Optional[Callable[[T], str]] = None,
    ):
        self.id_extractor: Optional[Callable[[T], str]] = id_extractor
        self.text_extractor: Optional[Callable[[T], str]] = text_extractor
        self._objects: Dict[str, T] = {}
        self._nodes: Dict[str, BaseNode] = {}
        self._generated_ids: Dict[int, str] = {}
        self._lock = threading.RLock()

        for obj in objects or []:
            self.add_object(obj)

    def extract_id(self, obj: T) -> str:
        if self.id_extractor is not None:
            return str(self.id_extractor(obj))
        if callable(getattr(obj, "get_id", None)):
            return str(obj.get_id())
        if isinstance(obj, dict) and obj.get("id") is not None:
            return str(obj["id"])
        if getattr(obj, "id", None) is not None and not callable(obj.id):
            return str(obj.id)

        with self._lock:
            return self._generated_ids.setdefault(id(obj), str(uuid4()))

    def extract_text(self, obj: T) -> str:
        if self.text_extractor is not None:
            return self.text_extractor(obj)
        if callable(getattr(obj, "get_description", None)):
            return obj.get_description()
        if isinstance(getattr(obj, "description", None), str):
            return obj.description
        return serialize_object(obj)

    def to_node(self, obj: T) -> BaseNode:
        """Build the node for `obj` without storing it."""
        return TextNode(
            node_id=self.extract_id(obj),
            text=self.extract_text(obj),
            metadata={"object_type": type(obj).__name__},
        )

    def insert(self, obj: T, node: BaseNode):
        with self._lock:
            self._objects[node.node_id] = obj
            self._nodes[node.node_id] = node

    def add_object(self, obj: T) -> str:
        node = self.to_node(obj)
        self.insert(obj, node)
        return node.node_id

    def add_objects(self, objects: Iterable[T]) -> List[str]:
        return [self.add_object(obj) for obj in objects]

    def from_node(self, node: BaseNode) -> T:
        return self.get_object(node.node_id)

    def get_object(self, object_id: str) -> T:
        with self._lock:
            if object_id not in self._objects:
                raise NotFoundError(f"object id={object_id} not found")
            return self._objects[object_id]

    def get_node(self, object_id: str) -> BaseNode:
        with self._lock:
            if object_id not in self._nodes:
                raise NotFoundError(f"node id={object_id} not found")
            return self._nodes[object_id]

    def remove(self, object_id: str) -> T:
        with self._lock:
            if object_id not in self._objects:
                raise NotFoundError(f"object id={object_id} not found")
            self._nodes.pop(object_id, None)
            obj = self._objects.pop(object_id)
            self._generated_ids = {k: v for k, v in self._generated_ids.items() if v != object_id}
            return obj

    def get_objects(self) -> List[T]:
        with self._lock:
            return list(self._objects.values())

    def get_nodes(self) -> List[BaseNode]:
        with self._lock:
            return list(self._nodes.values())

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._objects.keys())

    def __contains__(self, object_id: str) -> bool:
        with self._lock:
            return object_id in self._objects

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)
