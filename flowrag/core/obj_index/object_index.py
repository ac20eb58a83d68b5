"""Object index facade: mapping plus retriever kept in step."""

import threading
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

from loguru import logger

from .object_node_mapping import ObjectNodeMapping
from .object_retriever import ObjectRetriever
from ..context import CancelToken
from ..embedding_model import BaseEmbeddingModel

T = TypeVar("T")


class ObjectIndex(Generic[T]):
    """Store objects and retrieve them by similarity of their descriptions.

    Every entry is the triple `(object, node, embedding)` under one id.
    `add` embeds the new objects first and only then publishes all three,
    so a failed embedding leaves the index unchanged.
    """

    def __init__(
        self,
        embed_model: BaseEmbeddingModel,
        mapping: Optional[ObjectNodeMapping[T]] = None,
        top_k: int = 3,
        id_extractor: Optional[Callable[[T], str]] = None,
        text_extractor: Optional[Callable[[T], str]] = None,
        callback_manager=None,
    ):
        if mapping is None:
            mapping = ObjectNodeMapping(id_extractor=id_extractor, text_extractor=text_extractor)
        self.mapping: ObjectNodeMapping[T] = mapping
        self.retriever: ObjectRetriever[T] = ObjectRetriever(
            self.mapping,
            embed_model,
            top_k=top_k,
            callback_manager=callback_manager,
        )
        self._lock = threading.Lock()

        if len(self.mapping):
            self.retriever.build_index()

    @classmethod
    def from_objects(cls, objects: Iterable[T], embed_model: BaseEmbeddingModel, **kwargs) -> "ObjectIndex[T]":
        index = cls(embed_model=embed_model, **kwargs)
        index.add(*objects)
        return index

    def add(self, *objects: T, cancel_token: Optional[CancelToken] = None) -> List[str]:
        """Add objects, embedding only the new ones; returns their ids."""
        nodes = [self.mapping.to_node(obj) for obj in objects]
        embeddings = self.retriever.embed_nodes(nodes, cancel_token)

        with self._lock:
            for obj, node in zip(objects, nodes):
                self.mapping.insert(obj, node)
            self.retriever.set_embeddings(embeddings)

        logger.debug(f"object index added {len(nodes)} objects, total={len(self.mapping)}")
        return [node.node_id for node in nodes]

    def retrieve(self, query: str, k: Optional[int] = None) -> List[T]:
        return self.retriever.retrieve_objects(query, k)

    def get(self, object_id: str) -> T:
        return self.mapping.get_object(object_id)

    def all(self) -> List[T]:
        return self.mapping.get_objects()

    def remove(self, object_id: str) -> T:
        with self._lock:
            obj = self.mapping.remove(object_id)
            self.retriever.remove(object_id)
        return obj

    def as_retriever(self, top_k: Optional[int] = None) -> ObjectRetriever[T]:
        return self.retriever.with_top_k(top_k if top_k is not None else self.retriever.top_k)

    def __len__(self) -> int:
        return len(self.mapping)
