"""Cosine-similarity retrieval over an object mapping."""

from typing import Dict, Generic, List, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from .object_node_mapping import ObjectNodeMapping
from ..context import CancelToken
from ..embedding_model import BaseEmbeddingModel
from ..enumeration import CBEventType, EventPayload, MetadataMode
from ..exceptions import EmbedFailedError
from ..schema import BaseNode
from ..utils import ReadWriteLock, Timer, cosine_similarity

T = TypeVar("T")


class ObjectRetriever(Generic[T]):
    """Embed mapped nodes and rank objects by cosine similarity to a query.

    Results are ordered by score descending, then id ascending. The
    embedding table is guarded by a reader-writer lock: retrievals read
    concurrently, index updates are swapped in under the write lock.
    """

    def __init__(
        self,
        mapping: ObjectNodeMapping[T],
        embed_model: BaseEmbeddingModel,
        top_k: int = 3,
        callback_manager=None,
    ):
        self.mapping: ObjectNodeMapping[T] = mapping
        self.embed_model: BaseEmbeddingModel = embed_model
        self.top_k: int = top_k
        self.callback_manager = callback_manager
        self._embeddings: Dict[str, List[float]] = {}
        self._lock = ReadWriteLock()

    def embed_nodes(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> Dict[str, List[float]]:
        """Embed node contents (metadata mode NONE) without touching the table.

        Raises:
            EmbedFailedError: Carries the id of the node that failed.
            CancelledError: The token tripped between two nodes.
        """
        embeddings: Dict[str, List[float]] = {}
        for node in nodes:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            try:
                embeddings[node.node_id] = self.embed_model.embed_text(node.get_content(MetadataMode.NONE))
            except Exception as e:
                raise EmbedFailedError(f"failed to embed object node_id={node.node_id}", cause=e, node_id=node.node_id) from e
        return embeddings

    def set_embeddings(self, embeddings: Dict[str, List[float]], replace: bool = False):
        with self._lock.write_lock():
            if replace:
                self._embeddings.clear()
            self._embeddings.update(embeddings)

    def remove(self, object_id: str):
        with self._lock.write_lock():
            self._embeddings.pop(object_id, None)

    def build_index(self, cancel_token: Optional[CancelToken] = None):
        """(Re-)embed every node of the mapping and replace the table atomically."""
        nodes = self.mapping.get_nodes()
        with Timer(f"build_index size={len(nodes)}"):
            embeddings = self.embed_nodes(nodes, cancel_token)
        self.set_embeddings(embeddings, replace=True)
        logger.info(f"object index built with {len(embeddings)} embeddings")

    def _score(self, query: str) -> List[Tuple[str, float]]:
        query_embedding = self.embed_model.embed_query(query)
        with self._lock.read_lock():
            items = list(self._embeddings.items())

        scored = [(object_id, cosine_similarity(query_embedding, vector)) for object_id, vector in items]
        scored.sort(key=lambda x: (-x[1], x[0]))
        return scored

    def retrieve_with_scores(self, query: str, k: Optional[int] = None) -> List[Tuple[T, float]]:
        """Top `k` `(object, score)` pairs; `k` defaults to `top_k`."""
        k = self.top_k if k is None else k

        def _retrieve() -> List[Tuple[T, float]]:
            results: List[Tuple[T, float]] = []
            for object_id, score in self._score(query):
                if len(results) >= k:
                    break
                if object_id in self.mapping:
                    results.append((self.mapping.get_object(object_id), score))
            return results

        if self.callback_manager is None:
            return _retrieve()

        with self.callback_manager.event(CBEventType.RETRIEVE, {EventPayload.QUERY_STR: query}) as event:
            results = _retrieve()
            event.on_end({EventPayload.TOP_K: k, EventPayload.RESPONSE: [score for _, score in results]})
            return results

    def retrieve_objects(self, query: str, k: Optional[int] = None) -> List[T]:
        return [obj for obj, _ in self.retrieve_with_scores(query, k)]

    def with_top_k(self, top_k: int) -> "ObjectRetriever[T]":
        """A retriever sharing this one's mapping and embedding table."""
        retriever = ObjectRetriever(self.mapping, self.embed_model, top_k=top_k, callback_manager=self.callback_manager)
        retriever._embeddings = self._embeddings
        retriever._lock = self._lock
        return retriever
