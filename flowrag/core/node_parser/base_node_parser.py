"""Base class of node parsers.

A node parser turns documents (or larger nodes) into ordered child nodes.
Subclasses only decide how a parent's text is split; this base class
builds the child nodes and establishes their invariants:

- parent metadata is merged into each child for keys the child does not set
- SOURCE points at the parent
- character spans are located in the parent text, monotonically
- `chunk_index` / `chunk_count` and `source_doc_id` / `source_node_id` metadata
  when `include_metadata` is set, hidden from embed and llm rendering
- PREVIOUS / NEXT between adjacent siblings, set last so the related-node
  snapshots carry final metadata and hashes
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence
from uuid import uuid4

from loguru import logger
from tqdm import tqdm

from ..enumeration import CBEventType, EventPayload, NodeRelationship
from ..schema import BaseNode, Document, TextNode
from ..utils import Timer


class BaseNodeParser(ABC):
    """Split parents into sibling nodes with relationships and metadata.

    Args:
        include_metadata: Copy parent metadata into children.
        include_prev_next_rel: Link adjacent siblings with PREVIOUS / NEXT.
        id_func: Optional id generator for child nodes. uuid4 when omitted.
        callback_manager: Optional `CallbackManager` receiving `node_parsing` events.
        show_progress: Show a tqdm progress bar over parents.
    """

    def __init__(
        self,
        include_metadata: bool = True,
        include_prev_next_rel: bool = True,
        id_func: Optional[Callable[[], str]] = None,
        callback_manager=None,
        show_progress: bool = False,
    ):
        self.include_metadata: bool = include_metadata
        self.include_prev_next_rel: bool = include_prev_next_rel
        self.id_func: Callable[[], str] = id_func or (lambda: str(uuid4()))
        self.callback_manager = callback_manager
        self.show_progress: bool = show_progress

    @abstractmethod
    def split_node_text(self, node: BaseNode) -> List[str]:
        """Return the chunk texts of one parent, in order."""

    def get_nodes_from_documents(self, documents: Sequence[Document], show_progress: Optional[bool] = None) -> List[BaseNode]:
        """Parse documents into nodes; children of each document are contiguous and ordered."""
        return self._traced_parse(documents, EventPayload.DOCUMENTS, show_progress)

    def parse_nodes(self, nodes: Sequence[BaseNode], show_progress: Optional[bool] = None) -> List[BaseNode]:
        """Re-chunk existing nodes into smaller children."""
        return self._traced_parse(nodes, EventPayload.NODES, show_progress)

    def __call__(self, nodes: Sequence[BaseNode], **kwargs) -> List[BaseNode]:
        return self.parse_nodes(nodes, **kwargs)

    def _traced_parse(self, parents: Sequence[BaseNode], payload_key: EventPayload, show_progress: Optional[bool]):
        show_progress = self.show_progress if show_progress is None else show_progress
        with Timer(f"{self.__class__.__name__}.parse"):
            if self.callback_manager is None:
                return self._parse_all(parents, show_progress)

            with self.callback_manager.event(CBEventType.NODE_PARSING, {payload_key: list(parents)}) as event:
                nodes = self._parse_all(parents, show_progress)
                event.on_end({EventPayload.NODES: nodes})
                return nodes

    def _parse_all(self, parents: Sequence[BaseNode], show_progress: bool) -> List[BaseNode]:
        all_nodes: List[BaseNode] = []
        for parent in tqdm(parents, desc="Parsing nodes", disable=not show_progress):
            splits = self.split_node_text(parent)
            children = self.build_nodes_from_splits(splits, parent)
            logger.debug(f"parent={parent.node_id} produced {len(children)} nodes")
            all_nodes.extend(children)
        return all_nodes

    def build_nodes_from_splits(self, splits: List[str], parent: BaseNode) -> List[BaseNode]:
        nodes: List[BaseNode] = []
        for i, text in enumerate(splits):
            metadata = self.positional_metadata(parent, i, len(splits)) if self.include_metadata else {}
            metadata.update(self.split_metadata(splits, i))
            node = TextNode(
                node_id=self.id_func(),
                text=text,
                metadata=metadata,
                excluded_embed_metadata_keys=_merge_keys(parent.excluded_embed_metadata_keys, metadata),
                excluded_llm_metadata_keys=_merge_keys(parent.excluded_llm_metadata_keys, metadata),
                metadata_template=parent.metadata_template,
                metadata_separator=parent.metadata_separator,
                text_template=parent.text_template,
            )
            nodes.append(node)
        return self.post_process_nodes(nodes, parent)

    def split_metadata(self, splits: List[str], index: int) -> Dict[str, Any]:
        """Extra metadata of the child built from `splits[index]`, hidden from rendering like the positional keys."""
        return {}

    @staticmethod
    def positional_metadata(parent: BaseNode, index: int, count: int) -> Dict[str, Any]:
        """Bookkeeping keys of a child. They are hidden from embed and llm rendering."""
        id_key = "source_doc_id" if isinstance(parent, Document) else "source_node_id"
        return {"chunk_index": index, "chunk_count": count, id_key: parent.node_id}

    def post_process_nodes(self, nodes: List[BaseNode], parent: BaseNode) -> List[BaseNode]:
        source_info = parent.as_related_node_info()
        cursor = 0
        for node in nodes:
            if self.include_metadata:
                node.update_metadata({k: v for k, v in parent.metadata.items() if k not in node.metadata})

            start = parent.text.find(node.text, cursor) if node.text else -1
            if start >= 0:
                node.set_char_span(start, start + len(node.text))
                cursor = start + 1
            else:
                node.refresh_hash()

            node.set_relationship(NodeRelationship.SOURCE, source_info)

        if self.include_prev_next_rel:
            for i, node in enumerate(nodes):
                if i > 0:
                    node.set_relationship(NodeRelationship.PREVIOUS, nodes[i - 1].as_related_node_info())
                if i < len(nodes) - 1:
                    node.set_relationship(NodeRelationship.NEXT, nodes[i + 1].as_related_node_info())
        return nodes


def _merge_keys(keys: List[str], extra: Dict[str, Any]) -> List[str]:
    return list(keys) + [k for k in extra if k not in keys]
