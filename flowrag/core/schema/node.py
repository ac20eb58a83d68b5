"""Node and document models.

Nodes are the content units that flow through parsing, extraction and
retrieval. Relationships never hold other nodes, only `RelatedNodeInfo`
snapshots (id, kind, metadata, hash), so parent/child graphs stay acyclic.

The content hash is SHA-256 over the node kind, the optional character
span and the content rendered with all metadata. It is derived on
construction and re-derived by `set_content`, `set_metadata`,
`update_metadata` and `set_char_span`.
"""

import hashlib
import json
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from ..enumeration import MetadataMode, NodeRelationship, NodeType
from ..exceptions import InvalidKindError, TypeMismatchError


class RelatedNodeInfo(BaseModel):
    """Descriptor of a related node: id, kind, metadata snapshot and hash."""

    node_id: str = Field(...)
    node_type: Optional[NodeType] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    hash: str = Field(default="")


RelatedNodeType = Union[RelatedNodeInfo, List[RelatedNodeInfo]]


def render_metadata_value(value: Any) -> str:
    """Strings render as-is; everything else as canonical JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)


class BaseNode(BaseModel):
    """Common fields and behaviour of every node kind."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    node_id: str = Field(default_factory=lambda: str(uuid4()))
    node_type: NodeType = Field(default=NodeType.TEXT)
    text: str = Field(default="")
    embedding: Optional[List[float]] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    excluded_embed_metadata_keys: List[str] = Field(default_factory=list)
    excluded_llm_metadata_keys: List[str] = Field(default_factory=list)
    relationships: Dict[NodeRelationship, RelatedNodeType] = Field(default_factory=dict)
    hash: str = Field(default="")
    start_char_idx: Optional[int] = Field(default=None)
    end_char_idx: Optional[int] = Field(default=None)
    mimetype: str = Field(default="text/plain")

    metadata_template: str = Field(default="{key}: {value}")
    metadata_separator: str = Field(default="\n")
    text_template: str = Field(default="{metadata_str}\n\n{content}")

    def model_post_init(self, __context: Any) -> None:
        if not self.hash:
            self.hash = self.generate_hash()

    # ---------- rendering ----------

    def get_metadata_str(self, mode: MetadataMode = MetadataMode.ALL) -> str:
        """Render metadata as `{key}: {value}` lines, keys sorted, excluding keys for `mode`."""
        if mode == MetadataMode.NONE:
            return ""

        excluded: set = set()
        if mode == MetadataMode.EMBED:
            excluded = set(self.excluded_embed_metadata_keys)
        elif mode == MetadataMode.LLM:
            excluded = set(self.excluded_llm_metadata_keys)

        return self.metadata_separator.join(
            self.metadata_template.format(key=key, value=render_metadata_value(value))
            for key, value in sorted(self.metadata.items())
            if key not in excluded
        )

    def get_content(self, metadata_mode: MetadataMode = MetadataMode.NONE) -> str:
        metadata_str = self.get_metadata_str(metadata_mode).strip()
        if not metadata_str:
            return self.text
        return self.text_template.format(metadata_str=metadata_str, content=self.text).strip()

    # ---------- hashing and mutation ----------

    def generate_hash(self) -> str:
        parts = [self.node_type.value]
        if self.start_char_idx is not None and self.end_char_idx is not None:
            parts.append(f"[{self.start_char_idx},{self.end_char_idx}]")
        parts.append(self.get_content(MetadataMode.ALL))
        return hashlib.sha256("".join(parts).encode("utf-8")).hexdigest()

    def refresh_hash(self) -> str:
        self.hash = self.generate_hash()
        return self.hash

    def set_content(self, value: str):
        self.text = value
        self.refresh_hash()

    def set_metadata(self, key: str, value: Any):
        self.metadata[key] = value
        self.refresh_hash()

    def update_metadata(self, metadata: Dict[str, Any]):
        self.metadata.update(metadata)
        self.refresh_hash()

    def set_char_span(self, start: Optional[int], end: Optional[int]):
        self.start_char_idx = start
        self.end_char_idx = end
        self.refresh_hash()

    # ---------- relationships ----------

    def set_relationship(self, relationship: NodeRelationship, related: RelatedNodeType):
        if relationship == NodeRelationship.CHILD:
            if not isinstance(related, list):
                raise TypeMismatchError(f"relationship={relationship.value} expects a list of RelatedNodeInfo")
        elif not isinstance(related, RelatedNodeInfo):
            raise TypeMismatchError(f"relationship={relationship.value} expects a single RelatedNodeInfo")
        self.relationships[relationship] = related

    def _single_relationship(self, relationship: NodeRelationship) -> Optional[RelatedNodeInfo]:
        related = self.relationships.get(relationship)
        if related is None:
            return None
        if isinstance(related, list):
            raise TypeMismatchError(f"relationship={relationship.value} must be single-valued")
        return related

    @property
    def source_node(self) -> Optional[RelatedNodeInfo]:
        return self._single_relationship(NodeRelationship.SOURCE)

    @property
    def prev_node(self) -> Optional[RelatedNodeInfo]:
        return self._single_relationship(NodeRelationship.PREVIOUS)

    @property
    def next_node(self) -> Optional[RelatedNodeInfo]:
        return self._single_relationship(NodeRelationship.NEXT)

    @property
    def parent_node(self) -> Optional[RelatedNodeInfo]:
        return self._single_relationship(NodeRelationship.PARENT)

    @property
    def child_nodes(self) -> List[RelatedNodeInfo]:
        related = self.relationships.get(NodeRelationship.CHILD)
        if related is None:
            return []
        if not isinstance(related, list):
            raise TypeMismatchError("relationship=child must be a list")
        return related

    @property
    def ref_doc_id(self) -> Optional[str]:
        source = self.source_node
        return source.node_id if source else None

    def as_related_node_info(self) -> RelatedNodeInfo:
        return RelatedNodeInfo(
            node_id=self.node_id,
            node_type=self.node_type,
            metadata=dict(self.metadata),
            hash=self.hash,
        )

    # ---------- kind specific accessors ----------

    def get_image(self) -> str:
        raise InvalidKindError(f"node_id={self.node_id} kind={self.node_type.value} carries no image")

    def get_index_id(self) -> str:
        raise InvalidKindError(f"node_id={self.node_id} kind={self.node_type.value} carries no index id")


class TextNode(BaseNode):
    """Plain text node."""

    node_type: NodeType = Field(default=NodeType.TEXT)


class ImageNode(TextNode):
    """Node carrying an image by base64 payload, path or url, with optional caption text."""

    node_type: NodeType = Field(default=NodeType.IMAGE)
    image: Optional[str] = Field(default=None)
    image_path: Optional[str] = Field(default=None)
    image_url: Optional[str] = Field(default=None)
    image_mimetype: Optional[str] = Field(default=None)

    def get_image(self) -> str:
        image = self.image or self.image_path or self.image_url
        if image is None:
            raise InvalidKindError(f"node_id={self.node_id} has no image set")
        return image


class IndexNode(TextNode):
    """Node pointing at another index or object by `index_id`."""

    node_type: NodeType = Field(default=NodeType.INDEX)
    index_id: str = Field(default="")
    obj: Any = Field(default=None, exclude=True)

    def get_index_id(self) -> str:
        return self.index_id


class MultimodalNode(TextNode):
    """Text plus any number of image references."""

    node_type: NodeType = Field(default=NodeType.MULTIMODAL)
    images: List[str] = Field(default_factory=list)

    def get_image(self) -> str:
        if not self.images:
            raise InvalidKindError(f"node_id={self.node_id} has no image set")
        return self.images[0]


class Document(TextNode):
    """Coarse-grained source input. Only ever referenced as a SOURCE."""

    node_type: NodeType = Field(default=NodeType.DOCUMENT)

    @property
    def doc_id(self) -> str:
        return self.node_id
