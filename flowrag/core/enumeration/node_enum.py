"""Enumerations describing nodes, their relationships and rendering modes."""

from enum import Enum


class NodeType(str, Enum):
    """Kind of content a node carries."""

    TEXT = "text"
    IMAGE = "image"
    INDEX = "index"
    DOCUMENT = "document"
    MULTIMODAL = "multimodal"


class NodeRelationship(str, Enum):
    """Relationship kinds between nodes. CHILD is the only multi-valued kind."""

    SOURCE = "source"
    PREVIOUS = "previous"
    NEXT = "next"
    PARENT = "parent"
    CHILD = "child"


class MetadataMode(str, Enum):
    """Which metadata keys contribute to rendered node content."""

    ALL = "all"
    EMBED = "embed"
    LLM = "llm"
    NONE = "none"


class FilterOperator(str, Enum):
    """Comparison operators for metadata filters."""

    EQ = "=="
    NE = "!="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    IN = "in"
    NIN = "nin"


class FilterCondition(str, Enum):
    """How multiple metadata filters combine."""

    AND = "and"
    OR = "or"


class SimilarityMode(str, Enum):
    """Vector similarity functions."""

    COSINE = "cosine"
    DOT_PRODUCT = "dot_product"
    EUCLIDEAN = "euclidean"
