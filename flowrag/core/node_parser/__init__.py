"""Node parsers and text splitters.

- SentenceSplitter / TokenTextSplitter: text to chunk strings
- SentenceNodeParser / MetadataAwareNodeParser / SimpleNodeParser: documents to related nodes
- SentenceWindowNodeParser: one node per sentence with its neighbours in metadata
- MarkdownNodeParser: one node per header section, tagged with its header path
"""

from .base_node_parser import BaseNodeParser
from .markdown_node_parser import MarkdownNodeParser, split_markdown_sections
from .sentence_node_parser import MetadataAwareNodeParser, SentenceNodeParser, SimpleNodeParser
from .sentence_splitter import (
    DEFAULT_CHUNKING_REGEX,
    SentenceSplitter,
    split_by_char,
    split_by_regex,
    split_by_sep,
    validate_chunk_params,
)
from .sentence_window_node_parser import SentenceWindowNodeParser
from .token_splitter import TokenTextSplitter

__all__ = [
    "BaseNodeParser",
    "MarkdownNodeParser",
    "split_markdown_sections",
    "MetadataAwareNodeParser",
    "SentenceNodeParser",
    "SimpleNodeParser",
    "SentenceWindowNodeParser",
    "DEFAULT_CHUNKING_REGEX",
    "SentenceSplitter",
    "split_by_char",
    "split_by_regex",
    "split_by_sep",
    "validate_chunk_params",
    "TokenTextSplitter",
]
