"""Sentence-based node parsers."""

from typing import Callable, List, Optional, Sequence

from .base_node_parser import BaseNodeParser
from .sentence_splitter import SentenceSplitter
from ..context import C
from ..enumeration import MetadataMode
from ..schema import BaseNode, NodeParserConfig


@C.register_node_parser("sentence")
class SentenceNodeParser(BaseNodeParser):
    """Split each parent with a `SentenceSplitter` (or any splitter exposing `split_text`).

    Chunk parameters are validated when the splitter is built, so an invalid
    configuration fails with `ConfigInvalidError` before any parsing.
    """

    def __init__(
        self,
        splitter=None,
        chunk_size: int = 1024,
        chunk_overlap: int = 200,
        tokenizer: Optional[Callable[[str], int]] = None,
        sentence_tokenizer: Optional[Callable[[str], List[str]]] = None,
        paragraph_separator: str = "\n\n\n",
        separator: str = " ",
        secondary_chunking_regex: str = "[^,.;。？！]+[,.;。？！]?|[,.;。？！]",
        callback_manager=None,
        **kwargs,
    ):
        super().__init__(callback_manager=callback_manager, **kwargs)
        if splitter is None:
            splitter = SentenceSplitter(
                chunk_size=chunk_size,
                chunk_overlap=chunk_overlap,
                tokenizer=tokenizer,
                sentence_tokenizer=sentence_tokenizer,
                paragraph_separator=paragraph_separator,
                separator=separator,
                secondary_chunking_regex=secondary_chunking_regex,
            )
        if getattr(splitter, "callback_manager", None) is None:
            splitter.callback_manager = callback_manager
        self.splitter = splitter

    @classmethod
    def from_config(cls, config: NodeParserConfig, **kwargs):
        return cls(
            chunk_size=config.chunk_size,
            chunk_overlap=config.chunk_overlap,
            paragraph_separator=config.paragraph_separator,
            separator=config.separator,
            secondary_chunking_regex=config.secondary_chunking_regex,
            include_metadata=config.include_metadata,
            include_prev_next_rel=config.include_prev_next_rel,
            show_progress=config.show_progress,
            **kwargs,
        )

    def split_node_text(self, node: BaseNode) -> List[str]:
        return self.splitter.split_text(node.text)


@C.register_node_parser("metadata_aware")
class MetadataAwareNodeParser(SentenceNodeParser):
    """Sentence parser that reserves room for the rendered metadata in every chunk.

    The larger of the embed-mode and llm-mode metadata renderings is used.
    Fails with `MetadataTooLargeError` when that alone reaches the chunk size.
    """

    def split_node_text(self, node: BaseNode) -> List[str]:
        embed_str = node.get_metadata_str(MetadataMode.EMBED)
        llm_str = node.get_metadata_str(MetadataMode.LLM)
        metadata_str = embed_str if len(embed_str) >= len(llm_str) else llm_str
        return self.splitter.split_text_metadata_aware(node.text, metadata_str)


@C.register_node_parser("simple")
class SimpleNodeParser(BaseNodeParser):
    """One node per document; `parse_nodes` returns its input unchanged."""

    def split_node_text(self, node: BaseNode) -> List[str]:
        return [node.text]

    def parse_nodes(self, nodes: Sequence[BaseNode], show_progress: Optional[bool] = None) -> List[BaseNode]:
        return list(nodes)
