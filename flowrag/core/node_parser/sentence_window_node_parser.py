"""One node per sentence, with the surrounding sentences kept in metadata.

Retrieval matches on the single sentence; `MetadataReplacementPostprocessor`
with `target_metadata_key="window"` swaps in the wider context afterwards.
"""

from typing import Any, Callable, Dict, List, Optional

from .base_node_parser import BaseNodeParser
from .sentence_splitter import split_by_regex
from ..context import C
from ..exceptions import ConfigInvalidError
from ..schema import BaseNode

DEFAULT_WINDOW_SIZE = 3
DEFAULT_SENTENCE_REGEX = r"[^.!?。？！]+[.!?。？！]*"
DEFAULT_WINDOW_METADATA_KEY = "window"
DEFAULT_ORIGINAL_TEXT_METADATA_KEY = "original_text"


@C.register_node_parser("sentence_window")
class SentenceWindowNodeParser(BaseNodeParser):
    """Split parents into sentences; each node carries a window of `window_size` sentences on each side.

    Args:
        window_size: Neighbouring sentences included on each side.
        sentence_splitter: Splits text into sentences. A regex on sentence
            punctuation when omitted.
        window_metadata_key: Metadata key of the window text.
        original_text_metadata_key: Metadata key of the sentence itself.
    """

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        sentence_splitter: Optional[Callable[[str], List[str]]] = None,
        window_metadata_key: str = DEFAULT_WINDOW_METADATA_KEY,
        original_text_metadata_key: str = DEFAULT_ORIGINAL_TEXT_METADATA_KEY,
        **kwargs,
    ):
        if window_size < 0:
            raise ConfigInvalidError(f"window_size={window_size} must be non-negative")
        super().__init__(**kwargs)
        self.window_size: int = window_size
        self.sentence_splitter: Callable[[str], List[str]] = sentence_splitter or split_by_regex(DEFAULT_SENTENCE_REGEX)
        self.window_metadata_key: str = window_metadata_key
        self.original_text_metadata_key: str = original_text_metadata_key

    def split_node_text(self, node: BaseNode) -> List[str]:
        return [s.strip() for s in self.sentence_splitter(node.text) if s.strip()]

    def split_metadata(self, splits: List[str], index: int) -> Dict[str, Any]:
        start = max(0, index - self.window_size)
        end = min(len(splits), index + self.window_size + 1)
        return {
            self.window_metadata_key: " ".join(splits[start:end]),
            self.original_text_metadata_key: splits[index],
        }
