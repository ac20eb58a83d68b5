"""Token-window text splitter."""

from typing import Callable, List, Optional

from .sentence_splitter import validate_chunk_params
from ..enumeration import CBEventType, EventPayload
from ..token import WhitespaceToken


class TokenTextSplitter:
    """Split on `separator` and pack the pieces into windows of `chunk_size` tokens.

    Consecutive windows share up to `chunk_overlap` tokens of whole pieces.
    A single piece longer than the window is cut proportionally by characters.
    """

    def __init__(
        self,
        chunk_size: int = 1024,
        chunk_overlap: int = 20,
        tokenizer: Optional[Callable[[str], int]] = None,
        separator: str = " ",
        callback_manager=None,
    ):
        validate_chunk_params(chunk_size, chunk_overlap)
        self.chunk_size: int = chunk_size
        self.chunk_overlap: int = chunk_overlap
        self.tokenizer: Callable[[str], int] = tokenizer or WhitespaceToken()
        self.separator: str = separator
        self.callback_manager = callback_manager

    def split_text(self, text: str) -> List[str]:
        if not text:
            return []

        if self.callback_manager is None:
            return self._chunk(text)

        with self.callback_manager.event(CBEventType.CHUNKING, {EventPayload.CHUNKS: [text]}) as event:
            chunks = self._chunk(text)
            event.on_end({EventPayload.CHUNKS: chunks})
            return chunks

    def split_texts(self, texts: List[str]) -> List[List[str]]:
        return [self.split_text(text) for text in texts]

    def split_text_metadata_aware(self, text: str, metadata_str: str) -> List[str]:
        return self.split_text(text)

    def _chunk(self, text: str) -> List[str]:
        splits = text.split(self.separator) if self.separator else [text]
        chunks = self._merge([s for s in splits if s])
        return [chunk.strip() for chunk in chunks if chunk.strip()]

    def _merge(self, splits: List[str]) -> List[str]:
        chunks: List[str] = []
        current: List[str] = []

        for split in splits:
            if self.tokenizer(split) > self.chunk_size:
                if current:
                    chunks.append(self.separator.join(current))
                    current = []
                chunks.extend(self._split_oversized(split))
                continue

            if current and self.tokenizer(self.separator.join(current + [split])) > self.chunk_size:
                chunks.append(self.separator.join(current))
                current = self._overlap(current)

            current.append(split)

        if current:
            chunks.append(self.separator.join(current))
        return chunks

    def _overlap(self, chunk: List[str]) -> List[str]:
        overlap: List[str] = []
        for part in reversed(chunk):
            if self.tokenizer(self.separator.join([part] + overlap)) > self.chunk_overlap:
                break
            overlap.insert(0, part)
        return overlap

    def _split_oversized(self, text: str) -> List[str]:
        total = self.tokenizer(text)
        step = self.chunk_size - self.chunk_overlap
        chunks: List[str] = []
        for i in range(0, total, step):
            end = min(i + self.chunk_size, total)
            piece = text[int(i / total * len(text)) : int(end / total * len(text))].strip()
            if piece:
                chunks.append(piece)
            if end >= total:
                break
        return chunks
