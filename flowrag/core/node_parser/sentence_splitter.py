"""Sentence-preferring text splitter.

Text is broken down with progressively finer split functions until every
piece fits the chunk size: paragraph separator, sentence tokenizer (or the
sentence regex), then the secondary regex, the word separator and finally
single characters. Pieces are greedily packed into chunks, and each new
chunk starts with up to `chunk_overlap` units taken from the end of the
previous one.
"""

import re
import string
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from loguru import logger

from ..enumeration import CBEventType, EventPayload
from ..exceptions import ConfigInvalidError, MetadataTooLargeError

DEFAULT_CHUNK_SIZE = 1024
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_PARAGRAPH_SEP = "\n\n\n"
DEFAULT_SEPARATOR = " "
DEFAULT_CHUNKING_REGEX = "[^,.;。？！]+[,.;。？！]?|[,.;。？！]"

_OVERLAP_TRAILING = string.whitespace + ",.;:!?。？！"


def split_by_sep(sep: str) -> Callable[[str], List[str]]:
    """Split on `sep`, keeping the separator at the start of every piece but the first."""

    def _split(text: str) -> List[str]:
        if not sep:
            return [text] if text else []
        parts = text.split(sep)
        result = [parts[0]] + [sep + part for part in parts[1:]]
        return [part for part in result if part]

    return _split


def split_by_regex(regex: str) -> Callable[[str], List[str]]:
    pattern = re.compile(regex)
    return lambda text: pattern.findall(text)


def split_by_char() -> Callable[[str], List[str]]:
    return lambda text: list(text)


def validate_chunk_params(chunk_size: int, chunk_overlap: int):
    if chunk_size <= 0:
        raise ConfigInvalidError(f"chunk_size={chunk_size} must be positive")
    if chunk_overlap < 0:
        raise ConfigInvalidError(f"chunk_overlap={chunk_overlap} must be non-negative")
    if chunk_overlap >= chunk_size:
        raise ConfigInvalidError(f"chunk_overlap={chunk_overlap} must be smaller than chunk_size={chunk_size}")


@dataclass
class _Split:
    text: str
    is_sentence: bool
    token_size: int


class SentenceSplitter:
    """Split text into chunks of at most `chunk_size`, preferring whole sentences.

    Args:
        chunk_size: Maximum chunk length as measured by `tokenizer`.
        chunk_overlap: Length re-emitted from the end of a closed chunk at the start of the next.
        tokenizer: Length function `str -> int`. Characters when omitted.
        sentence_tokenizer: Optional `str -> List[str]` splitting text into sentences.
        paragraph_separator: First-level separator.
        separator: Word separator used before falling back to characters.
        secondary_chunking_regex: Sentence regex, also used to break over-long sentences.
        callback_manager: Optional `CallbackManager` receiving one `chunking` event per text.

    Raises:
        ConfigInvalidError: On non-positive chunk size, negative overlap, overlap not below
            chunk size or an invalid regex.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
        tokenizer: Optional[Callable[[str], int]] = None,
        sentence_tokenizer: Optional[Callable[[str], List[str]]] = None,
        paragraph_separator: str = DEFAULT_PARAGRAPH_SEP,
        separator: str = DEFAULT_SEPARATOR,
        secondary_chunking_regex: str = DEFAULT_CHUNKING_REGEX,
        callback_manager=None,
    ):
        validate_chunk_params(chunk_size, chunk_overlap)
        try:
            regex_split = split_by_regex(secondary_chunking_regex)
        except re.error as e:
            raise ConfigInvalidError(f"invalid secondary_chunking_regex={secondary_chunking_regex}", cause=e) from e

        self.chunk_size: int = chunk_size
        self.chunk_overlap: int = chunk_overlap
        self.tokenizer: Optional[Callable[[str], int]] = tokenizer
        self.paragraph_separator: str = paragraph_separator
        self.separator: str = separator
        self.secondary_chunking_regex: str = secondary_chunking_regex
        self.callback_manager = callback_manager

        self._split_fns: List[Callable[[str], List[str]]] = [
            split_by_sep(paragraph_separator),
            sentence_tokenizer or regex_split,
        ]
        self._sub_sentence_split_fns: List[Callable[[str], List[str]]] = [
            regex_split,
            split_by_sep(separator),
            split_by_char(),
        ]

    def _token_size(self, text: str) -> int:
        return self.tokenizer(text) if self.tokenizer is not None else len(text)

    def split_text(self, text: str) -> List[str]:
        return self._split_text(text, self.chunk_size)

    def split_texts(self, texts: List[str]) -> List[List[str]]:
        return [self.split_text(text) for text in texts]

    def split_text_metadata_aware(self, text: str, metadata_str: str) -> List[str]:
        """Split so that every chunk plus the rendered metadata still fits `chunk_size`.

        Raises:
            MetadataTooLargeError: When the metadata alone is at least `chunk_size` long.
        """
        metadata_len = self._token_size(metadata_str)
        effective_chunk_size = self.chunk_size - metadata_len
        if effective_chunk_size <= 0:
            raise MetadataTooLargeError(
                f"metadata length={metadata_len} is not smaller than chunk_size={self.chunk_size}",
            )
        if effective_chunk_size < 50:
            logger.warning(
                f"metadata length={metadata_len} leaves only {effective_chunk_size} for content, "
                f"consider a larger chunk_size={self.chunk_size}",
            )
        return self._split_text(text, effective_chunk_size)

    def _split_text(self, text: str, chunk_size: int) -> List[str]:
        if not text:
            return []

        if self.callback_manager is None:
            return self._chunk(text, chunk_size)

        with self.callback_manager.event(CBEventType.CHUNKING, {EventPayload.CHUNKS: [text]}) as event:
            chunks = self._chunk(text, chunk_size)
            event.on_end({EventPayload.CHUNKS: chunks})
            return chunks

    def _chunk(self, text: str, chunk_size: int) -> List[str]:
        splits = self._split(text, chunk_size)
        chunks = self._merge(splits, chunk_size)
        return [chunk.strip() for chunk in chunks if chunk.strip()]

    def _get_splits_by_fns(self, text: str) -> Tuple[List[str], bool]:
        for split_fn in self._split_fns:
            splits = split_fn(text)
            if len(splits) > 1:
                return splits, True

        splits: List[str] = [text]
        for split_fn in self._sub_sentence_split_fns:
            splits = split_fn(text)
            if len(splits) > 1:
                break
        return splits, False

    def _split(self, text: str, chunk_size: int) -> List[_Split]:
        token_size = self._token_size(text)
        if token_size <= chunk_size:
            return [_Split(text=text, is_sentence=True, token_size=token_size)]

        text_splits_by_fns, is_sentence = self._get_splits_by_fns(text)
        if len(text_splits_by_fns) <= 1:
            # an indivisible piece longer than the chunk size is kept whole
            return [_Split(text=text, is_sentence=False, token_size=token_size)]

        text_splits: List[_Split] = []
        for split_str in text_splits_by_fns:
            split_size = self._token_size(split_str)
            if split_size <= chunk_size:
                text_splits.append(_Split(text=split_str, is_sentence=is_sentence, token_size=split_size))
            else:
                text_splits.extend(self._split(split_str, chunk_size))
        return text_splits

    def _carve_overlap(self, chunk: str) -> str:
        """Longest suffix of `chunk` whose content measures at most `chunk_overlap`.

        Content excludes leading whitespace and trailing punctuation. With a
        custom tokenizer the suffix starts on a word boundary.
        """
        best = ""
        for start in range(len(chunk) - 1, 0, -1):
            if self.tokenizer is not None and not chunk[start - 1].isspace():
                continue
            suffix = chunk[start:]
            content = suffix.lstrip().rstrip(_OVERLAP_TRAILING)
            if self._token_size(content) > self.chunk_overlap:
                break
            if content:
                best = suffix
        return best

    def _merge(self, splits: List[_Split], chunk_size: int) -> List[str]:
        chunks: List[str] = []
        cur_chunk: List[Tuple[str, int]] = []
        cur_chunk_len = 0
        new_chunk = True

        def close_chunk():
            nonlocal cur_chunk, cur_chunk_len, new_chunk
            closed = "".join(text for text, _ in cur_chunk)
            chunks.append(closed)

            last_chunk = cur_chunk
            cur_chunk = []
            cur_chunk_len = 0
            new_chunk = True

            if self.chunk_overlap <= 0:
                return

            last_index = len(last_chunk) - 1
            while last_index >= 0 and cur_chunk_len + last_chunk[last_index][1] <= self.chunk_overlap:
                text, size = last_chunk[last_index]
                cur_chunk_len += size
                cur_chunk.insert(0, (text, size))
                last_index -= 1

            if not cur_chunk:
                tail = self._carve_overlap(closed)
                if tail:
                    cur_chunk = [(tail, self._token_size(tail))]
                    cur_chunk_len = cur_chunk[0][1]

        split_idx = 0
        while split_idx < len(splits):
            cur_split = splits[split_idx]

            if new_chunk and cur_chunk and cur_chunk_len + cur_split.token_size > chunk_size:
                # overlap does not leave room for the next piece
                cur_chunk = []
                cur_chunk_len = 0

            if cur_chunk_len + cur_split.token_size > chunk_size and not new_chunk:
                close_chunk()
            elif cur_split.is_sentence or cur_chunk_len + cur_split.token_size <= chunk_size or new_chunk:
                cur_chunk_len += cur_split.token_size
                cur_chunk.append((cur_split.text, cur_split.token_size))
                split_idx += 1
                new_chunk = False
            else:
                close_chunk()

        if not new_chunk:
            chunks.append("".join(text for text, _ in cur_chunk))

        return chunks
