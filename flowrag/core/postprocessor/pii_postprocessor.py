"""Mask or drop personally identifiable information in retrieved nodes."""

import re
from typing import Iterable, List, Optional, Pattern

from pydantic import BaseModel, ConfigDict, Field

from .base_postprocessor import BasePostprocessor
from ..context import C
from ..exceptions import ConfigInvalidError
from ..schema import NodeWithScore, QueryBundle


class PIIPattern(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    pii_type: str = Field(...)
    pattern: Pattern = Field(...)
    mask: str = Field(...)


class PIIMatch(BaseModel):
    pii_type: str = Field(...)
    value: str = Field(...)
    start: int = Field(...)
    end: int = Field(...)


# applied in order; card numbers go before phone numbers so their digit groups are not half-masked
DEFAULT_PII_PATTERNS: List[PIIPattern] = [
    PIIPattern(pii_type="email", pattern=re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), mask="[EMAIL]"),
    PIIPattern(pii_type="credit_card", pattern=re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
               mask="[CREDIT_CARD]"),
    PIIPattern(pii_type="phone", pattern=re.compile(r"(?:\+\d{1,3}[-.\s]?)?\(?\b\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b"),
               mask="[PHONE]"),
    PIIPattern(pii_type="ssn", pattern=re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), mask="[SSN]"),
    PIIPattern(pii_type="ip_address", pattern=re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), mask="[IP_ADDRESS]"),
]


@C.register_postprocessor("pii")
class PIIPostprocessor(BasePostprocessor):
    """Regex-based PII masking.

    With `mask=True` each match is replaced by its type mask (or `custom_mask`)
    on a copy of the node; otherwise nodes containing PII are dropped.
    `store_original` keeps the unmasked text under `original_text`.
    """

    def __init__(
        self,
        pii_types: Optional[Iterable[str]] = None,
        mask: bool = True,
        custom_mask: str = "",
        store_original: bool = False,
        patterns: Optional[List[PIIPattern]] = None,
        name: str = "",
    ):
        super().__init__(name=name)
        self.patterns: List[PIIPattern] = list(patterns if patterns is not None else DEFAULT_PII_PATTERNS)
        known = {p.pii_type for p in self.patterns}
        self.pii_types: Optional[set] = set(pii_types) if pii_types else None
        if self.pii_types and not self.pii_types <= known:
            raise ConfigInvalidError(f"pii_types={sorted(self.pii_types - known)} have no pattern, known={sorted(known)}")
        self.mask: bool = mask
        self.custom_mask: str = custom_mask
        self.store_original: bool = store_original

    def add_pattern(self, pii_type: str, pattern: str, mask: str):
        try:
            compiled = re.compile(pattern)
        except re.error as e:
            raise ConfigInvalidError(f"pii_type={pii_type} pattern={pattern!r} is invalid", cause=e) from e
        self.patterns.append(PIIPattern(pii_type=pii_type, pattern=compiled, mask=mask))

    def _active_patterns(self) -> List[PIIPattern]:
        return [p for p in self.patterns if self.pii_types is None or p.pii_type in self.pii_types]

    def detect_pii(self, text: str) -> List[PIIMatch]:
        matches = []
        for p in self._active_patterns():
            for m in p.pattern.finditer(text):
                matches.append(PIIMatch(pii_type=p.pii_type, value=m.group(0), start=m.start(), end=m.end()))
        return matches

    def mask_text(self, text: str) -> str:
        for p in self._active_patterns():
            text = p.pattern.sub(self.custom_mask or p.mask, text)
        return text

    def _mask_node(self, node: NodeWithScore) -> NodeWithScore:
        masked = self.mask_text(node.text)
        if masked == node.text:
            return node

        new_node = node.node.model_copy(deep=True)
        new_node.set_content(masked)
        if self.store_original:
            # the unmasked copy never reaches embed or llm rendering
            for keys in (new_node.excluded_embed_metadata_keys, new_node.excluded_llm_metadata_keys):
                keys.extend(k for k in ("original_text", "pii_masked") if k not in keys)
            new_node.update_metadata({"original_text": node.text, "pii_masked": True})
        return NodeWithScore(node=new_node, score=node.score)

    def _postprocess_nodes(self, nodes: List[NodeWithScore], query_bundle: Optional[QueryBundle]) -> List[NodeWithScore]:
        if self.mask:
            return [self._mask_node(node) for node in nodes]
        return [node for node in nodes if not self.detect_pii(node.text)]
