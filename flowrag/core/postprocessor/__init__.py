"""Node postprocessors: transformations of `[NodeWithScore]` under a query."""

from .base_postprocessor import BasePostprocessor, IdentityPostprocessor, as_query_bundle
from .keyword_postprocessor import KeywordPostprocessor
from .llm_rerank_postprocessor import LLMRerankPostprocessor, parse_choice_select_answer
from .long_context_reorder import LongContextReorder
from .metadata_replacement_postprocessor import MetadataReplacementPostprocessor
from .pii_postprocessor import PIIPostprocessor
from .node_recency_postprocessor import FixedClock, NodeRecencyPostprocessor, SystemClock
from .postprocessor_chain import PostprocessorChain
from .sentence_optimizer_postprocessor import SentenceOptimizerPostprocessor, split_sentences
from .similarity_postprocessor import SimilarityPostprocessor
from .top_k_postprocessor import TopKPostprocessor

__all__ = [
    "BasePostprocessor",
    "IdentityPostprocessor",
    "as_query_bundle",
    "KeywordPostprocessor",
    "LLMRerankPostprocessor",
    "parse_choice_select_answer",
    "LongContextReorder",
    "MetadataReplacementPostprocessor",
    "PIIPostprocessor",
    "FixedClock",
    "NodeRecencyPostprocessor",
    "SystemClock",
    "PostprocessorChain",
    "SentenceOptimizerPostprocessor",
    "split_sentences",
    "SimilarityPostprocessor",
    "TopKPostprocessor",
]
