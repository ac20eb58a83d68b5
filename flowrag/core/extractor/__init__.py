"""Metadata extractors.

Each extractor maps nodes to metadata dicts with an ordered worker pool;
`process_nodes` merges them into the nodes once the batch succeeded.
"""

from .base_extractor import DEFAULT_NODE_TEXT_TEMPLATE, BaseExtractor, LLMExtractor
from .extractor_chain import ExtractorChain
from .keyword_extractor import EXCERPT_KEYWORDS_KEY, KeywordExtractor, parse_keywords
from .questions_extractor import QUESTIONS_KEY, QuestionsAnsweredExtractor, parse_questions
from .summary_extractor import (
    NEXT_SECTION_SUMMARY_KEY,
    PREV_SECTION_SUMMARY_KEY,
    SECTION_SUMMARY_KEY,
    SummaryExtractor,
)
from .title_extractor import DOCUMENT_TITLE_KEY, TitleExtractor

__all__ = [
    "DEFAULT_NODE_TEXT_TEMPLATE",
    "BaseExtractor",
    "LLMExtractor",
    "ExtractorChain",
    "EXCERPT_KEYWORDS_KEY",
    "KeywordExtractor",
    "parse_keywords",
    "QUESTIONS_KEY",
    "QuestionsAnsweredExtractor",
    "parse_questions",
    "NEXT_SECTION_SUMMARY_KEY",
    "PREV_SECTION_SUMMARY_KEY",
    "SECTION_SUMMARY_KEY",
    "SummaryExtractor",
    "DOCUMENT_TITLE_KEY",
    "TitleExtractor",
]
