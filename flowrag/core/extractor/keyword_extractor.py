"""LLM keyword extraction."""

from typing import Any, Dict, List, Optional, Sequence

from .base_extractor import LLMExtractor
from ..context import C, CancelToken
from ..exceptions import ConfigInvalidError
from ..schema import BaseNode

EXCERPT_KEYWORDS_KEY = "excerpt_keywords"


def parse_keywords(response: str) -> List[str]:
    """Split a comma separated LLM answer, dropping blanks."""
    return [keyword.strip() for keyword in response.split(",") if keyword.strip()]


@C.register_extractor("keyword")
class KeywordExtractor(LLMExtractor):
    """Write `keywords` comma separated keywords per node."""

    def __init__(self, llm=None, keywords: int = 5, prompt_template: str = "", **kwargs):
        super().__init__(llm=llm, **kwargs)
        if keywords < 1:
            raise ConfigInvalidError(f"KeywordExtractor keywords={keywords} must be >= 1")
        self.keywords: int = keywords
        if prompt_template:
            self.prompt["keyword_prompt"] = prompt_template

    def _extract_node(self, node: BaseNode) -> Dict[str, Any]:
        if not self.should_process(node):
            return {}
        response = self.complete(
            self.prompt_format("keyword_prompt", context_str=self.get_node_content(node), keywords=self.keywords),
        )
        return {EXCERPT_KEYWORDS_KEY: ", ".join(parse_keywords(response))}

    def extract(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        if not nodes:
            return []
        self.check_llm()
        return self.run_jobs(self._extract_node, nodes, cancel_token=cancel_token, desc="keywords")
