"""Questions each node can answer, generated by the LLM."""

from typing import Any, Dict, List, Optional, Sequence

from .base_extractor import LLMExtractor
from ..context import C, CancelToken
from ..exceptions import ConfigInvalidError
from ..schema import BaseNode

QUESTIONS_KEY = "questions_this_excerpt_can_answer"

_QUESTION_PREFIX_CHARS = "0123456789.-) "


def parse_questions(response: str) -> List[str]:
    """One question per line, with numbering and bullet prefixes removed.

    Example:
        ```python
        parse_questions("1. What is X?\\n- Why Y?\\n\\n")  # ['What is X?', 'Why Y?']
        ```
    """
    questions = []
    for line in response.splitlines():
        question = line.lstrip(_QUESTION_PREFIX_CHARS).strip()
        if question:
            questions.append(question)
    return questions


@C.register_extractor("questions")
class QuestionsAnsweredExtractor(LLMExtractor):
    """Write the questions a node can answer, newline separated."""

    def __init__(self, llm=None, questions: int = 5, prompt_template: str = "", **kwargs):
        super().__init__(llm=llm, **kwargs)
        if questions < 1:
            raise ConfigInvalidError(f"QuestionsAnsweredExtractor questions={questions} must be >= 1")
        self.questions: int = questions
        if prompt_template:
            self.prompt["questions_prompt"] = prompt_template

    def _extract_node(self, node: BaseNode) -> Dict[str, Any]:
        if not self.should_process(node):
            return {}
        response = self.complete(
            self.prompt_format(
                "questions_prompt",
                context_str=self.get_node_content(node),
                num_questions=self.questions,
            ),
        )
        return {QUESTIONS_KEY: "\n".join(parse_questions(response))}

    def extract(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        if not nodes:
            return []
        self.check_llm()
        return self.run_jobs(self._extract_node, nodes, cancel_token=cancel_token, desc="questions")
