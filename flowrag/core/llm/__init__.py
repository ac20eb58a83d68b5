"""LLM collaborators.

- BaseLLM: retrying, traced base class
- MockLLM: deterministic backend registered as `mock`
- OpenAICompatibleLLM: `openai` client backend registered as `openai_compatible`
"""

from .base_llm import BaseLLM
from .mock_llm import MockLLM
from .openai_compatible_llm import OpenAICompatibleLLM

__all__ = [
    "BaseLLM",
    "MockLLM",
    "OpenAICompatibleLLM",
]
