"""Prompt templates loaded from YAML files.

Each component that talks to an LLM keeps its templates in a YAML file
next to its source (`title_extractor.py` -> `extractor_prompt.yaml`).
Language-specific variants are stored under `<name>_<language>` keys.
"""

from pathlib import Path

import yaml
from loguru import logger

from .base_context import BaseContext
from .service_context import C
from ..exceptions import NotFoundError


class PromptHandler(BaseContext):
    """Load, look up and format prompt templates."""

    def __init__(self, language: str = "", **kwargs):
        super().__init__(**kwargs)
        self.language: str = language or C.language

    def load_prompt_by_file(self, prompt_file_path: Path | str = None):
        if prompt_file_path is None:
            return self

        prompt_file_path = Path(prompt_file_path)
        if not prompt_file_path.exists():
            logger.warning(f"prompt_file_path={prompt_file_path} not found")
            return self

        with prompt_file_path.open(encoding="utf-8") as f:
            self.load_prompt_dict(yaml.safe_load(f))
        return self

    def load_prompt_dict(self, prompt_dict: dict = None):
        if not prompt_dict:
            return self

        for key, value in prompt_dict.items():
            if not isinstance(value, str):
                continue
            if key in self._data:
                logger.warning(f"prompt_dict key={key} overwrite!")
            self._data[key] = value
        return self

    def get_prompt(self, prompt_name: str) -> str:
        """Return the template for `prompt_name`, preferring the language-specific variant."""
        if self.language:
            localized = f"{prompt_name}_{self.language.strip()}"
            if localized in self._data:
                return self._data[localized]

        if prompt_name not in self._data:
            raise NotFoundError(f"prompt_name={prompt_name} not found.")
        return self._data[prompt_name]

    def prompt_format(self, prompt_name: str, **kwargs) -> str:
        """Fill `{placeholders}` of the named template.

        Only the given placeholders are replaced, so templates may contain other
        braces untouched.
        """
        prompt = self.get_prompt(prompt_name)
        for key, value in kwargs.items():
            prompt = prompt.replace("{" + key + "}", str(value))
        return prompt
