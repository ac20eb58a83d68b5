"""Layered loading of pydantic configuration models.

Sources are merged in this order, later ones winning:
1. field defaults of the pydantic model
2. one or more YAML files (`config=default,local`)
3. dot-notation overrides (`workflow.timeout=5`)
4. keyword overrides passed to `update_config` (`workflow__timeout=5`)
"""

import copy
import json
from pathlib import Path
from typing import Any, Generic, List, Type, TypeVar

import yaml
from loguru import logger
from pydantic import BaseModel, ValidationError

from ..exceptions import ConfigInvalidError

T = TypeVar("T", bound=BaseModel)


class PydanticConfigParser(Generic[T]):
    """Build a validated pydantic config from defaults, YAML and overrides.

    Relative YAML names are resolved next to `current_file` first, then
    against the working directory. Subclasses set `current_file` so their
    bundled YAML files are found.

    Example:
        ```python
        parser = PydanticConfigParser(ServiceConfig)
        config = parser.parse_args("config=default", "workflow.timeout=5")
        config.workflow.timeout  # 5.0
        ```
    """

    current_file: str = __file__
    default_config_name: str = "default"

    def __init__(self, config_class: Type[T]):
        self.config_class = config_class
        self.config_dict: dict = {}

    def parse_dot_notation(self, dot_list: List[str]) -> dict:
        """Turn `['a.b=1', 'a.c=x']` into `{'a': {'b': 1, 'c': 'x'}}`. Items without `=` are ignored."""
        config_dict: dict = {}

        for item in dot_list:
            if "=" not in item:
                continue

            key_path, value_str = item.split("=", 1)
            keys = key_path.split(".")

            current = config_dict
            for key in keys[:-1]:
                current = current.setdefault(key, {})
            current[keys[-1]] = self._convert_value(value_str)

        return config_dict

    @staticmethod
    def _convert_value(value_str: str) -> Any:
        """Best-effort scalar conversion: bool, None, int, float, JSON, then plain string."""
        value_str = value_str.strip()
        lowered = value_str.lower()

        if lowered in ("true", "false"):
            return lowered == "true"

        if lowered in ("none", "null"):
            return None

        try:
            if "." not in value_str and "e" not in lowered:
                return int(value_str)
            return float(value_str)
        except ValueError:
            pass

        try:
            return json.loads(value_str)
        except (json.JSONDecodeError, ValueError):
            pass

        return value_str

    @staticmethod
    def load_from_yaml(yaml_path: str | Path) -> dict:
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file does not exist: {yaml_path}")

        with yaml_path.open(encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def merge_configs(self, *config_dicts: dict) -> dict:
        result: dict = {}
        for config_dict in config_dicts:
            result = self._deep_merge(result, config_dict)
        return result

    def _deep_merge(self, base_dict: dict, update_dict: dict) -> dict:
        result = base_dict.copy()
        for key, value in update_dict.items():
            if isinstance(result.get(key), dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    def _resolve_config_path(self, name: str) -> Path:
        if not name.endswith(".yaml"):
            name += ".yaml"

        config_path = Path(self.current_file).parent / name
        if config_path.exists():
            logger.info(f"load config={config_path}")
            return config_path

        logger.warning(f"config={config_path} not found, try {name}")
        config_path = Path(name)
        if not config_path.exists():
            raise ConfigInvalidError(f"config={config_path} not found")
        return config_path

    def _validate(self, config_dict: dict) -> T:
        try:
            return self.config_class.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigInvalidError(f"invalid {self.config_class.__name__}: {e}", cause=e) from e

    def parse_args(self, *args: str) -> T:
        """Parse `config=<a>,<b>` plus dot-notation overrides into a validated model.

        Raises:
            ConfigInvalidError: A named YAML file is missing or the merged config fails validation.
        """
        configs_to_merge = [self.config_class().model_dump()]

        config = ""
        overrides = []
        for arg in args:
            if "=" not in arg:
                continue

            arg = arg.lstrip("-")
            key = arg.split("=", 1)[0]
            if key in ("c", "config"):
                config = arg.split("=", 1)[1]
            else:
                overrides.append(arg)

        config = config or self.default_config_name
        for single_config in [c.strip() for c in config.split(",") if c.strip()]:
            configs_to_merge.append(self.load_from_yaml(self._resolve_config_path(single_config)))

        if overrides:
            configs_to_merge.append(self.parse_dot_notation(overrides))

        self.config_dict = self.merge_configs(*configs_to_merge)
        return self._validate(self.config_dict)

    def update_config(self, **kwargs) -> T:
        """Apply keyword overrides on top of the last parsed config; `a__b=1` means `a.b=1`."""
        dot_list = [f"{key.replace('__', '.')}={value}" for key, value in kwargs.items()]
        final_config = self.merge_configs(copy.deepcopy(self.config_dict), self.parse_dot_notation(dot_list))
        return self._validate(final_config)
