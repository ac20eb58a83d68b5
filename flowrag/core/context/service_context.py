"""Process-wide service context.

`C` holds the loaded `ServiceConfig`, the component registries and the
instances built from them. Backends register themselves with decorators
such as `@C.register_llm("openai_compatible")` and are instantiated by
name through `C.build_llm("default")`.
"""

import uuid
from typing import Dict

from loguru import logger

from .base_context import BaseContext
from .registry import Registry
from ..enumeration import RegistryEnum
from ..exceptions import ConfigInvalidError, NotFoundError
from ..schema import ServiceConfig
from ..utils import singleton


@singleton
class ServiceContext(BaseContext):
    """Singleton holding configuration, registries and built backends.

    Attributes:
        service_id: Unique identifier of this process' context.
        service_config: The loaded configuration, if any.
        language: Language suffix used when selecting prompts.
        registry_dict: One `Registry` per `RegistryEnum` member.
        instance_dict: Built backends keyed by `(registry type, config name)`.
    """

    def __init__(self, service_id: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.service_id: str = service_id or uuid.uuid4().hex
        self.service_config: ServiceConfig | None = None
        self.language: str = ""
        self.registry_dict: Dict[RegistryEnum, Registry] = {v: Registry() for v in RegistryEnum.__members__.values()}
        self.instance_dict: dict = {}

    def init_by_service_config(self, service_config: ServiceConfig):
        """Install a configuration and drop any backends built from a previous one."""
        self.service_config = service_config
        self.language = service_config.language
        self.instance_dict.clear()
        return self

    def register(self, name: str, register_type: RegistryEnum):
        return self.registry_dict[register_type].register(name=name)

    def register_llm(self, name: str = ""):
        return self.register(name=name, register_type=RegistryEnum.LLM)

    def register_embedding_model(self, name: str = ""):
        return self.register(name=name, register_type=RegistryEnum.EMBEDDING_MODEL)

    def register_token_counter(self, name: str = ""):
        return self.register(name=name, register_type=RegistryEnum.TOKEN_COUNTER)

    def register_extractor(self, name: str = ""):
        return self.register(name=name, register_type=RegistryEnum.EXTRACTOR)

    def register_postprocessor(self, name: str = ""):
        return self.register(name=name, register_type=RegistryEnum.POSTPROCESSOR)

    def register_node_parser(self, name: str = ""):
        return self.register(name=name, register_type=RegistryEnum.NODE_PARSER)

    def get_model_class(self, name: str, register_type: RegistryEnum):
        """Look up a registered class.

        Raises:
            NotFoundError: Nothing is registered under `name` for `register_type`.
        """
        registry = self.registry_dict[register_type]
        if name not in registry:
            raise NotFoundError(
                f"name={name} not found in registry_dict.{register_type.value}! supported names={list(registry.keys())}",
            )
        return registry[name]

    def get_llm_class(self, name: str):
        return self.get_model_class(name, RegistryEnum.LLM)

    def get_embedding_model_class(self, name: str):
        return self.get_model_class(name, RegistryEnum.EMBEDDING_MODEL)

    def get_token_counter_class(self, name: str):
        return self.get_model_class(name, RegistryEnum.TOKEN_COUNTER)

    def get_extractor_class(self, name: str):
        return self.get_model_class(name, RegistryEnum.EXTRACTOR)

    def get_postprocessor_class(self, name: str):
        return self.get_model_class(name, RegistryEnum.POSTPROCESSOR)

    def get_node_parser_class(self, name: str):
        return self.get_model_class(name, RegistryEnum.NODE_PARSER)

    def _build(self, register_type: RegistryEnum, name: str):
        key = (register_type, name)
        if key in self.instance_dict:
            return self.instance_dict[key]

        if self.service_config is None:
            raise ConfigInvalidError("service_config is not initialised, call init_by_service_config first")

        section: dict = getattr(self.service_config, register_type.value)
        if name not in section:
            raise NotFoundError(f"{register_type.value} config name={name} not found, available={list(section.keys())}")

        config = section[name]
        cls = self.get_model_class(config.backend, register_type)
        instance = cls(model_name=config.model_name, **config.params)
        logger.info(f"build {register_type.value} name={name} backend={config.backend} model={config.model_name}")
        self.instance_dict[key] = instance
        return instance

    def build_llm(self, name: str = "default"):
        return self._build(RegistryEnum.LLM, name)

    def build_embedding_model(self, name: str = "default"):
        return self._build(RegistryEnum.EMBEDDING_MODEL, name)

    def build_token_counter(self, name: str = "default"):
        return self._build(RegistryEnum.TOKEN_COUNTER, name)


C = ServiceContext()
