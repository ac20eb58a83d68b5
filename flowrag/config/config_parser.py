"""Configuration parser module for flowrag."""

from loguru import logger

from ..core.context import C
from ..core.schema import ServiceConfig
from ..core.utils import PydanticConfigParser, init_logger


class ConfigParser(PydanticConfigParser[ServiceConfig]):
    """Parser for `ServiceConfig` that looks up YAML files in this directory first."""

    current_file: str = __file__

    def __init__(self):
        super().__init__(ServiceConfig)


def init_service(*args: str, **kwargs) -> ServiceConfig:
    """Parse `args` and keyword overrides, configure logging and install the result into `C`.

    Example:
        ```python
        config = init_service("config=default", "workflow.timeout=5", logger__level="DEBUG")
        llm = C.build_llm("default")
        ```
    """
    parser = ConfigParser()
    config = parser.parse_args(*args)
    if kwargs:
        config = parser.update_config(**kwargs)

    init_logger(log_dir=config.logger.log_dir, level=config.logger.level, enable_file=config.logger.enable_file)
    C.init_by_service_config(config)
    logger.info(f"service initialised language={config.language!r} llm={list(config.llm)}")
    return config
