"""Configuration module for flowrag.

- ConfigParser: `PydanticConfigParser` bound to `ServiceConfig` that resolves
  YAML files bundled next to this module
- init_service: parse a configuration and install it into the service context
"""

from .config_parser import ConfigParser, init_service

__all__ = [
    "ConfigParser",
    "init_service",
]
