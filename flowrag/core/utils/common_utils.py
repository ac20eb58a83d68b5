"""Common helpers shared across flowrag.

- camelCase to snake_case conversion used for default component names
- one-shot `.env` loading
- the `singleton` class decorator used by the service context
- ISO-8601 rendering of elapsed seconds for trace payloads
"""

import os
import re
from pathlib import Path

from loguru import logger

ENV_LOADED = False


def camel_to_snake(content: str) -> str:
    """Convert a CamelCase class name to snake_case.

    Example:
        ```python
        camel_to_snake("TitleExtractor")
        # 'title_extractor'
        camel_to_snake("MockLLM")
        # 'mock_llm'
        ```
    """
    content = content.replace("LLM", "Llm")
    return re.sub(r"(?<!^)(?=[A-Z])", "_", content).lower()


def _load_env(path: Path):
    with path.open(encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            key, sep, value = line.partition("=")
            if sep:
                os.environ[key.strip()] = value.strip().strip('"')


def load_env(path: str | Path = None, enable_log: bool = True):
    """Load `KEY=VALUE` pairs from a `.env` file into `os.environ`.

    Runs at most once per process. Without an explicit path the current
    directory and up to four parents are searched.

    Args:
        path: Optional explicit path to the `.env` file.
        enable_log: Log the path that was loaded.
    """
    global ENV_LOADED
    if ENV_LOADED:
        return

    if path is not None:
        path = Path(path)
        if path.exists():
            _load_env(path)
            ENV_LOADED = True
        return

    for i in range(5):
        path = Path("../" * i + ".env")
        if path.exists():
            if enable_log:
                logger.info(f"load env_path={path}")
            _load_env(path)
            ENV_LOADED = True
            return

    logger.debug(".env not found")


def singleton(cls):
    """Class decorator returning the same instance on every instantiation."""
    _instance = {}

    def _singleton(*args, **kwargs):
        if cls not in _instance:
            _instance[cls] = cls(*args, **kwargs)
        return _instance[cls]

    return _singleton


def format_duration(seconds: float) -> str:
    """Render elapsed seconds as an ISO-8601 duration, e.g. `PT1M2.5S`.

    Args:
        seconds: Non-negative elapsed time.

    Returns:
        The ISO-8601 duration string. Zero renders as `PT0S`.
    """
    seconds = max(float(seconds), 0.0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)

    parts = ["PT"]
    if hours:
        parts.append(f"{int(hours)}H")
    if minutes:
        parts.append(f"{int(minutes)}M")
    if secs or len(parts) == 1:
        secs_str = f"{secs:.6f}".rstrip("0").rstrip(".")
        parts.append(f"{secs_str}S")
    return "".join(parts)
