"""flowrag: node parsing, metadata extraction, retrieval postprocessing and event-driven workflows."""

import os

os.environ.setdefault("FLOWRAG_APP_NAME", "FlowRAG")

from .core.utils import load_env  # noqa: E402  # pylint: disable=wrong-import-position

load_env(enable_log=False)

from . import core  # noqa: E402, F401  # pylint: disable=wrong-import-position,unused-import

__version__ = "0.1.0"
