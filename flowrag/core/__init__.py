"""Core package for flowrag.

Building blocks of a retrieval-augmented generation pipeline:

- Node parsing: sentence and token splitters that chunk documents into nodes
- Extractors: concurrent LLM metadata enrichment (titles, keywords, questions, summaries)
- Postprocessors: filtering, reweighting and reordering of retrieved nodes
- Workflow: event-driven step execution with retries, middleware and streaming
- Memory: token-bounded and summarising chat history buffers
- Callbacks: hierarchical event tracing with pluggable handlers
- Object index: retrieval of arbitrary objects, such as tools, through node embeddings
- Context, schema, LLM, embedding model, token and utility support modules

Typical usage:
    from flowrag.core.node_parser import SentenceSplitter
    from flowrag.core.workflow import Workflow, StartEvent, StopEvent
"""

from . import callbacks
from . import context
from . import embedding_model
from . import enumeration
from . import extractor
from . import llm
from . import memory
from . import node_parser
from . import obj_index
from . import postprocessor
from . import schema
from . import token
from . import tool
from . import utils
from . import workflow

__all__ = [
    "callbacks",
    "context",
    "embedding_model",
    "enumeration",
    "extractor",
    "llm",
    "memory",
    "node_parser",
    "obj_index",
    "postprocessor",
    "schema",
    "token",
    "tool",
    "utils",
    "workflow",
]
