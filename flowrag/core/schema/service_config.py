"""Configuration schema for flowrag components."""

import os
from typing import Dict

from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """Named LLM backend: registry key, model name and constructor params."""

    backend: str = Field(default="")
    model_name: str = Field(default="")
    params: dict = Field(default_factory=dict)


class EmbeddingModelConfig(BaseModel):
    """Named embedding backend."""

    backend: str = Field(default="")
    model_name: str = Field(default="")
    params: dict = Field(default_factory=dict)


class TokenCounterConfig(BaseModel):
    """Named tokenizer backend."""

    backend: str = Field(default="base")
    model_name: str = Field(default="")
    params: dict = Field(default_factory=dict)


class NodeParserConfig(BaseModel):
    """Defaults for sentence-based node parsing."""

    chunk_size: int = Field(default=1024, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    paragraph_separator: str = Field(default="\n\n\n")
    separator: str = Field(default=" ")
    secondary_chunking_regex: str = Field(default="[^,.;。？！]+[,.;。？！]?|[,.;。？！]")
    include_metadata: bool = Field(default=True)
    include_prev_next_rel: bool = Field(default=True)
    show_progress: bool = Field(default=False)


class ExtractorConfig(BaseModel):
    """Defaults shared by metadata extractors."""

    num_workers: int = Field(default=4, gt=0)
    in_place: bool = Field(default=True)
    show_progress: bool = Field(default=False)


class RetryPolicyConfig(BaseModel):
    """Exponential backoff settings for a workflow step; delays in seconds."""

    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=0.1, ge=0)
    max_delay: float = Field(default=5.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1.0)


class WorkflowConfig(BaseModel):
    """Dispatcher defaults."""

    num_workers: int = Field(default_factory=lambda: os.cpu_count() or 4, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    verbose: bool = Field(default=False)
    retry_policy: RetryPolicyConfig | None = Field(default=None)


class MemoryConfig(BaseModel):
    """Token limits for chat memory buffers."""

    token_limit: int = Field(default=3000, gt=0)
    summary_token_limit: int = Field(default=2000, gt=0)
    token_limit_ratio: float = Field(default=0.75, gt=0, le=1)


class LoggerConfig(BaseModel):
    log_dir: str = Field(default="logs")
    level: str = Field(default="INFO")
    enable_file: bool = Field(default=False)


class ServiceConfig(BaseModel):
    """Top-level configuration aggregating every component section."""

    language: str = Field(default="")
    logger: LoggerConfig = Field(default_factory=LoggerConfig)
    llm: Dict[str, LLMConfig] = Field(default_factory=dict)
    embedding_model: Dict[str, EmbeddingModelConfig] = Field(default_factory=dict)
    token_counter: Dict[str, TokenCounterConfig] = Field(default_factory=dict)
    node_parser: NodeParserConfig = Field(default_factory=NodeParserConfig)
    extractor: ExtractorConfig = Field(default_factory=ExtractorConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    metadata: dict = Field(default_factory=dict)
