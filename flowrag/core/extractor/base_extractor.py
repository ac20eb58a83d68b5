"""Base classes of metadata extractors.

An extractor maps a batch of nodes to one metadata dict per node.
`process_nodes` merges those dicts into the nodes only after the whole
batch succeeded, so no reader observes half-written metadata.
"""

import contextvars
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from loguru import logger
from tqdm import tqdm

from ..context import CancelToken, PromptHandler
from ..enumeration import CBEventType, EventPayload, MetadataMode, NodeType
from ..exceptions import LLMFailedError, LLMRequiredError
from ..schema import BaseNode
from ..utils import Timer

R = TypeVar("R")

DEFAULT_NODE_TEXT_TEMPLATE = """[Excerpt from document]
{metadata_str}
Excerpt:
-----
{content}
-----
"""

_TEXT_KINDS = (NodeType.TEXT, NodeType.DOCUMENT)


class BaseExtractor(ABC):
    """Concurrent, order-preserving metadata extraction.

    Args:
        name: Display name, defaults to the class name.
        is_text_node_only: Non-text nodes get an empty metadata dict.
        metadata_mode: Mode used to render node content for prompts.
        in_place: Mutate the given nodes; otherwise work on deep copies.
        num_workers: Size of the worker pool.
        show_progress: Show a tqdm bar over completed work items.
        node_text_template: Template set as `text_template` on processed nodes
            when `rewrite_template` is on.
        rewrite_template: Apply `node_text_template` to processed nodes.
        callback_manager: Optional `CallbackManager` receiving `extraction` events.
    """

    def __init__(
        self,
        name: str = "",
        is_text_node_only: bool = True,
        metadata_mode: MetadataMode = MetadataMode.ALL,
        in_place: bool = True,
        num_workers: int = 4,
        show_progress: bool = False,
        node_text_template: str = DEFAULT_NODE_TEXT_TEMPLATE,
        rewrite_template: bool = False,
        callback_manager=None,
    ):
        self.name: str = name or self.__class__.__name__
        self.is_text_node_only: bool = is_text_node_only
        self.metadata_mode: MetadataMode = metadata_mode
        self.in_place: bool = in_place
        self.num_workers: int = max(1, num_workers)
        self.show_progress: bool = show_progress
        self.node_text_template: str = node_text_template
        self.rewrite_template: bool = rewrite_template
        self.callback_manager = callback_manager

    @abstractmethod
    def extract(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        """Return one metadata dict per node, in input order."""

    def get_node_content(self, node: BaseNode) -> str:
        return node.get_content(metadata_mode=self.metadata_mode)

    def should_process(self, node: BaseNode) -> bool:
        return not self.is_text_node_only or node.node_type in _TEXT_KINDS

    def run_jobs(
        self,
        fn: Callable[[Any], R],
        items: Sequence[Any],
        cancel_token: Optional[CancelToken] = None,
        desc: str = "",
    ) -> List[R]:
        """Apply `fn` to every item on the worker pool; results follow input order.

        The first failure (in completion order) fails the batch and pending
        items are not started. Items are not started once `cancel_token` trips.
        """
        if not items:
            return []

        def _job(item):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            return fn(item)

        results: List[Optional[R]] = [None] * len(items)
        with ThreadPoolExecutor(max_workers=self.num_workers) as pool:
            futures: Dict[Future, int] = {}
            for i, item in enumerate(items):
                ctx = contextvars.copy_context()
                futures[pool.submit(ctx.run, _job, item)] = i

            try:
                for future in tqdm(
                    as_completed(futures),
                    total=len(futures),
                    desc=desc or self.name,
                    disable=not self.show_progress,
                ):
                    results[futures[future]] = future.result()
            except Exception:
                for future in futures:
                    future.cancel()
                raise

        return results

    def process_nodes(self, nodes: Sequence[BaseNode], cancel_token: Optional[CancelToken] = None) -> List[BaseNode]:
        """Extract metadata and merge it into the nodes (or into copies when not `in_place`)."""
        if not nodes:
            return []

        new_nodes = list(nodes) if self.in_place else [node.model_copy(deep=True) for node in nodes]

        with Timer(f"{self.name}.process_nodes size={len(new_nodes)}"):
            if self.callback_manager is None:
                metadata_list = self.extract(new_nodes, cancel_token)
            else:
                with self.callback_manager.event(CBEventType.EXTRACTION, {EventPayload.NODES: new_nodes}) as event:
                    metadata_list = self.extract(new_nodes, cancel_token)
                    event.on_end({EventPayload.RESPONSE: metadata_list})

        for node, metadata in zip(new_nodes, metadata_list):
            if self.rewrite_template:
                node.text_template = self.node_text_template
            node.update_metadata(metadata)
        return new_nodes

    def __call__(self, nodes: Sequence[BaseNode], **kwargs) -> List[BaseNode]:
        return self.process_nodes(nodes, **kwargs)


class LLMExtractor(BaseExtractor):
    """Extractor that prompts an LLM collaborator.

    Prompt templates live in `extractor_prompt.yaml` next to this module.
    """

    prompt_file_path: Path = Path(__file__).parent / "extractor_prompt.yaml"

    def __init__(self, llm=None, language: str = "", **kwargs):
        super().__init__(**kwargs)
        self.llm = llm
        self.prompt = PromptHandler(language=language).load_prompt_by_file(self.prompt_file_path)

    def check_llm(self):
        if self.llm is None:
            raise LLMRequiredError(f"extractor={self.name} requires an llm")

    def complete(self, prompt: str) -> str:
        """Call the LLM, wrapping any provider error as `LLMFailedError`."""
        try:
            return self.llm.complete(prompt).strip()
        except LLMFailedError:
            raise
        except Exception as e:
            logger.exception(f"extractor={self.name} llm call failed")
            raise LLMFailedError(f"extractor={self.name} llm call failed", cause=e) from e

    def prompt_format(self, prompt_name: str, **kwargs) -> str:
        return self.prompt.prompt_format(prompt_name, **kwargs)
