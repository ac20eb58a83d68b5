"""One node per markdown header section.

Header lines inside fenced code blocks do not start sections. Each node gets
a `header_path` like `/Guide/Install/` naming its own header and the
headers enclosing it. Sections are not size-bounded; run a sentence parser's
`parse_nodes` over the result when chunks must fit a budget.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from .base_node_parser import BaseNodeParser
from ..context import C
from ..schema import BaseNode

DEFAULT_HEADER_PATH_KEY = "header_path"
DEFAULT_HEADER_PATH_SEPARATOR = "/"

_HEADER = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_FENCE = re.compile(r"^(```|~~~)")


def parse_header(line: str) -> Optional[Tuple[int, str]]:
    """Return `(level, title)` of an ATX header line, or None."""
    match = _HEADER.match(line.strip())
    if match is None:
        return None
    return len(match.group(1)), match.group(2)


def split_markdown_sections(text: str) -> List[str]:
    sections: List[str] = []
    current: List[str] = []
    fence: str = ""
    for line in text.splitlines(keepends=True):
        stripped = line.strip()
        fence_match = _FENCE.match(stripped)
        if fence_match:
            if not fence:
                fence = fence_match.group(1)
            elif fence_match.group(1) == fence:
                fence = ""
        elif not fence and current and parse_header(stripped):
            sections.append("".join(current))
            current = []
        current.append(line)

    if current:
        sections.append("".join(current))
    return [s.strip() for s in sections if s.strip()]


@C.register_node_parser("markdown")
class MarkdownNodeParser(BaseNodeParser):

    def __init__(
        self,
        header_path_key: str = DEFAULT_HEADER_PATH_KEY,
        header_path_separator: str = DEFAULT_HEADER_PATH_SEPARATOR,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.header_path_key: str = header_path_key
        self.header_path_separator: str = header_path_separator

    def split_node_text(self, node: BaseNode) -> List[str]:
        return split_markdown_sections(node.text)

    def split_metadata(self, splits: List[str], index: int) -> Dict[str, Any]:
        stack: List[Tuple[int, str]] = []
        for section in splits[: index + 1]:
            header = parse_header(section.split("\n", 1)[0])
            if header is None:
                continue
            while stack and stack[-1][0] >= header[0]:
                stack.pop()
            stack.append(header)

        sep = self.header_path_separator
        path = sep + sep.join(title for _, title in stack) + sep if stack else sep
        return {self.header_path_key: path}
