from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from agent_sandbox.core.tool_result import ToolResult
from agent_sandbox.tools.base import BuiltinTool

_log = logging.getLogger(__name__)

SKIP_DIRS = {".git", ".not-needed", "node_modules", "__pycache__", ".venv", "venv"}
MAX_FILE_BYTES = 1024 * 1024
_STOP_WORDS = {"the", "and", "how", "what", "where", "which", "does", "for", "with", "are", "this", "that"}

SCHEMA = {
    "name": "search_code",
    "description": "Search the codebase for relevant code snippets.",
    "properties": {
        "query": {"type": "string", "description": "What to look for, in words or identifiers."},
        "max_results": {"type": "integer", "description": "Maximum number of files to return. Default: 5."},
    },
    "required": ["query"],
    "example": {"query": "how is authentication handled?"},
}


@dataclass
class SearchHit:
    file_path: str
    content: str
    score: int


class Searcher(Protocol):
    def search(self, query: str, limit: int = 5) -> List[SearchHit]:
        ...


class TextSearcher:
    """Keyword search over the text files under a root.

    The query is split into words; files are ranked by how many distinct
    words they contain, then by total hits. Each hit carries the matching
    lines with ``context_lines`` of surrounding text.
    """

    def __init__(self, root: str | Path, context_lines: int = 2) -> None:
        self.root = Path(root).resolve()
        self.context_lines = context_lines

    def search(self, query: str, limit: int = 5) -> List[SearchHit]:
        terms = _terms(query)
        if not terms:
            return []
        regex = re.compile("|".join(re.escape(t) for t in terms), re.IGNORECASE)

        hits: List[SearchHit] = []
        for file_path in self._iter_files():
            try:
                lines = file_path.read_text(encoding="utf-8", errors="replace").splitlines()
            except OSError:
                continue

            matched_lines = []
            found_terms = set()
            for i, line in enumerate(lines):
                found = regex.findall(line)
                if found:
                    matched_lines.append(i)
                    found_terms.update(f.lower() for f in found)
            if not matched_lines:
                continue

            score = len(found_terms) * 1000 + len(matched_lines)
            rel = file_path.relative_to(self.root).as_posix()
            hits.append(SearchHit(rel, self._snippet(lines, matched_lines), score))

        hits.sort(key=lambda h: (-h.score, h.file_path))
        return hits[: max(1, limit)]

    def _iter_files(self):
        stack = [self.root]
        while stack:
            directory = stack.pop()
            try:
                children = sorted(directory.iterdir())
            except OSError:
                continue
            for child in children:
                if child.name.startswith(".") or child.name in SKIP_DIRS:
                    continue
                if child.is_symlink():
                    continue
                if child.is_dir():
                    stack.append(child)
                elif child.is_file() and child.stat().st_size <= MAX_FILE_BYTES:
                    yield child

    def _snippet(self, lines: List[str], matched: List[int], max_blocks: int = 3) -> str:
        blocks = []
        for i in matched[:max_blocks]:
            start = max(0, i - self.context_lines)
            end = min(len(lines), i + self.context_lines + 1)
            blocks.append("\n".join(lines[start:end]))
        return "\n...\n".join(blocks)


def _terms(query: str) -> List[str]:
    words = re.findall(r"[A-Za-z0-9_]+", query)
    # Short words like "is" and "how" match everywhere
    seen: List[str] = []
    for word in words:
        lower = word.lower()
        if len(lower) >= 3 and lower not in _STOP_WORDS and lower not in seen:
            seen.append(lower)
    return seen


class SearchCodeTool(BuiltinTool):
    SCHEMA = SCHEMA
    PRIMARY_ARG = "query"

    def __init__(
        self,
        project_root: str,
        searcher: Optional[Searcher] = None,
        policy: Optional[Dict[str, Any]] = None,
        audit_log: Optional[str] = None,
    ) -> None:
        super().__init__(project_root, policy, audit_log)
        self._searcher = searcher or TextSearcher(project_root)

    def execute(self, args: Dict[str, Any]) -> ToolResult:
        query: str = args["query"]
        limit = max(1, int(args.get("max_results", 5)))
        try:
            hits = self._searcher.search(query, limit=limit)
        except Exception as exc:
            _log.error("Code search failed for %r: %s", query, exc)
            return ToolResult.failure("SEARCH_ERROR", f"Error searching code: {exc}")

        if not hits:
            return ToolResult.success(data={"output": "No relevant code found.", "hits": []})
        text = "\n".join(f"File: {h.file_path}\nContent:\n{h.content}\n---\n" for h in hits)
        return ToolResult.success(
            data={"output": text, "hits": [h.file_path for h in hits]},
            message=f"Found {len(hits)} file(s)",
        )
