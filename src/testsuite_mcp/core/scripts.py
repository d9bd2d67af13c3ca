"""
Testsuite-MCP Script Index

Loads the test-suite shell scripts (``*.sh``) into memory so tools can read
line ranges and grep them without touching the filesystem per request.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from tqdm import tqdm

from testsuite_mcp.exceptions import ScriptNotFoundError, SearchError

logger = logging.getLogger(__name__)


@dataclass
class ScriptIndex:
    """In-memory copy of every ``*.sh`` file under a scripts directory."""

    content: Dict[str, str] = field(default_factory=dict)

    @property
    def files(self) -> List[str]:
        return list(self.content)

    def load(self, scripts_dir: str | Path, show_progress: bool = False) -> int:
        """
        (Re)load all scripts below *scripts_dir*.

        Unreadable files are logged and skipped; a missing directory yields
        an empty index.  Returns the number of files loaded.
        """
        root = Path(scripts_dir)
        self.content = {}
        if not root.is_dir():
            logger.warning(f"Scripts directory not found: {root}")
            return 0

        paths = sorted(root.rglob("*.sh"))
        for path in tqdm(paths, desc="Loading scripts", unit="file", disable=not show_progress):
            try:
                self.content[str(path)] = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.error(f"Failed to load script {path}: {exc}")
        logger.info(f"Loaded {len(self.content)} scripts from {root}")
        return len(self.content)

    def read_segment(self, path: str, start_line: int, end_line: int) -> str:
        """
        Return lines *start_line*..*end_line* (1-based, inclusive) of *path*.

        Out-of-range bounds are clamped to the file.

        Raises:
            ScriptNotFoundError: If *path* was never loaded.
        """
        text = self.content.get(path)
        if text is None:
            text = self.content.get(str(Path(path)))
        if text is None:
            raise ScriptNotFoundError(f"Script not found: {path}")
        lines = text.split("\n")
        start = max(0, start_line - 1)
        end = min(len(lines), end_line)
        return "\n".join(lines[start:end])

    def search(self, pattern: str, context: int = 3) -> List[Dict[str, Any]]:
        """
        Case-insensitive regex search across all loaded scripts.

        Each hit carries the file, 1-based line number, the stripped line
        and ``context`` surrounding lines on each side.

        Raises:
            SearchError: If *pattern* is not a valid regular expression.
        """
        try:
            regex = re.compile(pattern, re.IGNORECASE)
        except re.error as exc:
            raise SearchError(f"Invalid search pattern {pattern!r}: {exc}") from exc

        results: List[Dict[str, Any]] = []
        for file_path, text in self.content.items():
            lines = text.split("\n")
            for idx, line in enumerate(lines):
                if not regex.search(line):
                    continue
                first = max(0, idx - context)
                last = min(len(lines) - 1, idx + context)
                results.append({
                    "file": file_path,
                    "line": idx + 1,
                    "match": line.strip(),
                    "context": [
                        {"line": n + 1, "content": lines[n]}
                        for n in range(first, last + 1)
                    ],
                })
        return results
