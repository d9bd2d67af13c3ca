"""
Testsuite-MCP Search Engine

Goal-to-command search over the test index:

1. Decompose the goal into tokens
2. Rank tests (stage 1), then score their subtest commands (stage 2)
3. Deduplicate and truncate the command pool
4. Clean test-suite artifacts out of each winning command
5. Statically validate the cleaned command against the tool documentation

An empty pool is reported as ``NO_MATCH``; there is no fallback ranking.
Also hosts the keyword test search used by ``find_tests_by_keywords`` and
the output formatters.
"""

import json
import logging
import shutil
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from testsuite_mcp.core.cleaner import clean_command
from testsuite_mcp.core.config import TestsuiteConfig
from testsuite_mcp.core.docs import GpacDocs, MP4BoxDocs, is_mp4box_command
from testsuite_mcp.core.engine import (
    TestRecord, normalize, rank_commands, rank_tests,
)
from testsuite_mcp.core.indexer import TestIndex
from testsuite_mcp.core.validator import ValidationResult, validate_command

logger = logging.getLogger(__name__)

NO_MATCH = "NO_MATCH"


# =============================================================================
# Result types
# =============================================================================

@dataclass
class CommandResult:
    """A ranked, cleaned and (optionally) validated command."""
    test: str
    subtest: str
    description: str
    command: str
    score: float
    confidence: str
    original_command: str = ""
    changes: List[str] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    documentation_available: bool = False

    @property
    def validated(self) -> bool:
        """True when validation ran against real documentation and passed."""
        return (self.validation is not None
                and self.documentation_available
                and self.validation.valid)

    def to_dict(self, max_desc_chars: int = 180) -> dict:
        out: Dict[str, Any] = {
            "test": self.test,
            "subtest": self.subtest,
            "description": (self.description or "")[:max_desc_chars],
            "command": self.command,
            "confidence": self.confidence,
            "validated": self.validated,
        }
        if self.changes:
            out["original_command"] = self.original_command
            out["changes"] = list(self.changes)
        if self.validation is not None:
            if self.validation.errors:
                out["validationErrors"] = [e.to_dict() for e in self.validation.errors]
            if self.validation.warnings:
                out["validationWarnings"] = list(self.validation.warnings)
        return out


@dataclass
class SearchOutcome:
    """Result of one goal query: either ranked commands or ``NO_MATCH``."""
    query: str
    tokens: List[str] = field(default_factory=list)
    commands: List[CommandResult] = field(default_factory=list)

    @property
    def no_match(self) -> bool:
        return not self.commands

    @property
    def note(self) -> str:
        if self.no_match:
            return f'No matching commands found for "{self.query}".'
        return f"Found {len(self.commands)} relevant command(s)."

    def to_dict(self, max_desc_chars: int = 180) -> dict:
        if self.no_match:
            return {"error": NO_MATCH, "query": self.query}
        return {
            "total": len(self.commands),
            "commands": [c.to_dict(max_desc_chars) for c in self.commands],
            "note": self.note,
        }


# =============================================================================
# Search engine
# =============================================================================

class CommandSearchEngine:
    """
    Query engine over a :class:`TestIndex`.

    The documentation indexes are built lazily on the first validation and
    shared across queries; everything else is recomputed per query from the
    read-only index.
    """

    def __init__(
        self,
        index: TestIndex,
        config: TestsuiteConfig | None = None,
        gpac_docs: GpacDocs | None = None,
        mp4box_docs: MP4BoxDocs | None = None,
    ):
        self._config = config or TestsuiteConfig.from_env()
        self.index = index
        self.gpac_docs = gpac_docs or GpacDocs(self._config)
        self.mp4box_docs = mp4box_docs or MP4BoxDocs(self._config)

    # ── Goal → commands ───────────────────────────────────────────

    def find_commands(self, goal: str, limit: int | None = None,
                      validate: bool | None = None) -> SearchOutcome:
        """
        Return the best verified commands for a natural-language *goal*.

        Args:
            goal: What the user wants to do (e.g. "dash with encryption").
            limit: Number of commands (1..``find_max_limit``).
            validate: Override ``config.validate_commands``.

        Raises:
            ConfigError: If *limit* is out of range.
        """
        cfg = self._config
        lim = cfg.resolve_limit(limit, find=True)
        do_validate = cfg.validate_commands if validate is None else validate

        tokens, candidates = rank_commands(
            self.index, goal, lim, cfg.find_max_limit,
            stop_words=cfg.stop_words, policy=cfg.scoring,
        )
        outcome = SearchOutcome(query=goal, tokens=tokens)
        if not candidates:
            logger.info(f"Goal '{goal}' → tokens {tokens} → no match")
            return outcome

        budget = lim * cfg.option_probes_per_command
        for cand in candidates:
            cleaned = clean_command(cand.command)
            result = CommandResult(
                test=cand.test,
                subtest=cand.subtest,
                description=cand.description,
                command=cleaned.cleaned,
                score=cand.score,
                confidence="high" if cand.score > cfg.high_confidence_score else "medium",
                original_command=cand.command,
                changes=cleaned.changes,
            )
            if do_validate:
                result.validation = validate_command(
                    cleaned.cleaned, self.gpac_docs, self.mp4box_docs,
                    max_probes=budget,
                )
                budget = max(0, budget - result.validation.probes)
                result.documentation_available = self._docs_available(cleaned.cleaned)
            outcome.commands.append(result)

        logger.info(f"Goal '{goal}' → tokens {tokens} → {len(outcome.commands)} command(s)")
        return outcome

    def _docs_available(self, command: str) -> bool:
        docs = self.mp4box_docs if is_mp4box_command(command) else self.gpac_docs
        return docs.available

    def validate(self, command: str) -> ValidationResult:
        """Validate a single command line (no probe limit)."""
        return validate_command(command, self.gpac_docs, self.mp4box_docs)

    # ── Keyword test search ───────────────────────────────────────

    def find_tests(self, keywords: Iterable[str], limit: int | None = None,
                   offset: int = 0, include_subtests: bool = False) -> Dict[str, Any]:
        """
        Rank tests by the stage-1 scorer for explicit *keywords*.

        Empty or blank keywords produce an error payload with no tests.

        Raises:
            ConfigError: If *limit* is out of range.
        """
        lim = self._config.resolve_limit(limit)
        offset = max(0, offset)
        clean = [normalize(k).strip() for k in keywords if k and k.strip()]
        if not clean:
            return {
                "total": 0, "offset": offset, "limit": lim, "returned": 0,
                "tests": [], "error": "No valid keywords provided",
            }

        matches = [s.test for s in rank_tests(self.index, clean, self._config.scoring)]
        page = matches[offset:offset + lim]
        return {
            "total": len(matches),
            "offset": offset,
            "limit": lim,
            "returned": len(page),
            "tests": self.summarize(page, include_subtests),
        }

    def list_tests(self, limit: int | None = None, offset: int = 0,
                   include_subtests: bool = False) -> Dict[str, Any]:
        """Page through the whole index in name order."""
        lim = self._config.resolve_limit(limit)
        offset = max(0, offset)
        tests = self.index.list_tests()
        page = tests[offset:offset + lim]
        return {
            "total": len(tests),
            "offset": offset,
            "limit": lim,
            "returned": len(page),
            "tests": self.summarize(page, include_subtests),
        }

    def summarize(self, tests: Iterable[TestRecord], include_subtests: bool = True) -> List[dict]:
        """Lightweight test summaries, without commands, to keep payloads small."""
        max_chars = self._config.max_desc_chars
        out = []
        for test in tests:
            item: Dict[str, Any] = {
                "name": test.name,
                "desc": (test.description or "")[:max_chars],
                "keywords": list(test.keywords),
                "subtestCount": len(test.subtests),
            }
            if include_subtests:
                item["subtests"] = [
                    {"name": s.name, "desc": (s.description or "")[:max_chars]}
                    for s in test.subtests
                ]
            out.append(item)
        return out


# =============================================================================
# Formatting
# =============================================================================

class ResultFormatter:
    """Format search outcomes for different output modes."""

    @staticmethod
    def format_json(outcome: SearchOutcome, max_desc_chars: int = 180) -> str:
        return json.dumps(outcome.to_dict(max_desc_chars), indent=2, ensure_ascii=False)

    @staticmethod
    def format_console(outcome: SearchOutcome, elapsed_time: float | None = None) -> str:
        """Human-friendly listing with the cleaned command and any validation notes."""
        if outcome.no_match:
            return f"\n  {NO_MATCH}: {outcome.note}\n"

        width = min(shutil.get_terminal_size().columns, 78)
        thin = "─" * width
        total = len(outcome.commands)
        header = f"  TESTSUITE — {total} command{'s' if total != 1 else ''}"
        if elapsed_time is not None:
            header += f" in {elapsed_time:.3f} seconds"

        out: List[str] = [f"\n{thin}", header, thin]
        for idx, r in enumerate(outcome.commands, start=1):
            out.append("")
            out.append(f"  #{idx}  {r.test}#{r.subtest}  ({r.confidence}, score {r.score:.0f})")
            if r.description:
                out.append(f"    {r.description}")
            out.append(f"    $ {r.command}")
            if r.changes:
                out.append(f"    original: {r.original_command}")
                for change in r.changes:
                    out.append(f"      - {change}")
            if r.validation is not None:
                status = "validated" if r.validated else (
                    "unconfirmed" if r.validation.valid else "INVALID"
                )
                out.append(f"    validation: {status}")
                for err in r.validation.errors:
                    line = f"      ! {err.message}"
                    if err.suggestion:
                        line += f" ({err.suggestion})"
                    out.append(line)
        out.append(f"\n{thin}")
        return "\n".join(out)
