"""
Testsuite-MCP Client Facade

Single entry point for programmatic use of Testsuite-MCP.  Wraps command
search, test lookup, validation and the script index behind an
instance-based API with optional async support.

Usage::

    from testsuite_mcp import Testsuite

    # From environment variables
    client = Testsuite()

    # With explicit configuration
    from testsuite_mcp.core.config import TestsuiteConfig
    client = Testsuite(config=TestsuiteConfig(
        xml_tests_path="./all_tests_descriptions.xml",
        validate_commands=False,
    ))

    # Goal → commands
    outcome = client.find_commands("dash with encryption", limit=3)
    for cmd in outcome.commands:
        print(f"{cmd.test}#{cmd.subtest}: {cmd.command}")

    # Async variants (for async services)
    outcome = await client.afind_commands("extract audio track")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from testsuite_mcp.core.config import TestsuiteConfig
from testsuite_mcp.core.docs import GpacDocs, MP4BoxDocs
from testsuite_mcp.core.indexer import TestIndex
from testsuite_mcp.core.scripts import ScriptIndex
from testsuite_mcp.core.search import CommandSearchEngine, SearchOutcome
from testsuite_mcp.core.validator import ValidationResult

logger = logging.getLogger(__name__)


class Testsuite:
    """
    High-level Testsuite-MCP client.

    Each instance carries its own :class:`TestsuiteConfig`.  The test index
    is loaded on first use and then treated as read-only; the script index
    and documentation indexes are likewise built lazily.

    Args:
        config: Explicit configuration object.  When *None*, a config
            is built from environment variables or keyword overrides.
        index: Pre-built :class:`TestIndex` (skips loading the XML corpus).
        gpac_docs: Pre-built gpac documentation index.
        mp4box_docs: Pre-built MP4Box documentation index.
        validate_on_init: If True, call :meth:`TestsuiteConfig.validate`
            in __init__ so invalid limits surface immediately.
        **kwargs: Forwarded to :class:`TestsuiteConfig` when *config* is
            ``None`` (e.g. ``xml_tests_path="..."``).
    """

    __test__ = False

    def __init__(
        self,
        config: TestsuiteConfig | None = None,
        *,
        index: TestIndex | None = None,
        gpac_docs: GpacDocs | None = None,
        mp4box_docs: MP4BoxDocs | None = None,
        validate_on_init: bool = False,
        **kwargs,
    ):
        if config is not None:
            self._config = config
        elif kwargs:
            # Build a config from env, then overlay keyword overrides
            base = TestsuiteConfig.from_env()
            merged = {
                f.name: kwargs.get(f.name, getattr(base, f.name))
                for f in base.__dataclass_fields__.values()
            }
            self._config = TestsuiteConfig(**merged)
        else:
            self._config = TestsuiteConfig.from_env()

        if validate_on_init:
            self._config.validate()

        self._index = index
        self._gpac_docs = gpac_docs
        self._mp4box_docs = mp4box_docs
        self._engine: CommandSearchEngine | None = None
        self._scripts: ScriptIndex | None = None

    # ── Configuration & lazy state ────────────────────────────────

    @property
    def config(self) -> TestsuiteConfig:
        """The active configuration for this client."""
        return self._config

    @property
    def index(self) -> TestIndex:
        """The test index, loaded from the configured corpus on first access."""
        if self._index is None:
            self._index = TestIndex.load(self._config)
        return self._index

    @property
    def engine(self) -> CommandSearchEngine:
        if self._engine is None:
            self._engine = CommandSearchEngine(
                self.index, config=self._config,
                gpac_docs=self._gpac_docs, mp4box_docs=self._mp4box_docs,
            )
        return self._engine

    @property
    def scripts(self) -> ScriptIndex:
        """The script index, loaded from ``config.scripts_dir`` on first access."""
        if self._scripts is None:
            self._scripts = ScriptIndex()
            self._scripts.load(self._config.scripts_dir)
        return self._scripts

    def reload(self) -> int:
        """Rebuild the test index from disk.  Returns the number of tests."""
        self._index = TestIndex.load(self._config)
        self._engine = None
        return len(self._index)

    # ── Command search ────────────────────────────────────────────

    def find_commands(
        self,
        goal: str,
        *,
        limit: int | None = None,
        validate: bool | None = None,
    ) -> SearchOutcome:
        """
        Find real test-suite commands that accomplish *goal*.

        Args:
            goal: Natural-language goal, e.g. ``"dash with encryption"``.
            limit: Commands to return (1..``find_max_limit``).
            validate: Override ``config.validate_commands`` for this call.

        Returns:
            :class:`SearchOutcome`; ``outcome.no_match`` is True when
            nothing scored.

        Raises:
            ConfigError: If *limit* is out of range.
        """
        return self.engine.find_commands(goal, limit=limit, validate=validate)

    def find_tests(
        self,
        keywords: Iterable[str],
        *,
        limit: int | None = None,
        offset: int = 0,
        include_subtests: bool = False,
    ) -> Dict[str, Any]:
        """Rank tests for explicit *keywords* (paged summary dict)."""
        return self.engine.find_tests(
            list(keywords), limit=limit, offset=offset,
            include_subtests=include_subtests,
        )

    def list_tests(
        self,
        *,
        limit: int | None = None,
        offset: int = 0,
        include_subtests: bool = False,
    ) -> Dict[str, Any]:
        """Page through all tests in name order."""
        return self.engine.list_tests(limit=limit, offset=offset,
                                      include_subtests=include_subtests)

    def get_test(self, name: str) -> Dict[str, Any]:
        """
        Return the enriched view of test *name*.

        Raises:
            TestNotFoundError: If no such test is indexed.
        """
        return self.index.get_test(name)

    def repro_script(self, name: str) -> str:
        """
        Build a dry-run shell script replaying every subtest of *name*.

        Raises:
            TestNotFoundError: If no such test is indexed.
        """
        return self.index.build_dry_run_script(
            name, gpac_bin=self._config.gpac_bin, mp4box_bin=self._config.mp4box_bin,
        )

    def validate(self, command: str) -> ValidationResult:
        """Statically validate a single gpac or MP4Box command line."""
        return self.engine.validate(command)

    def describe(self, term: str) -> Dict[str, Any]:
        """
        Look up *term* in the tool documentation.

        ``--name`` is a gpac global option, ``-name`` or ``:name`` an MP4Box
        switch, anything else a gpac filter.  ``found`` is False when the
        documentation has no entry for it.
        """
        engine = self.engine
        if term.startswith("--"):
            description = engine.gpac_docs.global_option(term)
            return {"kind": "global_option", "name": term,
                    "found": description is not None, "description": description}
        if term.startswith(("-", ":")):
            docs = [d.to_dict() for d in engine.mp4box_docs.switch_info(term)]
            return {"kind": "switch", "name": term, "found": bool(docs), "docs": docs}
        found = engine.gpac_docs.is_filter(term)
        return {"kind": "filter", "name": term, "found": found,
                "help": engine.gpac_docs.filter_help(term) if found else None}

    # ── Scripts ───────────────────────────────────────────────────

    def read_script_segment(self, path: str, start_line: int, end_line: int) -> str:
        """
        Return lines *start_line*..*end_line* (1-based, inclusive) of a script.

        Raises:
            ScriptNotFoundError: If *path* is not a loaded script.
        """
        return self.scripts.read_segment(path, start_line, end_line)

    def search_scripts(self, pattern: str, *, context: int = 3,
                       max_results: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Regex search across the loaded scripts.

        Raises:
            SearchError: If *pattern* is not a valid regular expression.
        """
        hits = self.scripts.search(pattern, context=context)
        return hits[:max_results] if max_results is not None else hits

    # ── Statistics ────────────────────────────────────────────────

    def stats(self) -> Dict[str, Any]:
        """Index and documentation statistics (does not trigger introspection)."""
        engine = self.engine
        return {
            "index": self.index.stats(),
            "gpac_docs": engine.gpac_docs.stats(),
            "mp4box_docs": engine.mp4box_docs.stats(),
            "scripts": len(self._scripts.content) if self._scripts is not None else None,
        }

    # ── Async variants ────────────────────────────────────────────
    # These use asyncio.to_thread() to run sync operations off the
    # event loop. They raise the same exceptions as the sync methods.

    async def afind_commands(
        self,
        goal: str,
        *,
        limit: int | None = None,
        validate: bool | None = None,
    ) -> SearchOutcome:
        """Async variant of :meth:`find_commands`. Raises same exceptions as sync."""
        return await asyncio.to_thread(
            self.find_commands, goal, limit=limit, validate=validate,
        )

    async def afind_tests(
        self,
        keywords: Iterable[str],
        *,
        limit: int | None = None,
        offset: int = 0,
        include_subtests: bool = False,
    ) -> Dict[str, Any]:
        """Async variant of :meth:`find_tests`. Raises same exceptions as sync."""
        return await asyncio.to_thread(
            self.find_tests, list(keywords),
            limit=limit, offset=offset, include_subtests=include_subtests,
        )

    async def aget_test(self, name: str) -> Dict[str, Any]:
        """Async variant of :meth:`get_test`. Raises same exceptions as sync."""
        return await asyncio.to_thread(self.get_test, name)

    async def avalidate(self, command: str) -> ValidationResult:
        """Async variant of :meth:`validate`."""
        return await asyncio.to_thread(self.validate, command)

    async def astats(self) -> Dict[str, Any]:
        """Async variant of :meth:`stats`."""
        return await asyncio.to_thread(self.stats)

    # ── Health (for agents / status endpoints) ─────────────────────

    def health(self) -> Dict[str, object]:
        """
        Return a small status dict for agents or health checks.

        Reports whether the index has been loaded but never loads it.
        """
        return {
            "version": __import__("testsuite_mcp", fromlist=["__version__"]).__version__,
            "xml_tests_path": self._config.xml_tests_path,
            "validate_commands": self._config.validate_commands,
            "index_loaded": self._index is not None,
        }
