"""
Testsuite-MCP Core — configuration, indexing, scoring, cleaning, validation and search.

Re-exports the primary classes for convenience::

    from testsuite_mcp.core import TestsuiteConfig, TestIndex, CommandSearchEngine
"""

from testsuite_mcp.core.cleaner import CleanedCommand, clean_command
from testsuite_mcp.core.config import ScoringPolicy, TestsuiteConfig
from testsuite_mcp.core.docs import GpacDocs, MP4BoxDocs, ToolRunner
from testsuite_mcp.core.engine import (
    CandidateCommand,
    SubtestRecord,
    TestRecord,
    decompose_query,
    rank_commands,
    score_command,
    score_test,
)
from testsuite_mcp.core.indexer import TestIndex, build_index, load_aliases, load_corpus
from testsuite_mcp.core.scripts import ScriptIndex
from testsuite_mcp.core.search import CommandSearchEngine, ResultFormatter, SearchOutcome
from testsuite_mcp.core.validator import ValidationResult, validate_command

__all__ = [
    "TestsuiteConfig",
    "ScoringPolicy",
    "CleanedCommand",
    "clean_command",
    "GpacDocs",
    "MP4BoxDocs",
    "ToolRunner",
    "CandidateCommand",
    "SubtestRecord",
    "TestRecord",
    "decompose_query",
    "rank_commands",
    "score_command",
    "score_test",
    "TestIndex",
    "build_index",
    "load_aliases",
    "load_corpus",
    "ScriptIndex",
    "CommandSearchEngine",
    "ResultFormatter",
    "SearchOutcome",
    "ValidationResult",
    "validate_command",
]
