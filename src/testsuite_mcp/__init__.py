"""
Testsuite-MCP — goal-to-command search over the GPAC test suite.

The ``testsuite_mcp`` package indexes the GPAC test-suite descriptions and
answers "how do I do X with GPAC?" with real, cleaned and statically
validated ``gpac`` / ``MP4Box`` command lines taken from the tests.

Quick start (programmatic API)::

    from testsuite_mcp import Testsuite

    client = Testsuite()                                 # reads env vars
    outcome = client.find_commands("dash with encryption")
    for cmd in outcome.commands:
        print(cmd.command)

Quick start (CLI)::

    testsuite find "dash with encryption"
    testsuite show aac-sbr

Configuration override::

    from testsuite_mcp import Testsuite, TestsuiteConfig

    config = TestsuiteConfig(xml_tests_path="./all_tests_descriptions.xml")
    client = Testsuite(config=config)
"""

__version__ = "1.0.0"

# Primary public API: the Testsuite facade
from testsuite_mcp.client import Testsuite

# Configuration
from testsuite_mcp.core.config import TestsuiteConfig

# Core data types that callers interact with
from testsuite_mcp.core.search import CommandResult, SearchOutcome
from testsuite_mcp.core.validator import ValidationResult

# Exception hierarchy
from testsuite_mcp.exceptions import (
    ConfigError,
    CorpusLoadError,
    IntrospectionError,
    ScriptNotFoundError,
    SearchError,
    TestNotFoundError,
    TestsuiteError,
)


def health(config: TestsuiteConfig | None = None) -> dict:
    """
    Return a small status dict for agents or health checks.

    Loads nothing and spawns no process.  When *config* is None, uses
    :meth:`TestsuiteConfig.from_env()` for the snapshot.
    """
    cfg = config or TestsuiteConfig.from_env()
    return {
        "version": __version__,
        "xml_tests_path": cfg.xml_tests_path,
        "validate_commands": cfg.validate_commands,
    }


__all__ = [
    "__version__",
    # Facade
    "Testsuite",
    # Config
    "TestsuiteConfig",
    # Data types
    "CommandResult",
    "SearchOutcome",
    "ValidationResult",
    # Exceptions
    "TestsuiteError",
    "ConfigError",
    "CorpusLoadError",
    "IntrospectionError",
    "TestNotFoundError",
    "ScriptNotFoundError",
    "SearchError",
    # Status
    "health",
]
