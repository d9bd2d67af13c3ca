"""
Testsuite-MCP Exception Hierarchy

Structured exceptions for clear error handling across CLI, API, and MCP
consumers.  Each exception type maps to a specific failure mode so that
callers can handle errors precisely without parsing message strings.

Most load-time and introspection failures never reach callers: the corpus,
alias table and documentation indexes degrade to empty structures and log a
warning instead.  The exceptions below are raised where a caller asked for
something that cannot be answered.

Usage::

    from testsuite_mcp.exceptions import TestsuiteError, TestNotFoundError

    try:
        script = client.repro_script("aac-sbr")
    except TestNotFoundError:
        print("No such test in the corpus.")
    except TestsuiteError as exc:
        print(f"Testsuite error: {exc}")
"""


class TestsuiteError(Exception):
    """Base exception for all Testsuite-MCP errors."""


class ConfigError(TestsuiteError, ValueError):
    """Configuration or request parameters are invalid (e.g. a limit out of range).

    Inherits from ``ValueError`` so that generic argument handling keeps
    working.
    """


class CorpusLoadError(TestsuiteError):
    """The test-description corpus could not be read or parsed."""


class IntrospectionError(TestsuiteError):
    """Invoking the media tool's self-documentation failed or timed out.

    ``returncode`` is ``None`` when the tool never produced an exit status
    (binary missing, timeout); ``stderr`` keeps whatever the tool printed.
    """

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class TestNotFoundError(TestsuiteError, KeyError):
    """No test with the requested name exists in the index."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class ScriptNotFoundError(TestsuiteError, FileNotFoundError):
    """A script path was requested that was never loaded into the script index."""


class SearchError(TestsuiteError):
    """Error during search execution."""


# pytest tries to collect classes whose names start with "Test".
TestsuiteError.__test__ = False
TestNotFoundError.__test__ = False
