"""
Testsuite-MCP Server

Exposes the GPAC test-suite index as tools that AI agents can invoke
natively via the Model Context Protocol: goal-to-command search, keyword
test search, test lookup, static command validation, script reading and
dry-run reproduction scripts.

Also exposes an index **resource** and a guidance **prompt**.

Start with::

    testsuite mcp                  # stdio transport (default)
    testsuite mcp --transport sse  # SSE transport

Or programmatically::

    from testsuite_mcp.mcp.server import create_server
    server = create_server()
    server.run()
"""

from __future__ import annotations

import json
import logging
from typing import Annotated

from pydantic import Field  # type: ignore[import-untyped]

from testsuite_mcp.client import Testsuite
from testsuite_mcp.core.config import TestsuiteConfig

logger = logging.getLogger(__name__)


def create_server(config: TestsuiteConfig | None = None, client: Testsuite | None = None):
    """
    Build and return a configured FastMCP server instance.

    All tool invocations share one :class:`Testsuite` client, so the test
    index and the documentation indexes are built once per process.

    Args:
        config: Instance-based configuration.  Defaults to
            ``TestsuiteConfig.from_env()`` so that the server respects
            the same environment variables as the CLI.
        client: Pre-built client (mainly for tests); overrides *config*.
    """
    from fastmcp import FastMCP  # type: ignore[import-untyped]

    cfg = client.config if client is not None else (config or TestsuiteConfig.from_env())
    ts = client or Testsuite(config=cfg)
    logger.info(f"Testsuite MCP server using corpus {cfg.xml_tests_path}")

    mcp = FastMCP("Testsuite-MCP")

    # ==================================================================
    # Tool: find_commands_by_goal
    # ==================================================================

    @mcp.tool()
    def find_commands_by_goal(
        goal: Annotated[
            str,
            Field(description="What you want to do with GPAC, in plain words (e.g. 'dash with encryption', 'extract audio track', 'hevc tiling'). Connectives like 'with'/'and' are ignored.")
        ],
        limit: Annotated[
            int | None,
            Field(default=None, description="Number of commands to return (1-10). Defaults to 5.")
        ] = None,
    ) -> str:
        """Find real gpac / MP4Box command lines from the GPAC test suite that
        accomplish a goal.

        Commands are cleaned of test-suite artifacts (test media names,
        test-only options) and statically validated against the installed
        tools' own documentation.

        **When to use this tool:**
        - You need a working gpac or MP4Box invocation for a task
        - You want an example grounded in a real, tested command

        Returns:
            JSON ``{total, commands: [...], note}`` or
            ``{error: "NO_MATCH", query}`` when nothing matches.
        """
        try:
            # Blank goals are a NO_MATCH outcome echoing the query as given
            outcome = ts.find_commands(goal, limit=limit)
            return json.dumps(outcome.to_dict(cfg.find_max_desc_chars), ensure_ascii=False)
        except Exception as e:
            return json.dumps({"error": str(e)})

    # ==================================================================
    # Tool: find_tests_by_keywords
    # ==================================================================

    @mcp.tool()
    def find_tests_by_keywords(
        keywords: Annotated[
            list[str],
            Field(description="Keywords to rank tests by (e.g. ['hevc', 'tile']). Matched against test names, keywords, descriptions and subtest names.")
        ],
        limit: Annotated[
            int | None,
            Field(default=None, description="Tests per page (1-50). Defaults to 10.")
        ] = None,
        offset: Annotated[
            int,
            Field(default=0, description="Pagination offset.")
        ] = 0,
        include_subtests: Annotated[
            bool,
            Field(default=False, description="Include subtest names and descriptions in each summary.")
        ] = False,
    ) -> str:
        """Rank test-suite tests by keyword relevance.

        Returns:
            JSON ``{total, offset, limit, returned, tests: [...]}``.
        """
        try:
            if isinstance(keywords, str):
                keywords = [keywords]
            return json.dumps(ts.find_tests(
                keywords or [], limit=limit, offset=offset,
                include_subtests=include_subtests,
            ), ensure_ascii=False)
        except Exception as e:
            return json.dumps({"error": str(e), "tests": []})

    # ==================================================================
    # Tool: list_xml_tests
    # ==================================================================

    @mcp.tool()
    def list_xml_tests(
        limit: Annotated[
            int | None,
            Field(default=None, description="Tests per page (1-50). Defaults to 10.")
        ] = None,
        offset: Annotated[
            int,
            Field(default=0, description="Pagination offset.")
        ] = 0,
        include_subtests: Annotated[
            bool,
            Field(default=False, description="Include subtest names and descriptions in each summary.")
        ] = False,
    ) -> str:
        """List the indexed tests in name order (paged summaries, no commands).

        Returns:
            JSON ``{total, offset, limit, returned, tests: [...]}``.
        """
        try:
            return json.dumps(ts.list_tests(
                limit=limit, offset=offset, include_subtests=include_subtests,
            ), ensure_ascii=False)
        except Exception as e:
            return json.dumps({"error": str(e), "tests": []})

    # ==================================================================
    # Tool: get_xml_test
    # ==================================================================

    @mcp.tool()
    def get_xml_test(
        name: Annotated[
            str,
            Field(description="Exact test name as returned by list_xml_tests or find_tests_by_keywords.")
        ],
    ) -> str:
        """Return one test with its subtests, commands and enriched keywords.

        An unknown name is reported as a tool error.
        """
        return json.dumps(ts.get_test(name), ensure_ascii=False)

    # ==================================================================
    # Tool: build_repro_script
    # ==================================================================

    @mcp.tool()
    def build_repro_script(
        name: Annotated[
            str,
            Field(description="Exact test name whose subtest commands should be replayed.")
        ],
    ) -> str:
        """Return a dry-run shell script replaying every subtest command of a test.

        Output paths are redirected to ``$TEMP_DIR``; nothing is executed.
        """
        return ts.repro_script(name)

    # ==================================================================
    # Tool: validate_command
    # ==================================================================

    @mcp.tool()
    def validate_command(
        command: Annotated[
            str,
            Field(description="A full gpac or MP4Box command line to check (e.g. 'gpac -i in.mp4 -o out.mpd:segdur=2').")
        ],
    ) -> str:
        """Statically validate a command against the installed tools' documentation.

        No media is processed.  When the documentation is unavailable the
        command passes with a warning.

        Returns:
            JSON ``{valid, errors: [...], warnings?}``.
        """
        try:
            return json.dumps(ts.validate(command).to_dict(), ensure_ascii=False)
        except Exception as e:
            return json.dumps({"error": str(e)})

    # ==================================================================
    # Tools: test-suite scripts
    # ==================================================================

    @mcp.tool()
    def read_script_segment(
        path: Annotated[
            str,
            Field(description="Script path as reported by search_scripts.")
        ],
        start_line: Annotated[
            int,
            Field(default=1, description="First line to return (1-based, inclusive).")
        ] = 1,
        end_line: Annotated[
            int,
            Field(default=50, description="Last line to return (1-based, inclusive).")
        ] = 50,
    ) -> str:
        """Read a line range of a test-suite shell script."""
        return ts.read_script_segment(path, start_line, end_line)

    @mcp.tool()
    def search_scripts(
        pattern: Annotated[
            str,
            Field(description="Case-insensitive regular expression to look for in the test-suite scripts.")
        ],
        context: Annotated[
            int,
            Field(default=3, description="Lines of context on each side of a hit.")
        ] = 3,
        max_results: Annotated[
            int,
            Field(default=20, description="Maximum number of hits to return.")
        ] = 20,
    ) -> str:
        """Grep the test-suite shell scripts.

        Returns:
            JSON array of ``{file, line, match, context}``.
        """
        try:
            return json.dumps(ts.search_scripts(pattern, context=context,
                                                max_results=max_results))
        except Exception as e:
            return json.dumps({"error": str(e), "results": []})

    # ==================================================================
    # Tool: health (readiness check)
    # ==================================================================

    @mcp.tool()
    def health() -> str:
        """Check that the Testsuite MCP server is running and responsive."""
        return json.dumps({"status": "ok", **ts.health()})

    # ==================================================================
    # Resource: index statistics
    # ==================================================================

    @mcp.resource("testsuite://stats")
    def index_stats() -> str:
        """Return test index and documentation statistics."""
        return json.dumps(ts.stats(), indent=2)

    # ==================================================================
    # Prompt templates
    # ==================================================================

    @mcp.prompt()
    def when_to_use_testsuite() -> str:
        """Guidance prompt: explains when and how AI agents should use these tools."""
        return (
            "**When to use Testsuite tools:**\n"
            "1. You need a gpac or MP4Box command for a task - use find_commands_by_goal\n"
            "2. You want to see how a feature is tested - use find_tests_by_keywords, then get_xml_test\n"
            "3. You wrote a command yourself - check it with validate_command\n"
            "\n"
            "**Workflow:**\n"
            "1. Search: find_commands_by_goal('dash with encryption')\n"
            "2. If NO_MATCH: rephrase with codec/format names, or find_tests_by_keywords\n"
            "3. Inspect: get_xml_test(name) for the full scenario\n"
            "4. Reproduce: build_repro_script(name) for a replay script\n"
        )

    return mcp
