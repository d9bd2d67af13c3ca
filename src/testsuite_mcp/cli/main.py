"""
Testsuite-MCP CLI

Command-line interface for searching the GPAC test suite for commands.

Usage::

    testsuite find "dash with encryption"   # Goal → verified commands
    testsuite tests hevc tile               # Rank tests by keywords
    testsuite show aac-sbr                  # Enriched view of one test
    testsuite repro aac-sbr > repro.sh      # Dry-run replay script
    testsuite validate "gpac -i a.mp4 -o b.mpd:segdur=2"
    testsuite doc dasher                    # Tool documentation lookup
    testsuite stats                         # Index statistics
    testsuite mcp                           # Start the MCP server
"""

import json
import logging
import time

import click

from testsuite_mcp.client import Testsuite
from testsuite_mcp.core.config import TestsuiteConfig
from testsuite_mcp.core.search import ResultFormatter
from testsuite_mcp.exceptions import TestNotFoundError, TestsuiteError


# ---------------------------------------------------------------------------
# Logging helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool, config: TestsuiteConfig | None = None) -> None:
    """Set up logging for the CLI session."""
    cfg = config or TestsuiteConfig.from_env()
    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level, logging.INFO)
    logging.basicConfig(level=level, format=cfg.log_format)


def _client(ctx: click.Context) -> Testsuite:
    return Testsuite(config=ctx.obj["config"])


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


# ---------------------------------------------------------------------------
# Top-level group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(package_name="testsuite-mcp")
@click.option("--xml", "xml_path", type=click.Path(), default=None,
              help="Test-description XML (default: $XML_TESTS_PATH).")
@click.option("--aliases", "aliases_path", type=click.Path(), default=None,
              help="Alias table JSON (default: $ALIASES_PATH).")
@click.option("--scripts-dir", type=click.Path(), default=None,
              help="Test-suite scripts directory (default: $SCRIPTS_DIR).")
@click.pass_context
def cli(ctx: click.Context, xml_path: str | None, aliases_path: str | None,
        scripts_dir: str | None):
    """Testsuite-MCP — real GPAC commands from the GPAC test suite."""
    ctx.ensure_object(dict)
    config = TestsuiteConfig.from_env()
    if xml_path:
        config.xml_tests_path = xml_path
    if aliases_path:
        config.aliases_path = aliases_path
    if scripts_dir:
        config.scripts_dir = scripts_dir
    ctx.obj["config"] = config


# ---------------------------------------------------------------------------
# testsuite find
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("goal")
@click.option("-n", "--limit", type=int, default=None,
              help="Number of commands (1-10, default 5).")
@click.option("-f", "--format", "fmt", type=click.Choice(["console", "json"]),
              default="console", help="Output format.")
@click.option("--no-validate", is_flag=True, help="Skip validation against the tool documentation.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def find(ctx: click.Context, goal: str, limit: int | None, fmt: str,
         no_validate: bool, verbose: bool):
    """Find test-suite commands that accomplish GOAL."""
    config = ctx.obj["config"]
    _configure_logging(verbose, config)
    t0 = time.perf_counter()

    try:
        outcome = _client(ctx).find_commands(
            goal, limit=limit, validate=False if no_validate else None,
        )
    except TestsuiteError as exc:
        _fail(str(exc))

    elapsed = time.perf_counter() - t0
    formatter = ResultFormatter()
    if fmt == "json":
        click.echo(formatter.format_json(outcome, config.find_max_desc_chars))
    else:
        click.echo(formatter.format_console(outcome, elapsed_time=elapsed))
    if outcome.no_match:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# testsuite tests
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("keywords", nargs=-1, required=True)
@click.option("-n", "--limit", type=int, default=None, help="Tests per page (1-50).")
@click.option("--offset", type=int, default=0, help="Pagination offset.")
@click.option("--subtests", is_flag=True, help="Include subtest summaries.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def tests(ctx: click.Context, keywords: tuple, limit: int | None, offset: int,
          subtests: bool, verbose: bool):
    """Rank tests by KEYWORDS."""
    _configure_logging(verbose, ctx.obj["config"])
    try:
        page = _client(ctx).find_tests(
            keywords, limit=limit, offset=offset, include_subtests=subtests,
        )
    except TestsuiteError as exc:
        _fail(str(exc))
    if page.get("error"):
        _fail(page["error"])

    click.echo(f"  {page['total']} matching test(s), showing {page['returned']}")
    for test in page["tests"]:
        click.echo(f"  {test['name']:<32} {test['subtestCount']:>3} subtests  {test['desc']}")
        for sub in test.get("subtests", []):
            click.echo(f"      - {sub['name']}: {sub['desc']}")


# ---------------------------------------------------------------------------
# testsuite show / repro
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("name")
@click.pass_context
def show(ctx: click.Context, name: str):
    """Show the enriched record of test NAME as JSON."""
    _configure_logging(False, ctx.obj["config"])
    try:
        data = _client(ctx).get_test(name)
    except TestNotFoundError as exc:
        _fail(str(exc))
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@cli.command()
@click.argument("name")
@click.pass_context
def repro(ctx: click.Context, name: str):
    """Print a dry-run shell script replaying every subtest of NAME."""
    _configure_logging(False, ctx.obj["config"])
    try:
        script = _client(ctx).repro_script(name)
    except TestNotFoundError as exc:
        _fail(str(exc))
    click.echo(script)


# ---------------------------------------------------------------------------
# testsuite validate
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("command")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def validate(ctx: click.Context, command: str, verbose: bool):
    """Statically validate a gpac or MP4Box COMMAND line."""
    _configure_logging(verbose, ctx.obj["config"])
    result = _client(ctx).validate(command)
    click.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    if not result.valid:
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# testsuite doc
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("term")
@click.pass_context
def doc(ctx: click.Context, term: str):
    """Show the tool documentation for TERM.

    TERM is a gpac filter (dasher), a global option (--threads) or an MP4Box
    switch (-dash).  Put ``--`` before dashed terms: testsuite doc -- -dash
    """
    _configure_logging(False, ctx.obj["config"])
    entry = _client(ctx).describe(term)
    if not entry["found"]:
        _fail(f"No documentation for {term}")
    if entry["kind"] == "filter":
        click.echo(entry["help"])
    else:
        click.echo(json.dumps(entry, indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# testsuite stats
# ---------------------------------------------------------------------------

@cli.command()
@click.pass_context
def stats(ctx: click.Context):
    """Show test index statistics."""
    _configure_logging(False, ctx.obj["config"])
    s = _client(ctx).index.stats()
    click.echo("─" * 50)
    click.echo("  TESTSUITE — Index Statistics")
    click.echo("─" * 50)
    click.echo(f"  Corpus   : {s['source']}")
    click.echo()
    click.echo(f"  Tests     {s['tests']:>8,}")
    click.echo(f"  Subtests  {s['subtests']:>8,}")
    click.echo("─" * 50)


# ---------------------------------------------------------------------------
# testsuite mcp
# ---------------------------------------------------------------------------

@cli.command()
@click.option("--transport", type=click.Choice(["stdio", "sse"]),
              default="stdio", help="MCP transport (default: stdio).")
@click.option("-v", "--verbose", is_flag=True)
@click.pass_context
def mcp(ctx: click.Context, transport: str, verbose: bool):
    """Start the Testsuite MCP server."""
    config = ctx.obj["config"]
    _configure_logging(verbose, config)
    from testsuite_mcp.mcp.server import create_server  # noqa: E402

    server = create_server(config)
    server.run(transport=transport)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()
