#!/usr/bin/env python3
"""
Manually exercise the Testsuite Python API against a real corpus.

Loads the XML test index, prints stats, runs a few example goals through
find_commands() and a keyword search through find_tests(), and optionally
greps the shell scripts.

Usage:
  # Uses XML_TESTS_PATH / ALIASES_PATH / GPAC_BIN / MP4BOX_BIN from the env
  python scripts/try_api.py

  # Point at a corpus explicitly, skip validation (no gpac needed)
  python scripts/try_api.py --xml /path/to/all_tests_descriptions.xml --no-validate

  # Also search the testsuite scripts
  python scripts/try_api.py --scripts-dir /path/to/testsuite/scripts --grep dasher

Requirements:
  - testsuite-mcp installed (pip install -e . from project root)
  - gpac and MP4Box on PATH, or --no-validate
"""

import sys
from pathlib import Path

_project_root = Path(__file__).resolve().parent.parent
_src = _project_root / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))


def main() -> None:
    import argparse
    from testsuite_mcp import Testsuite, TestsuiteError

    parser = argparse.ArgumentParser(
        description="Manually test the Testsuite API: load the index and run example queries.",
    )
    parser.add_argument("--xml", help="XML test descriptions (default: XML_TESTS_PATH)")
    parser.add_argument("--aliases", help="Script alias JSON (default: ALIASES_PATH)")
    parser.add_argument("--scripts-dir", help="Testsuite scripts directory")
    parser.add_argument("--grep", help="Regex to search in the scripts")
    parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip command validation against gpac/MP4Box",
    )
    args = parser.parse_args()

    overrides = {}
    if args.xml:
        overrides["xml_tests_path"] = args.xml
    if args.aliases:
        overrides["aliases_path"] = args.aliases
    if args.scripts_dir:
        overrides["scripts_dir"] = args.scripts_dir
    client = Testsuite(**overrides)

    # ── Index ─────────────────────────────────────────────────────
    print("=" * 60)
    print("  STEP 1: Index")
    print("=" * 60)
    try:
        stats = client.index.stats()
    except TestsuiteError as e:
        print(f"  Error: {e}")
        sys.exit(1)
    print(f"  source: {stats['source']}")
    print(f"  tests: {stats['tests']}  subtests: {stats['subtests']}")

    # ── Commands by goal ──────────────────────────────────────────
    print("\n" + "=" * 60)
    print("  STEP 2: Commands by goal")
    print("=" * 60)

    example_goals = [
        "encrypt an mp4 with cenc",
        "dash live segmentation",
        "extract audio track",
    ]
    for goal in example_goals:
        print(f"\n  Goal: \"{goal}\"")
        outcome = client.find_commands(goal, limit=3, validate=not args.no_validate)
        if outcome.no_match:
            print("    (no match)")
            continue
        for i, c in enumerate(outcome.commands, 1):
            state = "-" if c.validation is None else ("ok" if c.validated else "unconfirmed")
            print(f"    {i}. {c.test}#{c.subtest}  score={c.score:.1f}  [{state}]")
            print(f"       $ {c.command}")

    # ── Tests by keyword ──────────────────────────────────────────
    print("\n" + "=" * 60)
    print("  STEP 3: Tests by keyword")
    print("=" * 60)

    page = client.find_tests(["hevc", "tile"], limit=5)
    print(f"  {page['total']} matching tests")
    for t in page["tests"]:
        print(f"    - {t['name']}: {t['desc']}")

    # ── Scripts ───────────────────────────────────────────────────
    if args.grep:
        print("\n" + "=" * 60)
        print("  STEP 4: Script search")
        print("=" * 60)
        try:
            hits = client.search_scripts(args.grep, context=0, max_results=10)
        except TestsuiteError as e:
            print(f"  Error: {e}")
            hits = []
        for h in hits:
            print(f"    {h['file']}:{h['line']}  {h['match']}")
        if not hits:
            print("    (no hits)")

    print("\n" + "=" * 60)
    print("  Done. Try your own queries in Python:")
    print("    from testsuite_mcp import Testsuite")
    print("    client = Testsuite()")
    print("    client.find_commands('your goal')")
    print("=" * 60)


if __name__ == "__main__":
    main()
