"""
Testsuite-MCP Corpus Indexer

Loads the GPAC test-suite description XML, enriches each test with the
pre-computed alias table and builds the in-memory :class:`TestIndex` that
every query runs against.

Load-time problems (unreadable XML, missing or corrupt alias file) are never
fatal: they are logged and the index degrades to whatever could be read, so
the server keeps answering with a smaller or empty corpus.
"""

import json
import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from testsuite_mcp.core.config import TestsuiteConfig
from testsuite_mcp.core.engine import SubtestRecord, TestRecord
from testsuite_mcp.exceptions import CorpusLoadError, TestNotFoundError

logger = logging.getLogger(__name__)

SCRIPT_SUFFIX = ".sh"


# =============================================================================
# Corpus Loader (XML)
# =============================================================================

def _field(elem: ET.Element, name: str) -> str:
    """Read *name* from an attribute, falling back to a child element's text."""
    value = elem.get(name)
    if value is None:
        child = elem.find(name)
        if child is None:
            child = elem.find(name.capitalize())
        value = child.text if child is not None else None
    return (value or "").strip()


def _split_keywords(raw: str) -> List[str]:
    return [k for k in raw.split() if k]


def parse_corpus(xml_text: str) -> List[Dict[str, Any]]:
    """
    Parse test-description XML into a list of plain test dicts.

    Each dict has ``name``, ``desc``, ``keywords``, ``file`` and ``subtests``
    (each with ``name``, ``desc``, ``keywords``, ``command``).  Tests without
    a name are skipped; subtests without a command are dropped here, at load
    time.  A later test with the same name replaces the earlier one.

    Raises:
        CorpusLoadError: If *xml_text* is not well-formed XML.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise CorpusLoadError(f"Malformed test-description XML: {exc}") from exc

    if root.tag in ("Test", "test"):
        test_elems = [root]
    else:
        test_elems = root.findall("Test") or root.findall("test") or list(root.iter("Test"))

    tests: Dict[str, Dict[str, Any]] = {}
    for elem in test_elems:
        name = _field(elem, "name")
        if not name:
            continue
        sub_elems = elem.findall("Subtest") or elem.findall("Subtests/Subtest")
        subtests = []
        for sub in sub_elems:
            command = _field(sub, "Command") or _field(sub, "command")
            if not command:
                continue
            subtests.append({
                "name": _field(sub, "name") or "sub",
                "desc": _field(sub, "desc"),
                "keywords": _split_keywords(_field(sub, "keywords")),
                "command": command,
            })
        tests[name] = {
            "name": name,
            "desc": _field(elem, "desc"),
            "keywords": _split_keywords(_field(elem, "keywords")),
            "file": _field(elem, "file"),
            "subtests": subtests,
        }
    return list(tests.values())


def load_corpus(xml_path: Path) -> List[Dict[str, Any]]:
    """Read and parse the corpus file at *xml_path*.

    Raises:
        CorpusLoadError: If the file cannot be read or parsed.
    """
    try:
        xml_text = Path(xml_path).read_text(encoding="utf-8")
    except OSError as exc:
        raise CorpusLoadError(f"Cannot read test-description XML {xml_path}: {exc}") from exc
    return parse_corpus(xml_text)


# =============================================================================
# Alias Table
# =============================================================================

def alias_key(script_file: str) -> str:
    """Map a corpus entry's script file name to its alias-table key.

    The alias table is keyed by script name without the ``.sh`` suffix,
    e.g. ``"aac-sbr.sh"`` → ``"aac-sbr"``.
    """
    script_file = (script_file or "").strip()
    if script_file.endswith(SCRIPT_SUFFIX):
        return script_file[:-len(SCRIPT_SUFFIX)]
    return script_file


def load_aliases(aliases_path: Optional[Path]) -> Dict[str, List[str]]:
    """
    Load the alias table (``{identifier: [tag, ...]}``) from JSON.

    Missing or unparsable input degrades to an empty mapping with a
    warning.  Entries whose value is not a list are skipped; non-string
    tags are dropped.
    """
    if aliases_path is None:
        return {}
    try:
        raw = json.loads(Path(aliases_path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning(f"Alias table not found at {aliases_path}; continuing without aliases")
        return {}
    except (OSError, ValueError) as exc:
        logger.warning(f"Could not load alias table {aliases_path}: {exc}")
        return {}

    if not isinstance(raw, dict):
        logger.warning(f"Alias table {aliases_path} is not a JSON object; ignoring it")
        return {}

    aliases: Dict[str, List[str]] = {}
    for key, tags in raw.items():
        if not isinstance(tags, list):
            logger.debug(f"Skipping alias entry {key!r}: expected a list")
            continue
        aliases[str(key)] = [t for t in tags if isinstance(t, str) and t]
    return aliases


# =============================================================================
# Index Builder
# =============================================================================

def _merge_keywords(*sources: Iterable[str]) -> List[str]:
    """Union of keyword lists, first-seen order, case-sensitive dedup."""
    merged: Dict[str, None] = {}
    for source in sources:
        for kw in source:
            merged.setdefault(kw, None)
    return list(merged)


def build_index(corpus: Iterable[Mapping[str, Any]],
                aliases: Optional[Mapping[str, List[str]]] = None) -> Dict[str, TestRecord]:
    """
    Merge parsed corpus entries with the alias table into test records.

    Returns one record per distinct test name; later duplicates overwrite
    earlier ones.  Subtests with no keywords of their own receive a copy of
    the merged parent keywords.
    """
    aliases = aliases or {}
    index: Dict[str, TestRecord] = {}
    for entry in corpus:
        name = entry.get("name") or ""
        base_keywords = entry.get("keywords") or []
        file_name = entry.get("file") or ""
        merged = _merge_keywords(base_keywords, aliases.get(alias_key(file_name), []))

        subtests = []
        for sub in entry.get("subtests") or []:
            command = sub.get("command") or ""
            if not command:
                continue
            own_keywords = list(sub.get("keywords") or [])
            subtests.append(SubtestRecord(
                test_name=name,
                name=sub.get("name") or "",
                description=sub.get("desc") or "",
                keywords=own_keywords if own_keywords else list(merged),
                command=command,
            ))

        index[name] = TestRecord(
            name=name,
            description=entry.get("desc") or "",
            keywords=merged,
            subtests=subtests,
            file=file_name,
        )
    return index


# =============================================================================
# Queryable index
# =============================================================================

_WORD_RE = re.compile(r"\b(\w+)\b")
_TECH_TERM_RE = re.compile(r"(?:^|\s)(-\w+|:\w+|\w+:\w+|[A-Z]{2,}|\w+(?:_\w+)+)")
_TOOL_RE = re.compile(r"\b(MP4Box|gpac)\b")


def _significant_words(text: str) -> List[str]:
    """Words longer than two characters that do not start with a digit."""
    return [w.lower() for w in _WORD_RE.findall(text or "")
            if len(w) > 2 and not w[0].isdigit()]


@dataclass
class TestIndex:
    """
    Read-only in-memory index over the test corpus.

    Built once at startup via :meth:`load` and replaced wholesale on reload.
    """
    __test__ = False

    tests: Dict[str, TestRecord] = field(default_factory=dict)
    source: str = ""

    # ── Construction ──────────────────────────────────────────────

    @classmethod
    def load(cls, config: TestsuiteConfig) -> "TestIndex":
        """Load corpus and aliases as configured, degrading on errors."""
        xml_path = config.get_xml_path()
        try:
            corpus = load_corpus(xml_path)
        except CorpusLoadError as exc:
            logger.warning(f"{exc}; serving an empty index")
            corpus = []
        aliases = load_aliases(config.get_aliases_path())
        index = cls(tests=build_index(corpus, aliases), source=str(xml_path))
        logger.info(
            f"Indexed {len(index.tests)} tests, {index.subtest_count()} subtests "
            f"({len(aliases)} alias entries)"
        )
        return index

    # ── Accessors ─────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self.tests)

    def __iter__(self):
        return iter(self.tests.values())

    def subtest_count(self) -> int:
        return sum(len(t.subtests) for t in self.tests.values())

    def stats(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "tests": len(self.tests),
            "subtests": self.subtest_count(),
        }

    def list_tests(self, keywords: Optional[Iterable[str] | str] = None) -> List[TestRecord]:
        """
        Return tests sorted by name, optionally filtered.

        When *keywords* is given, a test is kept if any keyword is a
        case-insensitive substring of its name, description, keywords or
        subtest names/descriptions.
        """
        if isinstance(keywords, str):
            keywords = [keywords]
        wanted = [k.lower() for k in (keywords or []) if k]
        results = []
        for test in self.tests.values():
            if wanted:
                search_text = " ".join([
                    test.name,
                    test.description,
                    *test.keywords,
                    *(f"{s.name} {s.description}" for s in test.subtests),
                ]).lower()
                if not any(k in search_text for k in wanted):
                    continue
            results.append(test)
        return sorted(results, key=lambda t: t.name)

    def get_record(self, name: str) -> TestRecord:
        """Return the raw record for *name*.

        Raises:
            TestNotFoundError: If no such test is indexed.
        """
        try:
            return self.tests[name]
        except KeyError:
            raise TestNotFoundError(f"Unknown XML test: {name}") from None

    def get_test(self, name: str) -> Dict[str, Any]:
        """
        Return an enriched view of test *name*.

        Adds ``enriched_keywords`` (lower-cased keywords plus significant
        words from descriptions and subtest names, and technical terms such
        as switches or ``filter:option`` pairs found in commands),
        ``full_description`` and ``subtest_summary``.
        """
        test = self.get_record(name)
        enriched: Dict[str, None] = {}
        for kw in test.keywords:
            enriched.setdefault(kw.lower(), None)
        for word in _significant_words(test.description):
            enriched.setdefault(word, None)

        summaries = []
        for sub in test.subtests:
            for word in _significant_words(sub.name):
                enriched.setdefault(word, None)
            if sub.description:
                summaries.append(sub.description)
                for word in _significant_words(sub.description):
                    enriched.setdefault(word, None)
            for term in _TECH_TERM_RE.findall(sub.command):
                term = term.strip().lower()
                if len(term) > 1:
                    enriched.setdefault(term, None)

        data = test.to_dict()
        data["enriched_keywords"] = list(enriched)
        data["full_description"] = test.description
        data["subtest_summary"] = "; ".join(summaries)
        return data

    # ── Repro scripts ─────────────────────────────────────────────

    def build_dry_run_script(self, name: str, gpac_bin: str = "gpac",
                             mp4box_bin: str = "MP4Box") -> str:
        """
        Build a shell script that replays every subtest command of *name*.

        Output paths (``out/``) are redirected to ``$TEMP_DIR``; the tool
        names are replaced by the configured binaries.

        Raises:
            TestNotFoundError: If no such test is indexed.
        """
        test = self.get_record(name)
        binaries = {"MP4Box": mp4box_bin, "gpac": gpac_bin}
        out = [f"# Repro for: {test.name}"]
        if test.description:
            out.append(f"# {test.description}")
        out.append("set -e")
        out.append(': "${MEDIA_DIR:=./media}"')
        out.append(': "${EXTERNAL_MEDIA_DIR:=./external_media}"')
        out.append(': "${TEMP_DIR:=./out}"')
        out.append('mkdir -p "$TEMP_DIR"\n')
        for i, sub in enumerate(test.subtests, start=1):
            header = f"# Subtest {i}: {sub.name}"
            if sub.description:
                header += f" - {sub.description}"
            out.append(header)
            cmd = re.sub(r"\bout/", '"$TEMP_DIR"/', sub.command)
            cmd = _TOOL_RE.sub(lambda m: f'"{binaries[m.group(1)]}"', cmd)
            out.append(cmd)
            out.append("")
        return "\n".join(out)
