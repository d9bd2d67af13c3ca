"""
Testsuite-MCP Core Engine

Data models for the in-memory test index and the pure relevance functions
that rank it: query decomposition, two-stage scoring (test level, then
command level), command pool assembly and deduplication.

Nothing here touches the filesystem or spawns processes; every function is
a pure computation over an immutable index so the ranking policy can be
tested and swapped in isolation.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass, asdict, field
from typing import Iterable, List, Optional, Sequence, Tuple

from testsuite_mcp.core.config import STOP_WORDS, ScoringPolicy

# NOTE: no logging.basicConfig() here.
# Application code (CLI, MCP server) is responsible for configuring logging.
logger = logging.getLogger(__name__)


# =============================================================================
# Data Models
# =============================================================================

@dataclass
class SubtestRecord:
    """One sub-scenario of a test, carrying a single example command."""
    test_name: str
    """Name of the owning test (back-reference only)."""
    name: str
    description: str = ""
    keywords: List[str] = field(default_factory=list)
    command: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TestRecord:
    """A named scenario from the corpus with its merged keywords."""
    __test__ = False

    name: str
    description: str = ""
    keywords: List[str] = field(default_factory=list)
    subtests: List[SubtestRecord] = field(default_factory=list)
    file: str = ""
    """Script file the test comes from (e.g. ``aac-sbr.sh``)."""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CandidateCommand:
    """A subtest command considered during one query, with its relevance score.

    Created per query and discarded once the response is built.
    """
    test: str
    subtest: str
    description: str
    command: str
    score: float

    def __lt__(self, other):
        return self.score > other.score  # Higher score = better

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ScoredTest:
    """A test record paired with its stage-1 score."""
    test: TestRecord
    score: float


# =============================================================================
# Query Decomposition
# =============================================================================

_SPLIT_RE = re.compile(r"[\s,]+|\bwith\b|\band\b")


def normalize(text: str) -> str:
    """Lower-case *text* and strip diacritics (NFKD, combining marks dropped)."""
    decomposed = unicodedata.normalize("NFKD", (text or "").lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def decompose_query(query: str, stop_words: Optional[frozenset] = None) -> List[str]:
    """
    Turn a free-text goal into an ordered list of significant tokens.

    Splits on whitespace, commas and the connectives "with"/"and", then drops
    empty parts and stop words.  Empty input yields ``[]``, which callers
    must treat as "no match possible".
    """
    stops = STOP_WORDS if stop_words is None else stop_words
    tokens: List[str] = []
    for part in _SPLIT_RE.split(normalize(query)):
        part = part.strip()
        if part and part not in stops:
            tokens.append(part)
    return tokens


def _distinct(tokens: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(normalize(t) for t in tokens if t))


# =============================================================================
# Stage 1: test scoring
# =============================================================================

def score_test(test: TestRecord, tokens: Sequence[str],
               policy: Optional[ScoringPolicy] = None) -> float:
    """
    Score *test* against query *tokens* using the weighted-field model.

    Each distinct token found anywhere in the test's name, keywords,
    description or subtest names adds the weight of every field it is
    contained in.  When more than one token is found, a multi-token bonus of
    ``found * weights["multi_token"]`` is added.
    """
    weights = (policy or ScoringPolicy()).test_weights
    name = normalize(test.name)
    keywords = [normalize(k) for k in test.keywords]
    description = normalize(test.description)
    subtest_names = [normalize(s.name) for s in test.subtests]
    corpus = " ".join([name, *keywords, description, *subtest_names])

    score = 0.0
    found = 0
    for token in _distinct(tokens):
        if token not in corpus:
            continue
        found += 1
        if token in name:
            score += weights["name"]
        if any(token in kw for kw in keywords):
            score += weights["keyword"]
        if token in description:
            score += weights["description"]
        if any(token in sn for sn in subtest_names):
            score += weights["subtest_name"]

    if found > 1:
        score += found * weights["multi_token"]
    return score


def rank_tests(tests: Iterable[TestRecord], tokens: Sequence[str],
               policy: Optional[ScoringPolicy] = None) -> List[ScoredTest]:
    """Score all *tests*, drop zero scores and sort descending.

    The sort is stable, so ties keep the index insertion order.
    """
    if not tokens:
        return []
    scored = [ScoredTest(t, score_test(t, tokens, policy)) for t in tests]
    scored = [s for s in scored if s.score > 0]
    scored.sort(key=lambda s: s.score, reverse=True)
    return scored


# =============================================================================
# Stage 2: command scoring
# =============================================================================

def intent_bonus(command: str, tokens: Sequence[str],
                 policy: Optional[ScoringPolicy] = None) -> float:
    """Sum of the domain-specific pattern/intent bonuses that apply."""
    command_lower = command.lower()
    total = 0.0
    for bonus in (policy or ScoringPolicy()).intent_bonuses:
        if not re.search(bonus.command_pattern, command_lower):
            continue
        if any(re.search(bonus.intent_pattern, t) for t in tokens):
            total += bonus.bonus
    return total


def score_command(subtest: SubtestRecord, tokens: Sequence[str], query: str,
                  policy: Optional[ScoringPolicy] = None) -> float:
    """
    Score one subtest command against the query.

    Each distinct token counts once per field (subtest keywords > description > command
    text); the whole original query appearing verbatim in the description
    or the command earns an extra bonus.  Intent bonuses are added last.
    """
    policy = policy or ScoringPolicy()
    weights = policy.command_weights
    command = normalize(subtest.command)
    description = normalize(subtest.description)
    keywords = " ".join(normalize(k) for k in subtest.keywords)
    tokens = _distinct(tokens)

    score = 0.0
    score += sum(1 for t in tokens if t in keywords) * weights["subtest_keyword"]
    score += sum(1 for t in tokens if t in description) * weights["description"]
    score += sum(1 for t in tokens if t in command) * weights["command"]

    full_query = normalize(query).strip()
    if full_query:
        if full_query in description:
            score += weights["full_query_in_description"]
        if full_query in command:
            score += weights["full_query_in_command"]

    score += intent_bonus(subtest.command, tokens, policy)
    return score


# =============================================================================
# Command pool assembly & deduplication
# =============================================================================

def extract_and_score_commands(ranked_tests: Iterable[TestRecord], tokens: Sequence[str],
                               query: str,
                               policy: Optional[ScoringPolicy] = None) -> List[CandidateCommand]:
    """Flatten the ranked tests' subtests-with-commands into scored candidates."""
    pool: List[CandidateCommand] = []
    for test in ranked_tests:
        for subtest in test.subtests:
            if not subtest.command:
                continue
            pool.append(CandidateCommand(
                test=test.name,
                subtest=subtest.name,
                description=subtest.description,
                command=subtest.command,
                score=score_command(subtest, tokens, query, policy),
            ))
    return pool


def deduplicate_and_sort(pool: List[CandidateCommand], limit: int,
                         max_limit: int) -> List[CandidateCommand]:
    """
    Sort *pool* by score, keep the first occurrence of each command string
    and truncate to ``min(limit, max_limit)``.

    Limits are assumed to be validated by the caller.
    """
    seen: set = set()
    unique: List[CandidateCommand] = []
    for item in sorted(pool, key=lambda c: c.score, reverse=True):
        key = item.command.strip()
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique[:min(limit, max_limit)]


def rank_commands(tests: Iterable[TestRecord], query: str, limit: int, max_limit: int,
                  stop_words: Optional[frozenset] = None,
                  policy: Optional[ScoringPolicy] = None) -> Tuple[List[str], List[CandidateCommand]]:
    """
    Run the full ranking pipeline for *query* over *tests*.

    Returns ``(tokens, candidates)``.  An empty candidate list is the
    no-match outcome; no fallback ranking is attempted.
    """
    tokens = decompose_query(query, stop_words)
    if not tokens:
        return tokens, []
    ranked = rank_tests(tests, tokens, policy)
    pool = extract_and_score_commands((s.test for s in ranked), tokens, query, policy)
    return tokens, deduplicate_and_sort(pool, limit, max_limit)
