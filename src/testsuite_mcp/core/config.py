"""
Testsuite-MCP Configuration Module

Centralized configuration for the test-suite indexing, command search and
validation system.  The scoring policy (field weights and intent bonuses)
lives here as named constants so the ranking can be swapped without touching
the indexing or assembly code.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

# =============================================================================
# Scoring Policy
# =============================================================================

@dataclass(frozen=True)
class IntentBonus:
    """A narrow command-pattern / query-intent pair that adds a fixed bonus.

    ``command_pattern`` is searched in the lower-cased command,
    ``intent_pattern`` in each query token; both must hit.
    """
    name: str
    command_pattern: str
    intent_pattern: str
    bonus: float


# Stage 1: test-level field weights (per token found)
TEST_FIELD_WEIGHTS: Dict[str, float] = {
    "name": 5.0,
    "keyword": 3.0,
    "description": 2.0,
    "subtest_name": 2.0,
    # Multiplied by the number of distinct tokens found when more than one hit
    "multi_token": 5.0,
}

# Stage 2: command-level weights
COMMAND_FIELD_WEIGHTS: Dict[str, float] = {
    "subtest_keyword": 10.0,
    "description": 8.0,
    "command": 5.0,
    "full_query_in_description": 15.0,
    "full_query_in_command": 10.0,
}

INTENT_BONUSES: Tuple[IntentBonus, ...] = (
    IntentBonus("segmenting", r"(?<![\w-])-dash\b|\bcmaf=",r"dash|cmaf|mpd|segment", 4.0),
    IntentBonus("rendering", r"compositor:|vout\b|png\b|rgb\b", r"render|bifs|png|rgb", 3.0),
    IntentBonus("inspection", r"inspect:|analy[sz]e=on|dump\b", r"inspect|probe|boxes?", 2.0),
    IntentBonus("encryption", r"-crypt\b|encryption|cenc", r"encrypt|crypt|cenc|drm", 4.0),
)


@dataclass(frozen=True)
class ScoringPolicy:
    """Bundle of weights and bonuses used by the relevance scorer."""
    test_weights: Dict[str, float] = field(default_factory=lambda: dict(TEST_FIELD_WEIGHTS))
    command_weights: Dict[str, float] = field(default_factory=lambda: dict(COMMAND_FIELD_WEIGHTS))
    intent_bonuses: Tuple[IntentBonus, ...] = INTENT_BONUSES


STOP_WORDS: frozenset = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "from", "by", "via", "how", "what", "when", "where",
    "why", "is", "are", "was", "were", "be", "been", "have", "has", "had",
    "do", "does", "did", "will", "would", "should", "could", "can", "may",
    "might", "must", "i", "you", "he", "she", "it", "we", "they", "this",
    "that", "these", "those", "my", "your", "his", "her", "its", "our",
    "their",
})


# =============================================================================
# Instance-Based Configuration
# =============================================================================

def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TestsuiteConfig:
    """
    Instance-based configuration for Testsuite-MCP.

    Each ``TestsuiteConfig`` instance is self-contained and can be passed
    through the call stack, which keeps tests and embedded uses independent
    of the process environment.

    Create from environment variables::

        config = TestsuiteConfig.from_env()

    Or with explicit values::

        config = TestsuiteConfig(xml_tests_path="./all_tests_descriptions.xml")
    """

    __test__ = False

    # ── Corpus & auxiliary inputs ─────────────────────────────────
    xml_tests_path: str = "./all_tests_descriptions.xml"
    aliases_path: Optional[str] = "./aliases.json"
    scripts_dir: str = "./scripts"

    # ── Tool binaries ─────────────────────────────────────────────
    gpac_bin: str = "gpac"
    mp4box_bin: str = "MP4Box"
    mp4box_help_groups: Tuple[str, ...] = ("import", "dash", "hint")

    # ── Introspection timeouts (seconds) ──────────────────────────
    filters_help_timeout: float = 30.0
    global_help_timeout: float = 5.0
    component_help_timeout: float = 5.0
    mp4box_help_timeout: float = 5.0
    option_probe_timeout: float = 2.0

    # ── Validation ────────────────────────────────────────────────
    validate_commands: bool = True
    # Option probes allowed per returned command; a query gets limit * this
    option_probes_per_command: int = 8

    # ── Listing / search limits ───────────────────────────────────
    default_limit: int = 10
    max_limit: int = 50
    max_desc_chars: int = 220
    find_default_limit: int = 5
    find_max_limit: int = 10
    find_max_desc_chars: int = 180
    # Commands scoring above this are reported with "high" confidence
    high_confidence_score: float = 5.0

    # ── Scoring ───────────────────────────────────────────────────
    stop_words: frozenset = STOP_WORDS
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)

    # ── Logging ───────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ── Factory ───────────────────────────────────────────────────

    @classmethod
    def from_env(cls) -> "TestsuiteConfig":
        """Build a config snapshot from current environment variables.

        ``GPAC`` and ``MP4BOX`` are honoured as fallbacks for the binary
        paths since the repro scripts use the same names.
        """
        return cls(
            xml_tests_path=os.getenv("XML_TESTS_PATH", "./all_tests_descriptions.xml"),
            aliases_path=os.getenv("ALIASES_PATH", "./aliases.json") or None,
            scripts_dir=os.getenv("SCRIPTS_DIR", "./scripts"),
            gpac_bin=os.getenv("GPAC_BIN") or os.getenv("GPAC") or "gpac",
            mp4box_bin=os.getenv("MP4BOX_BIN") or os.getenv("MP4BOX") or "MP4Box",
            validate_commands=_env_flag("TESTSUITE_VALIDATE", True),
            log_level=os.getenv("TESTSUITE_LOG_LEVEL", "INFO").upper(),
        )

    # ── Validation & Accessors ────────────────────────────────────

    def validate(self) -> bool:
        """
        Check internal consistency of limits and timeouts.

        Raises :class:`~testsuite_mcp.exceptions.ConfigError` on failure.
        """
        from testsuite_mcp.exceptions import ConfigError

        if self.default_limit < 1 or self.default_limit > self.max_limit:
            raise ConfigError(
                f"default_limit must be between 1 and max_limit ({self.max_limit}), "
                f"got {self.default_limit}."
            )
        if self.find_default_limit < 1 or self.find_default_limit > self.find_max_limit:
            raise ConfigError(
                f"find_default_limit must be between 1 and find_max_limit "
                f"({self.find_max_limit}), got {self.find_default_limit}."
            )
        timeouts = {
            "filters_help_timeout": self.filters_help_timeout,
            "global_help_timeout": self.global_help_timeout,
            "component_help_timeout": self.component_help_timeout,
            "mp4box_help_timeout": self.mp4box_help_timeout,
            "option_probe_timeout": self.option_probe_timeout,
        }
        for name, value in timeouts.items():
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}.")
        return True

    def resolve_limit(self, limit: Optional[int], *, find: bool = False) -> int:
        """Apply the default for *limit* and reject values outside 1..max.

        ``find=True`` selects the (smaller) command-search limits.
        """
        from testsuite_mcp.exceptions import ConfigError

        default = self.find_default_limit if find else self.default_limit
        hard_max = self.find_max_limit if find else self.max_limit
        if limit is None:
            return default
        if limit < 1 or limit > hard_max:
            raise ConfigError(f"limit must be between 1 and {hard_max}, got {limit}.")
        return limit

    def get_xml_path(self) -> Path:
        """Path of the test-description XML."""
        return Path(self.xml_tests_path)

    def get_aliases_path(self) -> Optional[Path]:
        """Path of the alias table, or None when aliases are disabled."""
        return Path(self.aliases_path) if self.aliases_path else None
