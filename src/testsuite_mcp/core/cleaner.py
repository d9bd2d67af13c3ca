"""
Command cleaning: strip test-suite artifacts from a corpus command.

Test-suite commands reference fixture media (``counter.264``...) and carry
harness-only options (``:dur=``, ``!check_dur``...).  Before a command is
shown to a user the fixtures are renamed to generic placeholders and the
harness options are removed, with one note per change so the caller can show
the original alongside the cleaned form.
"""

import re
from dataclasses import dataclass, field, asdict
from typing import List, Tuple

# Ordered: fixture file / path fragment → generic placeholder
TEST_FILES: Tuple[Tuple[str, str], ...] = (
    ("counter.hvc", "input.hevc"),
    ("counter.264", "input.h264"),
    ("counter.mp4", "input.mp4"),
    ("dead_ogg.ogg", "input.ogg"),
    ("bifs-all.bt", "scene.bt"),
    ("counter_30s", "input"),
    ("test.mp4", "input.mp4"),
    ("auxiliary_files/", "media/"),
)

# Harness-only option fragments, removed with their value
TEST_OPTIONS: Tuple[str, ...] = (
    "!check_dur",
    "subs_sidx",
    ":dur=",
    ":bandwidth=",
    "pssh=",
    "buf=",
)


@dataclass
class CleanedCommand:
    cleaned: str
    changes: List[str] = field(default_factory=list)
    original: str = ""

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    def to_dict(self) -> dict:
        return asdict(self)


def _option_pattern(option: str) -> re.Pattern:
    # Preceding whitespace, the fragment, then its value up to whitespace or ':'
    return re.compile(r"\s*" + re.escape(option) + r"[^\s:]*")


_OPTION_PATTERNS = tuple((opt, _option_pattern(opt)) for opt in TEST_OPTIONS)


def clean_command(cmd: str) -> CleanedCommand:
    """Replace fixture names and drop harness options from *cmd*.

    Cleaning is idempotent: a command with nothing left to replace comes
    back unchanged with an empty change list.
    """
    if not is_test_command(cmd):
        return CleanedCommand(cleaned=cmd.strip(), original=cmd)

    cleaned = cmd
    changes: List[str] = []

    for test_file, placeholder in TEST_FILES:
        if test_file in cleaned:
            cleaned = cleaned.replace(test_file, placeholder)
            changes.append(f"Replaced {test_file} → {placeholder}")

    for option, pattern in _OPTION_PATTERNS:
        if option in cleaned:
            cleaned = pattern.sub("", cleaned)
            changes.append(f"Removed test option: {option}")

    return CleanedCommand(cleaned=cleaned.strip(), changes=changes, original=cmd)


def is_test_command(cmd: str) -> bool:
    """True when *cmd* still references fixtures or harness options."""
    return (any(opt in cmd for opt in TEST_OPTIONS)
            or any(test_file in cmd for test_file, _ in TEST_FILES))
