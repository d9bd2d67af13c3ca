"""
Testsuite-MCP Tool Documentation Indexer

Introspects the GPAC tools through their own help output and builds the
lookup structures the command validator checks against:

- ``gpac -ha filters``  → filter names and ``option → [filter, ...]``
- ``gpac -h doc``       → global ``--options``
- ``MP4Box -h <group>`` → MP4Box switches per help group

The help-text parsers are pure functions over captured text so they can be
tested without the binaries.  All process invocation goes through
:class:`ToolRunner`; any failure there leaves the indexes empty and is
logged, never raised to the caller (fail-open introspection).
"""

import logging
import os
import re
import subprocess
from dataclasses import dataclass, asdict, field
from typing import Dict, Iterable, List, Optional, Sequence

from testsuite_mcp.core.config import TestsuiteConfig
from testsuite_mcp.exceptions import IntrospectionError

logger = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
_FILTER_LINE_RE = re.compile(r"^([\w-]+):\s*(.*)")
_OPTION_LINE_RE = re.compile(r"^\s+-?([\w-]+)\s*\([^)]+\):\s*(.*)")
_CONTINUATION_RE = re.compile(r"^\s+\S")
_DASHED_LINE_RE = re.compile(r"^\s+-")
_GLOBAL_OPTION_RE = re.compile(r"^\s+(--[\w-]+)\s+(.+)")
_SWITCH_LINE_RE = re.compile(r"^\s*(-[\w-]+|:[\w-]+)\s+(.+)")
_CLOSEST_MATCH_RE = re.compile(r"closest match(?:es)?:\s*([^\n]+)", re.IGNORECASE)


# =============================================================================
# Data Models
# =============================================================================

@dataclass
class OptionDoc:
    """A filter option as documented by ``gpac -ha filters``."""
    filter: str
    option: str
    description: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SwitchDoc:
    """An MP4Box switch as documented by ``MP4Box -h <group>``."""
    switch: str
    group: str
    description: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class OptionProbe:
    """Outcome of a targeted ``gpac -h filter.option`` probe.

    ``valid`` is ``None`` when the probe could not run at all (tool missing,
    timeout): the option is then unconfirmed rather than invalid.
    """
    valid: Optional[bool]
    message: str
    suggestion: Optional[str] = None


# =============================================================================
# Help-text parsers
# =============================================================================

def strip_ansi(text: str) -> str:
    """Remove ANSI color escape sequences."""
    return _ANSI_RE.sub("", text)


def normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


@dataclass
class FiltersHelp:
    """Parsed ``gpac -ha filters`` listing."""
    filters: List[str] = field(default_factory=list)
    options: Dict[str, List[OptionDoc]] = field(default_factory=dict)


def parse_filters_help(output: str) -> FiltersHelp:
    """
    Parse ``gpac -ha filters`` output.

    An unindented ``name: description`` line opens a filter scope; an
    indented ``-option (type): description`` line registers an option under
    the current filter, and following indented lines that do not start with
    ``-`` are appended to its description.  Options are keyed by name; one
    name may belong to several filters.
    """
    index: Dict[str, List[OptionDoc]] = {}
    filters: List[str] = []
    current_filter = ""
    current_option = ""
    current_desc = ""

    def _save() -> None:
        if current_option and current_filter:
            index.setdefault(current_option, []).append(OptionDoc(
                filter=current_filter,
                option=current_option,
                description=normalize_whitespace(current_desc),
            ))

    for raw_line in strip_ansi(output).splitlines():
        line = raw_line.rstrip()

        filter_match = _FILTER_LINE_RE.match(line)
        if filter_match:
            _save()
            current_filter = filter_match.group(1)
            if current_filter not in filters:
                filters.append(current_filter)
            current_option = ""
            current_desc = ""
            continue

        option_match = _OPTION_LINE_RE.match(line)
        if option_match and current_filter:
            _save()
            current_option = option_match.group(1)
            current_desc = option_match.group(2)
            continue

        if current_option and _CONTINUATION_RE.match(line) and not _DASHED_LINE_RE.match(line):
            current_desc += " " + line.strip()

    _save()
    return FiltersHelp(filters=filters, options=index)


def parse_global_options(output: str) -> Dict[str, str]:
    """Parse ``gpac -h doc`` output into ``{"--option": description}``."""
    options: Dict[str, str] = {}
    for line in strip_ansi(output).splitlines():
        match = _GLOBAL_OPTION_RE.match(line)
        if match:
            options[match.group(1)] = normalize_whitespace(match.group(2))
    return options


def parse_mp4box_help(output: str, group: str) -> Dict[str, List[SwitchDoc]]:
    """Parse ``MP4Box -h <group>`` output into ``{switch: [SwitchDoc, ...]}``.

    Matches both dash switches (``-add``) and colon modifiers (``:sbr``).
    """
    switches: Dict[str, List[SwitchDoc]] = {}
    for line in strip_ansi(output).splitlines():
        match = _SWITCH_LINE_RE.match(line)
        if match:
            switch = match.group(1)
            switches.setdefault(switch, []).append(SwitchDoc(
                switch=switch,
                group=group,
                description=normalize_whitespace(match.group(2)),
            ))
    return switches


# =============================================================================
# Tool invocation
# =============================================================================

class ToolRunner:
    """Run a tool's self-documentation command and return its stdout.

    The environment is pinned to the C locale and a wide terminal so help
    output is stable across hosts.  Output is decoded as UTF-8 with
    undecodable bytes replaced.
    """

    def __init__(self, extra_env: Optional[Dict[str, str]] = None):
        self._env = {**os.environ, "LANG": "C", "LC_ALL": "C", "COLUMNS": "200"}
        if extra_env:
            self._env.update(extra_env)

    def help(self, binary: str, args: Sequence[str], timeout: float) -> str:
        """
        Run ``binary *args`` and return stdout.

        Raises:
            IntrospectionError: If the binary is missing, times out or exits
                non-zero.  ``returncode`` is ``None`` for the first two.
        """
        cmd = [binary, *args]
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                env=self._env,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError as exc:
            raise IntrospectionError(f"{binary} not found: {exc}") from exc
        except subprocess.TimeoutExpired as exc:
            raise IntrospectionError(
                f"'{' '.join(cmd)}' timed out after {timeout}s"
            ) from exc
        except OSError as exc:
            raise IntrospectionError(f"Failed to run '{' '.join(cmd)}': {exc}") from exc

        if proc.returncode != 0:
            raise IntrospectionError(
                f"'{' '.join(cmd)}' exited with status {proc.returncode}",
                returncode=proc.returncode,
                stderr=proc.stderr or "",
            )
        return proc.stdout or ""


# =============================================================================
# GPAC filter documentation
# =============================================================================

class GpacDocs:
    """
    Memoized index of GPAC filters, filter options and global options.

    :meth:`build` shells out once; later calls are no-ops.  When the filter
    listing cannot be obtained, :attr:`available` stays ``False`` and every
    lookup answers from empty indexes.
    """

    def __init__(self, config: TestsuiteConfig | None = None,
                 runner: ToolRunner | None = None):
        self._config = config or TestsuiteConfig.from_env()
        self._runner = runner or ToolRunner()
        self._options: Dict[str, List[OptionDoc]] = {}
        self._filters: set = set()
        self._global_options: Dict[str, str] = {}
        self._help_cache: Dict[str, str] = {}
        self._built = False
        self.available = False

    # ── Build ─────────────────────────────────────────────────────

    def build(self) -> bool:
        """Index ``gpac -ha filters`` and ``gpac -h doc`` (once). Returns :attr:`available`."""
        if self._built:
            return self.available
        self._built = True

        cfg = self._config
        try:
            output = self._runner.help(cfg.gpac_bin, ["-ha", "filters"], cfg.filters_help_timeout)
        except IntrospectionError as exc:
            logger.warning(f"Failed to index GPAC filters: {exc}")
            return self.available

        parsed = parse_filters_help(output)
        self._filters = set(parsed.filters)
        self._options = parsed.options
        self.available = bool(self._filters)

        try:
            output = self._runner.help(cfg.gpac_bin, ["-h", "doc"], cfg.global_help_timeout)
            self._global_options = parse_global_options(output)
        except IntrospectionError as exc:
            logger.warning(f"Failed to parse GPAC global options: {exc}")

        logger.info(
            f"Indexed {len(self._options)} options, {len(self._filters)} filters, "
            f"{len(self._global_options)} global opts"
        )
        return self.available

    # ── Lookups ───────────────────────────────────────────────────

    def is_filter(self, name: str) -> bool:
        self.build()
        return name in self._filters

    def find_option(self, option: str) -> List[OptionDoc]:
        """All filters documenting an option called *option*."""
        self.build()
        return list(self._options.get(option, []))

    @property
    def has_global_options(self) -> bool:
        """True once ``gpac -h doc`` produced at least one global option."""
        self.build()
        return bool(self._global_options)

    def global_option(self, name: str) -> Optional[str]:
        """Description of a global ``--option`` (leading dashes optional)."""
        self.build()
        key = name if name.startswith("--") else f"--{name.lstrip('-')}"
        return self._global_options.get(key)

    def filter_help(self, name: str) -> str:
        """Full ``gpac -h <filter>`` text, cached per filter name."""
        if name in self._help_cache:
            return self._help_cache[name]
        cfg = self._config
        try:
            text = self._runner.help(cfg.gpac_bin, ["-h", name], cfg.component_help_timeout)
        except IntrospectionError as exc:
            return exc.stderr or f"Error: filter '{name}' not found"
        self._help_cache[name] = text
        return text

    def probe_option(self, filter_name: str, option: str) -> OptionProbe:
        """Check ``filter.option`` against the live tool (not cached)."""
        cfg = self._config
        target = f"{filter_name}.{option}"
        try:
            output = self._runner.help(cfg.gpac_bin, ["-h", target], cfg.option_probe_timeout)
        except IntrospectionError as exc:
            if exc.returncode is None:
                return OptionProbe(valid=None, message=f"Could not check {target}: {exc}")
            match = _CLOSEST_MATCH_RE.search(exc.stderr or "")
            suggestion = match.group(1).strip() if match else None
            return OptionProbe(valid=False, message=f"{target} not found", suggestion=suggestion)
        if "not found" in output.lower():
            return OptionProbe(valid=False, message=f"Failed to validate {target}")
        return OptionProbe(valid=True, message="OK")

    def stats(self) -> Dict[str, int | bool]:
        return {
            "available": self.available,
            "filters": len(self._filters),
            "options": len(self._options),
            "global_options": len(self._global_options),
        }


# =============================================================================
# MP4Box switch documentation
# =============================================================================

class MP4BoxDocs:
    """Memoized index of MP4Box switches across the configured help groups."""

    def __init__(self, config: TestsuiteConfig | None = None,
                 runner: ToolRunner | None = None):
        self._config = config or TestsuiteConfig.from_env()
        self._runner = runner or ToolRunner()
        self._switches: Dict[str, List[SwitchDoc]] = {}
        self._built = False
        self.available = False

    @property
    def groups(self) -> Iterable[str]:
        return self._config.mp4box_help_groups

    def build(self) -> bool:
        """Index every help group (once). Returns :attr:`available`."""
        if self._built:
            return self.available
        self._built = True

        cfg = self._config
        for group in cfg.mp4box_help_groups:
            try:
                output = self._runner.help(cfg.mp4box_bin, ["-h", group], cfg.mp4box_help_timeout)
            except IntrospectionError as exc:
                logger.warning(f"Failed to index MP4Box help group '{group}': {exc}")
                continue
            for switch, docs in parse_mp4box_help(output, group).items():
                self._switches.setdefault(switch, []).extend(docs)

        self.available = bool(self._switches)
        logger.info(f"Indexed {len(self._switches)} MP4Box switches")
        return self.available

    def is_switch(self, switch: str) -> bool:
        self.build()
        return switch in self._switches

    def switch_info(self, switch: str) -> List[SwitchDoc]:
        self.build()
        return list(self._switches.get(switch, []))

    def stats(self) -> Dict[str, int | bool]:
        return {"available": self.available, "switches": len(self._switches)}


def is_mp4box_command(command: str) -> bool:
    """True when *command* invokes MP4Box rather than the gpac filter graph."""
    return command.strip().startswith("MP4Box")
