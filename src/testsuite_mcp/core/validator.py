"""
Static GPAC command validation (no media is ever processed).

A command is checked against the documentation indexes built by
:mod:`testsuite_mcp.core.docs`.  MP4Box commands and gpac filter-graph
commands have incompatible grammars, so each gets its own branch.

Validation problems are data, not exceptions: :func:`validate_command`
never raises and reports a :class:`ValidationResult`.  When the
documentation could not be introspected there is nothing to contradict the
command, so it passes with an "unconfirmed" warning.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from testsuite_mcp.core.docs import GpacDocs, MP4BoxDocs, is_mp4box_command

logger = logging.getLogger(__name__)

_FILTER_TOKEN_RE = re.compile(r"(\w+):([^\s@]+)")
_FILTER_SYNTAX_RE = re.compile(r"\w+:\w+=")
_SWITCH_RE = re.compile(r"\s-([a-z][a-z-]*)")
_GLOBAL_OPTION_RE = re.compile(r"(?<!\S)(--[\w-]+)")
# Reserved input/output shorthands of the gpac command line
_RESERVED_TOKENS = frozenset({"i", "o"})


@dataclass
class ValidationIssue:
    """One validation error: ``kind`` is ``filter``, ``option`` or ``switch``."""
    kind: str
    message: str
    filter: Optional[str] = None
    option: Optional[str] = None
    switch: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"type": self.kind}
        for key in ("filter", "option", "switch"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        out["message"] = self.message
        if self.suggestion:
            out["suggestion"] = self.suggestion
        return out


@dataclass
class ValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    probes: int = 0
    """Number of live option probes spent on this command."""

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        out = {"valid": self.valid, "errors": [e.to_dict() for e in self.errors]}
        if self.warnings:
            out["warnings"] = list(self.warnings)
        return out


def validate_command(cmd: str, gpac_docs: GpacDocs, mp4box_docs: MP4BoxDocs,
                     max_probes: Optional[int] = None) -> ValidationResult:
    """
    Validate *cmd* against the tool documentation.

    Args:
        cmd: A (cleaned) gpac or MP4Box command line.
        gpac_docs: Filter/option index, built on first use.
        mp4box_docs: MP4Box switch index, built on first use.
        max_probes: Upper bound on live ``filter.option`` probes for this
            command; ``None`` means unbounded.  Options left unchecked are
            reported as a warning.
    """
    if is_mp4box_command(cmd):
        return _validate_mp4box(cmd, mp4box_docs)
    return _validate_gpac_filters(cmd, gpac_docs, max_probes)


def _validate_gpac_filters(cmd: str, docs: GpacDocs,
                           max_probes: Optional[int]) -> ValidationResult:
    result = ValidationResult()
    if not docs.build():
        result.warnings.append(
            "GPAC filter documentation unavailable; command could not be confirmed."
        )
        return result

    skipped = 0
    for match in _FILTER_TOKEN_RE.finditer(cmd):
        filter_name, opt_str = match.group(1), match.group(2)
        if filter_name in _RESERVED_TOKENS:
            continue

        if not docs.is_filter(filter_name):
            result.errors.append(ValidationIssue(
                kind="filter",
                filter=filter_name,
                message=f"'{filter_name}' is not a valid GPAC filter. See 'gpac -ha filters'.",
            ))
            continue

        for opt in opt_str.split(":"):
            name = opt.split("=", 1)[0]
            if not name:
                continue
            if max_probes is not None and result.probes >= max_probes:
                skipped += 1
                continue

            result.probes += 1
            probe = docs.probe_option(filter_name, name)
            if probe.valid is None:
                result.warnings.append(probe.message)
                continue
            if probe.valid:
                continue

            alternatives = [d.filter for d in docs.find_option(name) if d.filter != filter_name]
            suggestion = (
                f"Option '{name}' exists in: {', '.join(dict.fromkeys(alternatives))}"
                if alternatives else probe.suggestion
            )
            result.errors.append(ValidationIssue(
                kind="option",
                filter=filter_name,
                option=name,
                message=probe.message,
                suggestion=suggestion,
            ))

    if skipped:
        result.warnings.append(f"{skipped} option(s) not checked (probe limit reached).")

    # --name sets a global option or a default for every filter declaring it
    if docs.has_global_options:
        for opt in dict.fromkeys(_GLOBAL_OPTION_RE.findall(cmd)):
            if docs.global_option(opt) is None and not docs.find_option(opt[2:]):
                result.warnings.append(
                    f"'{opt}' is neither a documented global option nor a filter option."
                )
    return result


def _validate_mp4box(cmd: str, docs: MP4BoxDocs) -> ValidationResult:
    result = ValidationResult()
    if not docs.build():
        result.warnings.append(
            "MP4Box documentation unavailable; switches could not be confirmed."
        )
        return result

    if _FILTER_SYNTAX_RE.search(cmd):
        result.errors.append(ValidationIssue(
            kind="switch",
            message="MP4Box does not use filter:option syntax. Use MP4Box flags instead.",
        ))

    groups = "/".join(docs.groups)
    for match in _SWITCH_RE.finditer(cmd):
        flag = f"-{match.group(1)}"
        if not docs.is_switch(flag):
            result.errors.append(ValidationIssue(
                kind="switch",
                switch=match.group(1),
                message=f"Unknown MP4Box switch: {flag}",
                suggestion=f"Check 'MP4Box -h {groups}'",
            ))
    return result
