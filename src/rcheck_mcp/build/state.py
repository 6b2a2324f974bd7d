"""Check state management, result types and the check log classifier.

State machine for package sessions:
IDLE → BUILDING → CHECKING → READY | FAILED
     ↑______________________________|
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class BuildState(str, Enum):
    """Package session state machine states."""

    IDLE = "idle"
    BUILDING = "building"
    CHECKING = "checking"
    SUBMITTING = "submitting"
    READY = "ready"
    FAILED = "failed"


class CheckSeverity(str, Enum):
    """R CMD check finding severity levels."""

    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


@dataclass(frozen=True)
class MarkerRule:
    """A line pattern that opens a severity-classified block."""

    severity: CheckSeverity
    pattern: re.Pattern[str]
    # Whether the item line itself is part of the message
    keep_header: bool = False


# Item lines start every section of a check log, marked or not
ITEM_LINE_PREFIX = "* "

# Ordered: first match wins
MARKER_RULES: list[MarkerRule] = [
    MarkerRule(CheckSeverity.ERROR, re.compile(r"^\* ERROR")),
    MarkerRule(CheckSeverity.WARNING, re.compile(r"^\* WARNING")),
    MarkerRule(CheckSeverity.NOTE, re.compile(r"^\* NOTE")),
    # R CMD check's own format: "* checking Rd files ... NOTE"
    MarkerRule(
        CheckSeverity.ERROR,
        re.compile(r"^\* .* \.\.\. (?:\[[^\]]*\] )?ERROR$"),
        keep_header=True,
    ),
    MarkerRule(
        CheckSeverity.WARNING,
        re.compile(r"^\* .* \.\.\. (?:\[[^\]]*\] )?WARNING$"),
        keep_header=True,
    ),
    MarkerRule(
        CheckSeverity.NOTE,
        re.compile(r"^\* .* \.\.\. (?:\[[^\]]*\] )?NOTE$"),
        keep_header=True,
    ),
]


def _match_marker(line: str) -> tuple[MarkerRule, str] | None:
    """Return the first rule matching ``line`` and the header text it carries."""
    for rule in MARKER_RULES:
        match = rule.pattern.match(line)
        if match:
            if rule.keep_header:
                header = line[len(ITEM_LINE_PREFIX):]
            else:
                header = line[match.end():].lstrip(":").strip()
            return rule, header
    return None


def _finish_block(header: str, body: list[str]) -> str:
    while body and not body[-1].strip():
        body.pop()
    return "\n".join([header, *body] if header else body)


@dataclass
class CheckReport:
    """Structured result of an R CMD check run."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def bucket(self, severity: CheckSeverity) -> list[str]:
        """Get the message list for a severity."""
        if severity == CheckSeverity.ERROR:
            return self.errors
        if severity == CheckSeverity.WARNING:
            return self.warnings
        return self.notes

    @property
    def is_clean(self) -> bool:
        """Whether the check produced no findings at all."""
        return not (self.errors or self.warnings or self.notes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "notes": list(self.notes),
            "errorCount": len(self.errors),
            "warningCount": len(self.warnings),
            "noteCount": len(self.notes),
        }

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        if self.is_clean:
            return "[OK] R CMD check results: 0 errors | 0 warnings | 0 notes"

        parts = [
            f"R CMD check results: {len(self.errors)} errors | "
            f"{len(self.warnings)} warnings | {len(self.notes)} notes"
        ]
        for label, messages in (
            ("ERROR", self.errors),
            ("WARNING", self.warnings),
            ("NOTE", self.notes),
        ):
            for message in messages:
                parts.append(f"  [{label}] {message}")
        return "\n".join(parts)


def parse_check_log(text: str) -> CheckReport:
    """Parse R CMD check log text into a structured report.

    Each severity-marked item line opens a block; the block runs until the
    next item line or the end of text. Unmarked item lines close the current
    block and are otherwise ignored.

    Args:
        text: Contents of a ``00check.log`` file

    Returns:
        Report with messages in order of appearance per severity
    """
    report = CheckReport()
    current: tuple[CheckSeverity, str] | None = None
    body: list[str] = []

    for line in text.splitlines():
        if line.startswith(ITEM_LINE_PREFIX):
            if current is not None:
                report.bucket(current[0]).append(_finish_block(current[1], body))
            current = None
            body = []

            marker = _match_marker(line)
            if marker:
                rule, header = marker
                current = (rule.severity, header)
            continue

        if current is not None:
            body.append(line)

    # Truncated logs still emit the trailing block
    if current is not None:
        report.bucket(current[0]).append(_finish_block(current[1], body))

    return report


def read_check_log(path: str | Path) -> CheckReport:
    """Read and parse a check log from disk."""
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    return parse_check_log(text)


@dataclass
class InvocationResult:
    """Result of one external tool invocation."""

    command: list[str]
    exit_code: int | None
    duration_ms: float = 0.0
    log_path: str | None = None
    output: str | None = None

    @property
    def success(self) -> bool:
        """Whether the tool exited cleanly."""
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "command": " ".join(self.command),
            "durationMs": round(self.duration_ms, 2),
        }
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        if self.log_path:
            result["logPath"] = self.log_path
        return result
