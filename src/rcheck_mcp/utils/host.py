"""Host capability probes.

Probes never raise: failures are captured in the returned ProbeResult and
collapsed to a boolean by the caller.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

SPELLCHECK_BINARY = "aspell"
LATEX_BINARY = "pdflatex"

PROBE_TIMEOUT_SECONDS: float = 10.0


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a host capability probe."""

    available: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.available


def probe_spellchecker() -> ProbeResult:
    """Detect a working aspell installation.

    Returns:
        ProbeResult; ``error`` is set when the probe itself failed
    """
    path = shutil.which(SPELLCHECK_BINARY)
    if path is None:
        return ProbeResult(False, f"{SPELLCHECK_BINARY} not found on PATH")

    try:
        completed = subprocess.run(
            [path, "--version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=PROBE_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Spell-checker probe failed: {e}")
        return ProbeResult(False, str(e))

    if completed.returncode != 0:
        return ProbeResult(
            False, f"{SPELLCHECK_BINARY} exited with {completed.returncode}"
        )
    return ProbeResult(True)


def probe_latex() -> ProbeResult:
    """Detect pdflatex on PATH."""
    try:
        path = shutil.which(LATEX_BINARY)
    except OSError as e:
        logger.debug(f"LaTeX probe failed: {e}")
        return ProbeResult(False, str(e))
    if path is None:
        return ProbeResult(False, f"{LATEX_BINARY} not found on PATH")
    return ProbeResult(True)


def has_latex() -> bool:
    """Whether PDF manuals can be typeset on this host."""
    return bool(probe_latex())
