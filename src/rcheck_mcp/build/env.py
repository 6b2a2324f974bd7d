"""Environment variables for R CMD build and check.

Every function returns a fresh mapping; nothing here touches os.environ.
The runner merges these overlays into the subprocess environment.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..utils.host import ProbeResult, probe_spellchecker

logger = logging.getLogger(__name__)

INCOMING_CHECK_VAR = "_R_CHECK_CRAN_INCOMING_"
FORCE_SUGGESTS_VAR = "_R_CHECK_FORCE_SUGGESTS_"
USE_ASPELL_VAR = "_R_CHECK_CRAN_INCOMING_USE_ASPELL_"


def _flag(value: bool) -> str:
    return "true" if value else "false"


def compiler_flags(debug: bool = False) -> dict[str, str]:
    """Compiler flags that surface warnings and keep debug symbols.

    Args:
        debug: Also force coloured diagnostics

    Returns:
        Compiler environment variables
    """
    c_flags = "-UNDEBUG -Wall -pedantic -g -O0"
    if debug:
        c_flags += " -fdiagnostics-color=always"

    return {
        "CFLAGS": c_flags,
        "CXXFLAGS": c_flags,
        "CXX11FLAGS": c_flags,
        "FFLAGS": "-g -O0",
        "FCFLAGS": "-g -O0",
    }


def r_env_vars() -> dict[str, str]:
    """Variables that keep R subprocesses non-interactive and reproducible."""
    return {
        "NOT_CRAN": "true",
        "R_BROWSER": "false",
        "R_PDFVIEWER": "false",
        "R_TESTS": "",
        "CYGWIN": "nodosfilewarning",
    }


def compose_build_env() -> dict[str, str]:
    """Baseline environment for building a package before checking it."""
    return {**r_env_vars(), **compiler_flags(debug=False)}


def compose_check_env(
    cran: bool = False,
    check_version: bool = False,
    force_suggests: bool = False,
    spell_probe: Callable[[], ProbeResult] = probe_spellchecker,
) -> dict[str, str]:
    """Environment for R CMD check.

    Args:
        cran: Whether the check runs with --as-cran (no variables depend on it)
        check_version: Enable the incoming-CRAN version checks
        force_suggests: Fail when suggested packages are unavailable
        spell_probe: Host probe deciding whether to enable aspell checks

    Returns:
        Environment overlay for the check subprocess
    """
    env = compose_build_env()

    try:
        probe = spell_probe()
    except Exception as e:
        probe = ProbeResult(False, str(e))

    if probe:
        env[USE_ASPELL_VAR] = "true"
    else:
        logger.debug(f"Spell-checking disabled: {probe.error or 'not available'}")

    env[INCOMING_CHECK_VAR] = _flag(check_version)
    env[FORCE_SUGGESTS_VAR] = _flag(force_suggests)
    return env


def format_env_vars(env: dict[str, str]) -> str:
    """Render an overlay as aligned ``NAME: value`` lines."""
    if not env:
        return ""
    width = max(len(name) for name in env)
    return "\n".join(f"{name.ljust(width)}: {value}" for name, value in env.items())
