"""Build and check orchestration for R packages.

Provides devtools-like build and check functionality with:
- R CMD build / INSTALL --build for source and binary artifacts
- R CMD check with CRAN-style environment variables
- Check log classification into errors, warnings and notes
- win-builder submission over FTP
- Per-package async lock with state machine
"""

from .env import compiler_flags, compose_build_env, compose_check_env
from .manager import CheckManager
from .policy import BuildOptions, CheckOptions, RCommand
from .runner import FailPolicy, run_command
from .session import PackageSession, check_built
from .state import (
    BuildState,
    CheckReport,
    CheckSeverity,
    InvocationResult,
    parse_check_log,
    read_check_log,
)

__all__ = [
    "BuildOptions",
    "CheckOptions",
    "RCommand",
    "BuildState",
    "CheckReport",
    "CheckSeverity",
    "InvocationResult",
    "parse_check_log",
    "read_check_log",
    "FailPolicy",
    "run_command",
    "compiler_flags",
    "compose_build_env",
    "compose_check_env",
    "PackageSession",
    "CheckManager",
    "check_built",
]
