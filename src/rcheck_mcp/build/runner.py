"""Process runner for external R tools.

Runs one command per call with:
- An explicit environment overlay (os.environ is never mutated)
- Optional isolated library directory prepended to R_LIBS
- Fatal or tolerant handling of non-zero exits
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys
import tempfile
import time
from collections.abc import Mapping
from enum import Enum

from ..errors import ExternalToolError
from .state import InvocationResult

logger = logging.getLogger(__name__)

R_PATH_ENV_VAR = "RCHECK_R_PATH"
R_LIBS_VAR = "R_LIBS"

# Streamed lines longer than this are truncated
MAX_OUTPUT_LINE: int = 10_000


class FailPolicy(str, Enum):
    """What a non-zero exit means to the caller."""

    FATAL = "fatal"
    TOLERANT = "tolerant"


def find_r_binary() -> str:
    """Resolve the R front-end executable.

    Checks RCHECK_R_PATH first, then PATH. Falls back to plain ``R`` so the
    failure surfaces when the command runs.
    """
    configured = os.environ.get(R_PATH_ENV_VAR)
    if configured:
        return configured
    return shutil.which("R") or "R"


def find_rscript_binary() -> str:
    """Resolve Rscript, preferring the one next to a configured R."""
    configured = os.environ.get(R_PATH_ENV_VAR)
    if configured:
        sibling = os.path.join(os.path.dirname(configured), "Rscript")
        if os.path.isfile(sibling) or os.path.isfile(sibling + ".exe"):
            return sibling
    return shutil.which("Rscript") or "Rscript"


def merge_env(
    overlay: Mapping[str, str] | None,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build a subprocess environment with the overlay winning on collision."""
    env = dict(os.environ if base is None else base)
    if overlay:
        env.update(overlay)
    return env


def prepend_library(env: dict[str, str], library: str) -> dict[str, str]:
    """Put ``library`` first on the R library search path."""
    existing = env.get(R_LIBS_VAR)
    env[R_LIBS_VAR] = library + os.pathsep + existing if existing else library
    return env


async def _forward_stream(
    stream: asyncio.StreamReader | None,
    lines: list[str] | None = None,
    echo: bool = True,
) -> None:
    """Read subprocess output line by line.

    Args:
        stream: Pipe to drain
        lines: Collects decoded lines when given
        echo: Copy each line to the host stderr
    """
    if stream is None:
        return
    while True:
        line = await stream.readline()
        if not line:
            break
        decoded = line.decode("utf-8", errors="replace")
        if lines is not None:
            lines.append(decoded)
        if echo:
            if len(decoded) > MAX_OUTPUT_LINE:
                decoded = decoded[:MAX_OUTPUT_LINE] + "...[truncated]\n"
            # stdout belongs to the MCP transport
            sys.stderr.write(decoded)
    if echo:
        sys.stderr.flush()


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill a child and reap it."""
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


async def run_command(
    command: list[str],
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    stream_output: bool = False,
    fail_policy: FailPolicy = FailPolicy.FATAL,
    isolate_library: bool = False,
    capture_output: bool = False,
) -> InvocationResult:
    """Run an external command to completion.

    Args:
        command: Command and arguments
        cwd: Working directory
        env: Variables merged over the ambient environment for this call only
        stream_output: Forward output to stderr instead of discarding it
        fail_policy: Raise on non-zero exit (FATAL) or return it (TOLERANT)
        isolate_library: Prepend a fresh, empty R library for this call
        capture_output: Keep stdout in the result's ``output``

    Returns:
        Invocation result with the exit code

    Raises:
        ExternalToolError: On non-zero exit under FATAL, or if the command
            cannot be started
    """
    proc_env = merge_env(env)
    temp_lib: str | None = None
    start_time = time.perf_counter()

    try:
        if isolate_library:
            temp_lib = tempfile.mkdtemp(prefix="rcheck-lib-")
            prepend_library(proc_env, temp_lib)
            logger.debug(f"Using isolated library: {temp_lib}")

        pipe, devnull = asyncio.subprocess.PIPE, asyncio.subprocess.DEVNULL
        stdout = pipe if stream_output or capture_output else devnull
        stderr = pipe if stream_output else devnull

        logger.info(f"Running: {' '.join(command)}")
        try:
            # Never use shell=True
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=stdout,
                stderr=stderr,
                cwd=cwd,
                env=proc_env,
            )
        except OSError as e:
            raise ExternalToolError(
                f"Failed to start {command[0]}: {e}", command=command
            ) from e

        captured: list[str] | None = [] if capture_output else None
        try:
            if stream_output or capture_output:
                await asyncio.gather(
                    _forward_stream(process.stdout, captured, echo=stream_output),
                    _forward_stream(process.stderr if stream_output else None),
                )
            await process.wait()
        except asyncio.CancelledError:
            # Child must be gone before its library is removed
            logger.warning(f"Cancelled, killing: {' '.join(command)}")
            await _kill(process)
            raise

        exit_code = process.returncode
        duration = (time.perf_counter() - start_time) * 1000

        if exit_code != 0:
            if fail_policy == FailPolicy.FATAL:
                raise ExternalToolError(
                    f"Command failed with exit code {exit_code}: {' '.join(command)}",
                    command=command,
                    exit_code=exit_code,
                )
            logger.warning(f"Command exited with {exit_code} (tolerated)")

        return InvocationResult(
            command=list(command),
            exit_code=exit_code,
            duration_ms=duration,
            output="".join(captured) if captured is not None else None,
        )

    finally:
        if temp_lib is not None:
            shutil.rmtree(temp_lib, ignore_errors=True)


async def query_r_platform() -> str:
    """Platform triplet of the configured R, e.g. ``x86_64-pc-linux-gnu``.

    R sets R_PLATFORM in its own Renviron, so the server's environment
    usually lacks it. Asks Rscript first and falls back to R_PLATFORM from
    os.environ (possibly empty) if R cannot answer.
    """
    cmd = [find_rscript_binary(), "--vanilla", "-e", "cat(R.version$platform)"]
    try:
        result = await run_command(
            cmd, fail_policy=FailPolicy.TOLERANT, capture_output=True
        )
    except ExternalToolError as e:
        logger.debug(f"R platform query failed: {e}")
    else:
        platform = (result.output or "").strip()
        if result.success and platform:
            return platform
        logger.debug(f"R platform query returned {result.exit_code}: {platform!r}")
    return os.environ.get("R_PLATFORM", "")
