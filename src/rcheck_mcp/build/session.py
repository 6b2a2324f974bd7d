"""Package session - per-package pipeline with state machine.

State machine:
IDLE → BUILDING → CHECKING → READY | FAILED
     ↑______________________________|

Pipeline steps run strictly in sequence: document, build, check, parse.
Temporary directories are scoped to a single call.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from ..errors import MissingReportError
from ..utils.host import has_latex
from ..utils.package import PackageRef
from ..utils.upload import upload_ftp, win_builder_url
from .env import compose_build_env, compose_check_env, format_env_vars
from .policy import (
    ArtifactNamer,
    BuildOptions,
    CheckOptions,
    build_command,
    check_command,
    check_log_path,
    conventional_artifact_name,
    document_command,
    needs_r_platform,
    package_name_from_artifact,
    validate_versions,
)
from .runner import (
    FailPolicy,
    find_r_binary,
    find_rscript_binary,
    query_r_platform,
    run_command,
)
from .state import BuildState, CheckReport, InvocationResult, read_check_log

logger = logging.getLogger(__name__)


async def run_check(
    artifact_path: str,
    options: CheckOptions,
    quiet: bool = False,
) -> tuple[InvocationResult, CheckReport]:
    """Run R CMD check on a built package and parse its log.

    The check runs under the tolerant policy: a non-zero exit is recorded
    in the invocation result, and the log is parsed regardless.

    Raises:
        MissingReportError: If R CMD check wrote no 00check.log
    """
    # R CMD check runs inside check_dir
    artifact_path = str(Path(artifact_path).resolve())
    package_name = package_name_from_artifact(artifact_path)
    check_dir = str(Path(options.check_dir or tempfile.gettempdir()).resolve())

    env = compose_check_env(
        cran=options.cran,
        check_version=options.check_version,
        force_suggests=options.force_suggests,
    )
    if not quiet:
        logger.info(f"Setting env vars:\n{format_env_vars(env)}")
        logger.info(f"Checking {package_name}")

    cmd = check_command(find_r_binary(), artifact_path, options)
    result = await run_command(
        cmd,
        cwd=check_dir,
        env=env,
        stream_output=not quiet,
        fail_policy=FailPolicy.TOLERANT,
    )

    log_path = check_log_path(check_dir, package_name)
    result.log_path = str(log_path)
    if not log_path.is_file():
        raise MissingReportError(log_path)

    return result, read_check_log(log_path)


async def check_built(
    artifact_path: str,
    options: CheckOptions | None = None,
    quiet: bool = False,
) -> CheckReport:
    """Check an already built package without a session."""
    _, report = await run_check(artifact_path, options or CheckOptions(), quiet)
    return report


class PackageSession:
    """Per-package build and check session with state machine.

    Only one pipeline runs at a time per package (guarded by asyncio.Lock).
    """

    def __init__(
        self,
        package: PackageRef,
        artifact_namer: ArtifactNamer = conventional_artifact_name,
        latex_probe: Callable[[], bool] = has_latex,
    ):
        """Initialize package session.

        Args:
            package: Resolved package metadata
            artifact_namer: Strategy computing the built file name
            latex_probe: Whether PDF manuals can be built on this host
        """
        self._package = package
        self._artifact_namer = artifact_namer
        self._latex_probe = latex_probe
        self._state = BuildState.IDLE
        self._lock = asyncio.Lock()
        self._last_report: CheckReport | None = None
        self._last_invocation: InvocationResult | None = None
        self._state_listeners: list[Callable[[BuildState], None]] = []

    @property
    def package(self) -> PackageRef:
        """Package this session operates on."""
        return self._package

    @property
    def state(self) -> BuildState:
        """Current pipeline state."""
        return self._state

    @property
    def last_report(self) -> CheckReport | None:
        """Report of the last completed check."""
        return self._last_report

    @property
    def last_invocation(self) -> InvocationResult | None:
        """Last external tool invocation."""
        return self._last_invocation

    @property
    def is_busy(self) -> bool:
        """Whether a pipeline is currently running."""
        return self._lock.locked()

    def on_state_change(self, listener: Callable[[BuildState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: BuildState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"Package state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    def _latex_available(self) -> bool:
        try:
            return bool(self._latex_probe())
        except Exception as e:
            logger.debug(f"LaTeX probe failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Pipeline steps (callers hold the lock)
    # ------------------------------------------------------------------

    async def _document(self, quiet: bool) -> None:
        cmd = document_command(find_rscript_binary(), self._package)
        self._last_invocation = await run_command(
            cmd,
            cwd=self._package.path,
            env=compose_build_env(),
            stream_output=not quiet,
            fail_policy=FailPolicy.FATAL,
        )

    async def _build(
        self,
        dest_dir: str,
        options: BuildOptions,
        quiet: bool,
        env: dict[str, str] | None = None,
    ) -> str:
        latex = False
        if not options.binary and options.manual:
            latex = self._latex_available()
            if not latex:
                logger.warning(
                    "pdflatex not found! Not building PDF manual. "
                    "If you are planning to release this package, please run a "
                    "check with manual and vignettes beforehand."
                )

        cmd = build_command(find_r_binary(), self._package, options, latex)
        self._set_state(BuildState.BUILDING)
        r_platform = None
        if needs_r_platform(options.binary):
            r_platform = await query_r_platform()
        self._last_invocation = await run_command(
            cmd,
            cwd=dest_dir,
            env=env,
            stream_output=not quiet,
            fail_policy=FailPolicy.FATAL,
            # Keeps the default library from being contaminated
            isolate_library=True,
        )
        name = self._artifact_namer(self._package, options.binary, r_platform)
        return str(Path(dest_dir) / name)

    async def _check_built(
        self,
        artifact_path: str,
        options: CheckOptions,
        quiet: bool,
    ) -> CheckReport:
        self._set_state(BuildState.CHECKING)
        result, report = await run_check(artifact_path, options, quiet)
        self._last_invocation = result
        self._last_report = report
        return report

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def document(self, quiet: bool = False) -> None:
        """Regenerate documentation with roxygen2.

        Raises:
            ExternalToolError: If roxygen2 fails
        """
        async with self._lock:
            await self._document(quiet)

    async def build(
        self,
        dest_dir: str | None = None,
        options: BuildOptions | None = None,
        quiet: bool = False,
    ) -> str:
        """Build a source or binary package.

        Args:
            dest_dir: Directory receiving the artifact; defaults to the
                package's parent directory
            options: Build options
            quiet: Discard tool output instead of streaming it

        Returns:
            Path of the built artifact

        Raises:
            ExternalToolError: If the build tool exits non-zero
        """
        options = options or BuildOptions()
        dest_dir = dest_dir or str(Path(self._package.path).parent)

        async with self._lock:
            try:
                artifact = await self._build(dest_dir, options, quiet)
            except Exception:
                self._set_state(BuildState.FAILED)
                raise
            self._set_state(BuildState.READY)
            return artifact

    async def check_built(
        self,
        artifact_path: str,
        options: CheckOptions | None = None,
        quiet: bool = False,
    ) -> CheckReport:
        """Check an already built package.

        A check that finds ERRORs still returns a report; only a missing
        log is an error.

        Raises:
            MissingReportError: If R CMD check wrote no 00check.log
        """
        options = options or CheckOptions()
        async with self._lock:
            try:
                report = await self._check_built(artifact_path, options, quiet)
            except Exception:
                self._set_state(BuildState.FAILED)
                raise
            self._set_state(BuildState.READY)
            return report

    async def check(
        self,
        options: CheckOptions | None = None,
        build_options: BuildOptions | None = None,
        document: bool = True,
        keep_artifact: bool = False,
        quiet: bool = False,
    ) -> CheckReport:
        """Document, build and check the package.

        Args:
            options: Check options
            build_options: Options for the source build preceding the check
            document: Run roxygen2 first
            keep_artifact: Build into the check directory and leave the
                artifact there instead of a temporary directory
            quiet: Discard tool output instead of streaming it

        Returns:
            Parsed check report

        Raises:
            ExternalToolError: If documentation or build fails
            MissingReportError: If R CMD check wrote no log
        """
        options = options or CheckOptions()
        build_options = build_options or BuildOptions()

        async with self._lock:
            try:
                if document:
                    await self._document(quiet)

                build_env = compose_build_env()
                if not quiet:
                    logger.info(f"Setting env vars:\n{format_env_vars(build_env)}")
                    logger.info(f"Building {self._package.name}")

                if keep_artifact:
                    dest_dir = options.check_dir or tempfile.gettempdir()
                    artifact = await self._build(dest_dir, build_options, quiet, build_env)
                    report = await self._check_built(artifact, options, quiet)
                else:
                    with tempfile.TemporaryDirectory(prefix="rcheck-build-") as dest_dir:
                        artifact = await self._build(
                            dest_dir, build_options, quiet, build_env
                        )
                        report = await self._check_built(artifact, options, quiet)
            except Exception:
                self._set_state(BuildState.FAILED)
                raise

            self._set_state(BuildState.READY)
            return report

    async def build_remote(
        self,
        versions: list[str] | tuple[str, ...] | None = None,
        options: BuildOptions | None = None,
        confirm: Callable[[str], bool] | None = None,
        quiet: bool = False,
    ) -> list[str]:
        """Build a source package and submit it to win-builder.

        Results arrive by email to the maintainer, not here.

        Args:
            versions: win-builder R versions (default R-devel)
            options: Source build options (binary is ignored)
            confirm: Called with the delivery notice; returning False aborts
            quiet: Skip log messages and confirmation

        Returns:
            Uploaded URLs (empty if aborted)

        Raises:
            ValueError: If a version is unknown
            ExternalToolError: If the build or an upload fails
        """
        targets = validate_versions(versions)
        build_options = replace(options or BuildOptions(), binary=False)
        maintainer = self._package.maintainer or "the package maintainer"

        if not quiet:
            logger.info(
                f"Building windows version of {self._package.name} for "
                f"{', '.join(targets)} with win-builder.r-project.org."
            )
            if confirm is not None and not confirm(
                f"E-mail will be delivered to {maintainer}."
            ):
                logger.info("Remote build aborted")
                return []

        uploaded: list[str] = []
        async with self._lock:
            try:
                with tempfile.TemporaryDirectory(prefix="rcheck-remote-") as dest_dir:
                    artifact = await self._build(dest_dir, build_options, quiet)
                    self._set_state(BuildState.SUBMITTING)
                    for version in targets:
                        url = win_builder_url(version, Path(artifact).name)
                        await asyncio.to_thread(upload_ftp, url, artifact)
                        uploaded.append(url)
            except Exception:
                self._set_state(BuildState.FAILED)
                raise
            self._set_state(BuildState.READY)

        if not quiet:
            plural = "s" if len(targets) > 1 else ""
            logger.info(
                f"Check {maintainer} for a link to the built package{plural} "
                "in 30-60 mins."
            )
        return uploaded
