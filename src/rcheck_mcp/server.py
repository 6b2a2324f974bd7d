"""MCP Server for R package build and check."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from mcp.server.fastmcp import Context, FastMCP

from .build import BuildOptions, CheckManager, CheckOptions, read_check_log
from .build.state import parse_check_log as parse_log_text
from .errors import RCheckError
from .utils.project import get_package_root

logger = logging.getLogger(__name__)


def _error(e: Exception) -> dict:
    """Tool failure payload."""
    if isinstance(e, RCheckError):
        return {"success": False, **e.to_dict()}
    return {"success": False, "error": str(e)}


async def resolve_package(ctx: Context | None, package: str | None) -> str:
    """Resolve the package directory a tool should act on.

    Raises:
        ValueError: If no package was given and none can be detected
    """
    if package:
        return str(Path(package).expanduser())
    root = await get_package_root(ctx)
    if root is None:
        raise ValueError(
            "Cannot determine package root. Pass package=<path to package directory>."
        )
    return str(root)


def create_server(package_path: str | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        package_path: Default package directory, used when neither the tool
            call nor the MCP client names one
    """
    mcp = FastMCP("rcheck-mcp")
    manager = CheckManager()

    # Resource update notifications for subscribed clients
    from pydantic import AnyUrl

    async def notify_state_changed(ctx: Context) -> None:
        """Notify client that rcheck://state resource has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl("rcheck://state"))
        except Exception:
            logger.debug("Resource update notification failed", exc_info=True)

    async def package_for(ctx: Context, package: str | None) -> str:
        return await resolve_package(ctx, package or package_path)

    # ============== Build & Check Tools ==============

    @mcp.tool()
    async def check_package(
        ctx: Context,
        package: str | None = None,
        document: bool = True,
        cran: bool = True,
        check_version: bool = False,
        force_suggests: bool = False,
        run_dont_test: bool = False,
        args: list[str] | None = None,
        build_args: list[str] | None = None,
        check_dir: str | None = None,
    ) -> dict:
        """
        Build and check an R package with R CMD check. RECOMMENDED before release.

        Runs roxygen2 (if document=True), builds a source tarball in a temporary
        directory, runs R CMD check on it, and returns the findings grouped into
        errors, warnings and notes. A check that finds ERRORs still succeeds as a
        tool call: read data.errors to see what failed.

        Args:
            package: Package directory (defaults to the detected package root)
            document: Regenerate documentation with roxygen2 first
            cran: Check with --as-cran
            check_version: Run incoming-CRAN version checks
            force_suggests: Fail if suggested packages are not installed
            run_dont_test: Also run examples wrapped in \\donttest{}
            args: Extra arguments for R CMD check
            build_args: Extra arguments for R CMD build
            check_dir: Directory where <pkg>.Rcheck is written (default: temp dir)
        """
        try:
            path = await package_for(ctx, package)
            report = await manager.check(
                path,
                options=CheckOptions(
                    cran=cran,
                    check_version=check_version,
                    force_suggests=force_suggests,
                    run_dont_test=run_dont_test,
                    extra_args=args or [],
                    check_dir=check_dir,
                ),
                build_options=BuildOptions(extra_args=build_args or []),
                document=document,
            )
            await notify_state_changed(ctx)
            return {
                "success": True,
                "data": {**report.to_dict(), "summary": report.to_summary()},
            }
        except Exception as e:
            await notify_state_changed(ctx)
            return _error(e)

    @mcp.tool()
    async def check_built_package(
        path: str,
        cran: bool = True,
        check_version: bool = False,
        force_suggests: bool = False,
        run_dont_test: bool = False,
        args: list[str] | None = None,
        check_dir: str | None = None,
    ) -> dict:
        """Run R CMD check on an already built package file (.tar.gz).

        Args:
            path: Path to the built package
            cran: Check with --as-cran
            check_version: Run incoming-CRAN version checks
            force_suggests: Fail if suggested packages are not installed
            run_dont_test: Also run examples wrapped in \\donttest{}
            args: Extra arguments for R CMD check
            check_dir: Directory where <pkg>.Rcheck is written (default: temp dir)
        """
        try:
            report = await manager.check_built(
                path,
                CheckOptions(
                    cran=cran,
                    check_version=check_version,
                    force_suggests=force_suggests,
                    run_dont_test=run_dont_test,
                    extra_args=args or [],
                    check_dir=check_dir,
                ),
            )
            return {
                "success": True,
                "data": {**report.to_dict(), "summary": report.to_summary()},
            }
        except Exception as e:
            return _error(e)

    @mcp.tool()
    async def build_package(
        ctx: Context,
        package: str | None = None,
        dest_dir: str | None = None,
        binary: bool = False,
        vignettes: bool = True,
        manual: bool = False,
        args: list[str] | None = None,
    ) -> dict:
        """Build an R package into a source tarball or a binary package.

        Source builds use R CMD build (--no-resave-data, and --no-manual unless
        manual=True and pdflatex is installed). Binary builds use
        R CMD INSTALL --build and produce .zip on Windows, .tgz on macOS.

        Args:
            package: Package directory (defaults to the detected package root)
            dest_dir: Output directory (default: parent of the package directory)
            binary: Build a platform-specific binary package
            vignettes: Build vignettes (source builds only)
            manual: Build the PDF manual (source builds only)
            args: Extra arguments for R CMD build / R CMD INSTALL
        """
        try:
            path = await package_for(ctx, package)
            artifact = await manager.build(
                path,
                dest_dir=dest_dir,
                options=BuildOptions(
                    binary=binary,
                    vignettes=vignettes,
                    manual=manual,
                    extra_args=args or [],
                ),
            )
            await notify_state_changed(ctx)
            return {"success": True, "data": {"path": artifact}}
        except Exception as e:
            await notify_state_changed(ctx)
            return _error(e)

    @mcp.tool()
    async def build_win(
        ctx: Context,
        package: str | None = None,
        versions: list[str] | None = None,
        args: list[str] | None = None,
    ) -> dict:
        """Submit the package to win-builder for a Windows build and check.

        Builds a source tarball and uploads it over FTP. Results are NOT
        returned here: win-builder emails a link to the package maintainer,
        usually within 30-60 minutes. Tell the user to watch that inbox.

        Args:
            package: Package directory (defaults to the detected package root)
            versions: Any of "R-release", "R-devel", "R-oldrelease" (default R-devel)
            args: Extra arguments for R CMD build
        """
        try:
            path = await package_for(ctx, package)
            uploaded = await manager.build_remote(
                path,
                versions=versions,
                options=BuildOptions(extra_args=args or []),
            )
            session = manager.get_session(path)
            await notify_state_changed(ctx)
            return {
                "success": True,
                "data": {
                    "uploaded": uploaded,
                    "maintainer": session.package.maintainer,
                    "message": (
                        f"Check {session.package.maintainer or 'the maintainer inbox'} "
                        "for a link to the built package in 30-60 mins."
                    ),
                },
            }
        except Exception as e:
            await notify_state_changed(ctx)
            return _error(e)

    @mcp.tool()
    async def parse_check_log(path: str | None = None, text: str | None = None) -> dict:
        """Classify an existing R CMD check log into errors, warnings and notes.

        Args:
            path: Path to a 00check.log file
            text: Raw log text (used when path is not given)
        """
        try:
            if path:
                report = read_check_log(path)
            elif text is not None:
                report = parse_log_text(text)
            else:
                return {"success": False, "error": "Provide path or text"}
            return {"success": True, "data": report.to_dict()}
        except Exception as e:
            return _error(e)

    @mcp.tool()
    async def get_check_state(ctx: Context, package: str | None = None) -> dict:
        """Get pipeline state and the last check report for a package."""
        try:
            path = await package_for(ctx, package)
            state = manager.get_state(path)
            report = manager.get_last_report(path)
            return {
                "success": True,
                "data": {
                    "package": path,
                    "state": state.value if state else "idle",
                    "lastReport": report.to_dict() if report else None,
                },
            }
        except Exception as e:
            return _error(e)

    # ============== Prompts (slash commands) ==============

    @mcp.prompt(
        name="check",
        description="R package check workflow guide",
    )
    def check_prompt() -> list[dict]:
        """Start here when preparing an R package for release."""
        return [
            {
                "role": "user",
                "content": """# R Package Check Guide

## Workflow

1. `check_package()` - document, build and run R CMD check --as-cran
2. Read `data.errors`, `data.warnings`, `data.notes`
3. Fix every ERROR and WARNING; keep NOTEs to a minimum
4. Re-run `check_package()` until the report is clean
5. `build_win()` - confirm the package also checks on Windows

## Reading results

- ERRORs and WARNINGs block a CRAN submission
- NOTEs must be explained in cran-comments.md if they remain
- A failed build (success=false) means R CMD build itself broke:
  fix that before looking at check output
""",
            },
        ]

    # ============== Resources ==============

    @mcp.resource("rcheck://state", mime_type="application/json")
    async def check_state_resource() -> str:
        """Build and check state for all packages (JSON).

        Contains: per-package state and last check report.
        Updates when: a build, check or submission starts or finishes.
        """
        return json.dumps(manager.to_dict(), indent=2)

    logger.info("rcheck MCP Server initialized")
    return mcp
