"""Build policy - options, argument validation and command composition.

Every external invocation is composed here as an argv list:
- R CMD build / R CMD INSTALL --build for artifacts
- R CMD check for validation
- Rscript roxygen2 call for documentation
"""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Final

from ..utils.package import PackageRef


class RCommand(str, Enum):
    """Supported R CMD subcommands."""

    BUILD = "build"
    INSTALL = "INSTALL"
    CHECK = "check"


# win-builder upload directories
REMOTE_VERSIONS: Final[frozenset[str]] = frozenset(
    {"R-release", "R-devel", "R-oldrelease"}
)
DEFAULT_REMOTE_VERSIONS: Final[tuple[str, ...]] = ("R-devel",)

SOURCE_EXTENSION: Final[str] = ".tar.gz"
CHECK_DIR_SUFFIX: Final[str] = ".Rcheck"
CHECK_LOG_NAME: Final[str] = "00check.log"

# R CMD flags are --name or --name=value
ARGUMENT_PATTERN: Final[re.Pattern[str]] = re.compile(r"^--?[A-Za-z][\w.-]*(?:=.*)?$")


@dataclass
class BuildOptions:
    """Options for producing a package artifact."""

    binary: bool = False
    vignettes: bool = True
    manual: bool = False
    extra_args: list[str] = field(default_factory=list)


@dataclass
class CheckOptions:
    """Options for R CMD check."""

    cran: bool = True
    check_version: bool = False
    force_suggests: bool = False
    run_dont_test: bool = False
    extra_args: list[str] = field(default_factory=list)
    check_dir: str | None = None


def validate_arguments(args: list[str]) -> list[str]:
    """Validate user-supplied R CMD arguments.

    Args:
        args: List of command-line arguments

    Returns:
        Validated argument list

    Raises:
        ValueError: If any argument is not a well-formed flag
    """
    validated: list[str] = []
    for arg in args:
        if "\x00" in arg or "\n" in arg:
            raise ValueError(f"Argument contains control characters: {arg!r}")
        if not ARGUMENT_PATTERN.match(arg):
            raise ValueError(f"Argument not allowed: {arg}")
        validated.append(arg)
    return validated


def validate_versions(versions: list[str] | tuple[str, ...] | None) -> list[str]:
    """Validate remote build versions, defaulting to R-devel."""
    if not versions:
        return list(DEFAULT_REMOTE_VERSIONS)
    unknown = [v for v in versions if v not in REMOTE_VERSIONS]
    if unknown:
        raise ValueError(
            f"Unknown remote version(s): {', '.join(unknown)}. "
            f"Expected one of: {', '.join(sorted(REMOTE_VERSIONS))}"
        )
    # Keep order, drop duplicates
    return list(dict.fromkeys(versions))


def artifact_extension(
    binary: bool,
    platform: str | None = None,
    r_platform: str | None = None,
) -> str:
    """File extension R uses for a built package.

    Args:
        binary: Binary (INSTALL --build) rather than source build
        platform: ``sys.platform`` value; defaults to the current host
        r_platform: R's platform triplet for Unix binaries; defaults to
            R_PLATFORM from the environment
    """
    if not binary:
        return SOURCE_EXTENSION

    platform = platform or sys.platform
    if platform == "win32":
        return ".zip"
    if platform == "darwin":
        return ".tgz"
    if r_platform is None:
        r_platform = os.environ.get("R_PLATFORM", "")
    return f"_R_{r_platform}{SOURCE_EXTENSION}"


def needs_r_platform(binary: bool, platform: str | None = None) -> bool:
    """Whether the artifact name embeds R's platform triplet."""
    return binary and (platform or sys.platform) not in ("win32", "darwin")


ArtifactNamer = Callable[[PackageRef, bool, str | None], str]


def conventional_artifact_name(
    pkg: PackageRef, binary: bool, r_platform: str | None = None
) -> str:
    """Artifact file name following R's ``name_version.ext`` convention.

    The name is computed, not read back from the tool. Swap in a different
    ArtifactNamer where that convention does not hold.
    """
    return f"{pkg.label}{artifact_extension(binary, r_platform=r_platform)}"


def package_name_from_artifact(artifact_path: str | Path) -> str:
    """Strip the ``_version...`` suffix from an artifact file name."""
    return re.sub(r"_.*$", "", Path(artifact_path).name)


def check_log_path(check_dir: str | Path, package_name: str) -> Path:
    """Location of the log R CMD check writes for a package."""
    return Path(check_dir).resolve() / f"{package_name}{CHECK_DIR_SUFFIX}" / CHECK_LOG_NAME


def build_args(options: BuildOptions, latex_available: bool) -> list[str]:
    """Arguments for a build, excluding the command and package path.

    Args:
        options: Build options
        latex_available: Whether a PDF manual can be typeset

    Returns:
        Ordered argument list
    """
    extra = validate_arguments(options.extra_args)
    if options.binary:
        return ["--build", *extra]

    args = [*extra, "--no-resave-data"]
    if not (options.manual and latex_available):
        args.append("--no-manual")
    if not options.vignettes:
        args.append("--no-build-vignettes")
    return args


def build_command(
    r_binary: str,
    pkg: PackageRef,
    options: BuildOptions,
    latex_available: bool,
) -> list[str]:
    """Build validated R CMD build / INSTALL command line."""
    subcommand = RCommand.INSTALL if options.binary else RCommand.BUILD
    return [
        r_binary,
        "CMD",
        subcommand.value,
        pkg.path,
        *build_args(options, latex_available),
    ]


def check_args(options: CheckOptions) -> list[str]:
    """Arguments for R CMD check, in the order R documents them."""
    args = ["--timings", *validate_arguments(options.extra_args)]
    if options.cran:
        args = ["--as-cran", *args]
    if options.run_dont_test:
        args = ["--run-donttest", *args]
    return args


def check_command(
    r_binary: str,
    artifact_path: str,
    options: CheckOptions,
) -> list[str]:
    """Build validated R CMD check command line."""
    return [r_binary, "CMD", RCommand.CHECK.value, artifact_path, *check_args(options)]


def document_command(rscript_binary: str, pkg: PackageRef) -> list[str]:
    """Command regenerating Rd files and NAMESPACE with roxygen2."""
    # repr() quoting is valid R string syntax for plain paths
    return [rscript_binary, "-e", f"roxygen2::roxygenise({pkg.path!r})"]
