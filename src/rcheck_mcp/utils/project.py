"""Package root detection utilities.

Provides utilities for determining the R package root from multiple sources:
1. MCP Roots from client (via Context.list_roots())
2. Environment variables (RCHECK_PACKAGE_ROOT, MCP_PROJECT_ROOT)
3. Explicit --package path
4. Startup CWD (when --package-from-cwd is used)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

from .package import DESCRIPTION_FILE

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)


@dataclass
class PackageRootConfig:
    """Configuration for package root detection."""

    startup_cwd: Path | None = None
    """CWD captured at server startup."""

    use_package_from_cwd: bool = False
    """Whether --package-from-cwd flag was provided."""

    explicit_package_path: Path | None = None
    """Explicit package path from --package flag."""

    env_var_names: tuple[str, ...] = field(
        default_factory=lambda: ("RCHECK_PACKAGE_ROOT", "MCP_PROJECT_ROOT")
    )
    """Environment variable names to check for package root."""


# Global configuration (set at startup)
_config: PackageRootConfig = PackageRootConfig()


def configure_package_root(
    *,
    use_package_from_cwd: bool = False,
    explicit_package_path: str | Path | None = None,
    startup_cwd: str | Path | None = None,
) -> None:
    """Configure package root detection.

    Should be called once at server startup.
    """
    global _config
    _config = PackageRootConfig(
        use_package_from_cwd=use_package_from_cwd,
        explicit_package_path=Path(explicit_package_path) if explicit_package_path else None,
        startup_cwd=Path(startup_cwd) if startup_cwd else None,
    )
    logger.debug(
        f"Package root configured: use_cwd={use_package_from_cwd}, "
        f"explicit={explicit_package_path}, startup_cwd={startup_cwd}"
    )


def get_config() -> PackageRootConfig:
    """Get current package root configuration."""
    return _config


def parse_file_uri(uri: str) -> Path | None:
    """Parse a file:// URI to a Path.

    Handles platform-specific path formats:
    - Unix: file:///home/user/pkg → /home/user/pkg
    - Windows: file:///C:/Users/pkg → C:\\Users\\pkg
    - Windows UNC: file://server/share → \\\\server\\share

    Returns:
        Path object if parsing succeeds, None otherwise
    """
    try:
        parsed = urlparse(str(uri))

        if parsed.scheme != "file":
            logger.warning(f"Not a file URI: {uri}")
            return None

        path_str = unquote(parsed.path)

        if sys.platform == "win32":
            # file:///C:/path → parsed.path = "/C:/path"
            if path_str.startswith("/") and len(path_str) > 2 and path_str[2] == ":":
                path_str = path_str[1:]
            if parsed.netloc:
                path_str = f"\\\\{parsed.netloc}{path_str}"

        path = Path(path_str)
        if not path.is_absolute():
            logger.warning(f"Parsed path is not absolute: {path}")
            return None

        return path

    except Exception as e:
        logger.warning(f"Failed to parse file URI '{uri}': {e}")
        return None


def find_package_root(start_dir: Path | None = None) -> Path:
    """Find R package root by walking up from a directory.

    Searches for a DESCRIPTION file first, then a .git marker.
    Falls back to start_dir if neither is found.
    """
    current = (start_dir or Path.cwd()).resolve()

    def ancestors() -> Iterator[Path]:
        """Yield current directory and ancestors."""
        yield current
        yield from current.parents

    for directory in ancestors():
        if (directory / DESCRIPTION_FILE).is_file():
            return directory

    for directory in ancestors():
        # .git can be file (worktree) or dir
        if (directory / ".git").exists():
            return directory

    return current


def get_package_root_sync() -> Path | None:
    """Determine the package root without MCP client roots.

    Priority: env vars, --package, CWD marker search, startup CWD.
    """
    config = get_config()

    for env_var in config.env_var_names:
        env_value = os.environ.get(env_var)
        if env_value:
            path = Path(env_value)
            if path.is_dir():
                logger.info(f"Using package root from {env_var}: {path}")
                return path
            logger.warning(f"{env_var}={env_value} - path does not exist or is not a directory")

    if config.explicit_package_path:
        if config.explicit_package_path.is_dir():
            return config.explicit_package_path
        logger.warning(f"Explicit package path not valid: {config.explicit_package_path}")

    if config.use_package_from_cwd and config.startup_cwd:
        return find_package_root(config.startup_cwd)

    if config.startup_cwd:
        return config.startup_cwd

    return None


async def get_package_root(ctx: Context | None = None) -> Path | None:
    """Determine the package root directory from available sources.

    MCP client roots win over every configured source.

    Args:
        ctx: MCP Context for accessing client-provided roots.
             Can be None if called outside of tool context.

    Returns:
        Path to package root, or None if not determinable
    """
    if ctx is not None:
        try:
            roots = await ctx.list_roots()
            if roots:
                uri = str(roots[0].uri)
                path = parse_file_uri(uri)
                if path and path.is_dir():
                    logger.info(f"Using package root from MCP client: {path}")
                    return path
                logger.warning(f"MCP root path invalid or not accessible: {path}")
        except Exception as e:
            # Client may not support roots
            logger.info(f"Could not get roots from client: {e}")

    root = get_package_root_sync()
    if root is None:
        logger.warning("Could not determine package root from any source")
    return root
