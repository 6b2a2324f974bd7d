"""Entry point for rcheck-mcp server."""

import argparse
import asyncio
import logging
import os
import sys

from .server import create_server
from .utils.project import configure_package_root, find_package_root


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="rcheck MCP Server - Build and check R packages via MCP"
    )
    parser.add_argument(
        "--package",
        type=str,
        default=None,
        help="R package directory used when a tool call does not name one.",
    )
    parser.add_argument(
        "--package-from-cwd",
        action="store_true",
        default=False,
        help="Auto-detect the package from the current working directory. "
        "Searches upward for a DESCRIPTION file, then a .git marker. "
        "Cannot be used with --package.",
    )
    return parser.parse_args(argv)


async def main() -> None:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args()

    if args.package_from_cwd:
        if args.package is not None:
            logger.error("--package-from-cwd cannot be used with --package")
            sys.exit(1)
        package_path = str(find_package_root())
        logger.info(f"Auto-detected package root: {package_path}")
    else:
        package_path = args.package

    configure_package_root(
        use_package_from_cwd=args.package_from_cwd,
        explicit_package_path=package_path,
        startup_cwd=os.getcwd(),
    )

    logger.info(f"Starting rcheck MCP Server (package: {package_path or 'auto'})...")

    mcp = create_server(package_path)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        logger.info("Server stopped")


def run() -> None:
    """Run the server."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
