"""Check manager - singleton orchestrating all package sessions.

Provides:
- Per-package session management
- Global state listeners
- Status snapshot for MCP resources
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import Any

from ..utils.package import as_package
from .policy import BuildOptions, CheckOptions
from .session import PackageSession, check_built
from .state import BuildState, CheckReport

logger = logging.getLogger(__name__)


class CheckManager:
    """Singleton manager for package sessions.

    Usage:
        manager = CheckManager()
        report = await manager.check("/path/to/pkg")
    """

    _instance: CheckManager | None = None

    def __new__(cls) -> CheckManager:
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        """Initialize manager (only once)."""
        if self._initialized:
            return
        self._sessions: dict[str, PackageSession] = {}
        self._global_listeners: list[Callable[[str, BuildState], None]] = []
        self._initialized = True

    def _normalize_path(self, path: str) -> str:
        """Normalize path for consistent key lookup."""
        return os.path.normcase(os.path.normpath(os.path.abspath(path)))

    def get_session(self, package_path: str) -> PackageSession:
        """Get or create session for a package directory.

        Package metadata is re-read whenever the session is created, so
        clear_session() picks up a bumped DESCRIPTION version.

        Raises:
            PackageNotFoundError: If the directory is not an R package
        """
        key = self._normalize_path(package_path)
        if key not in self._sessions:
            session = PackageSession(as_package(package_path))
            session.on_state_change(
                lambda state: self._notify_listeners(package_path, state)
            )
            self._sessions[key] = session
        return self._sessions[key]

    def _notify_listeners(self, package_path: str, state: BuildState) -> None:
        """Notify global state listeners."""
        for listener in self._global_listeners:
            try:
                listener(package_path, state)
            except Exception:
                logger.exception("Global state listener error")

    def on_state_change(self, listener: Callable[[str, BuildState], None]) -> None:
        """Register global state change listener.

        Listener receives (package_path, new_state).
        """
        self._global_listeners.append(listener)

    async def check(
        self,
        package_path: str,
        options: CheckOptions | None = None,
        build_options: BuildOptions | None = None,
        document: bool = True,
        quiet: bool = False,
    ) -> CheckReport:
        """Document, build and check a package."""
        # Metadata may have changed since the last run
        self.clear_session(package_path)
        session = self.get_session(package_path)
        return await session.check(
            options=options,
            build_options=build_options,
            document=document,
            quiet=quiet,
        )

    async def build(
        self,
        package_path: str,
        dest_dir: str | None = None,
        options: BuildOptions | None = None,
        quiet: bool = False,
    ) -> str:
        """Build a package and return the artifact path."""
        self.clear_session(package_path)
        session = self.get_session(package_path)
        return await session.build(dest_dir=dest_dir, options=options, quiet=quiet)

    async def build_remote(
        self,
        package_path: str,
        versions: list[str] | None = None,
        options: BuildOptions | None = None,
        quiet: bool = False,
    ) -> list[str]:
        """Submit a package to win-builder."""
        self.clear_session(package_path)
        session = self.get_session(package_path)
        return await session.build_remote(versions=versions, options=options, quiet=quiet)

    async def check_built(
        self,
        artifact_path: str,
        options: CheckOptions | None = None,
        quiet: bool = False,
    ) -> CheckReport:
        """Check an already built package (no session needed)."""
        return await check_built(artifact_path, options, quiet)

    def get_state(self, package_path: str) -> BuildState | None:
        """Get current state for a package, or None if no session exists."""
        key = self._normalize_path(package_path)
        if key in self._sessions:
            return self._sessions[key].state
        return None

    def get_last_report(self, package_path: str) -> CheckReport | None:
        """Get last check report for a package."""
        key = self._normalize_path(package_path)
        if key in self._sessions:
            return self._sessions[key].last_report
        return None

    def clear_session(self, package_path: str) -> bool:
        """Remove session for a package.

        Sessions with a running pipeline are kept.

        Returns:
            True if session was removed
        """
        key = self._normalize_path(package_path)
        session = self._sessions.get(key)
        if session is None or session.is_busy:
            return False
        del self._sessions[key]
        return True

    def to_dict(self) -> dict[str, Any]:
        """Get manager status as dictionary."""
        return {
            "sessions": {
                path: {
                    "package": session.package.name,
                    "version": session.package.version,
                    "state": session.state.value,
                    "lastReport": (
                        session.last_report.to_dict() if session.last_report else None
                    ),
                }
                for path, session in self._sessions.items()
            }
        }
