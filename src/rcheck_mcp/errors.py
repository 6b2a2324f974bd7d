"""Error taxonomy for the build and check pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Any


class RCheckError(Exception):
    """Base error for the build and check pipeline."""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"error": str(self), "type": type(self).__name__}


class PackageNotFoundError(RCheckError):
    """Package metadata could not be resolved."""


class ExternalToolError(RCheckError):
    """An external tool run under the fatal policy exited non-zero."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.command = command or []
        self.exit_code = exit_code

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = super().to_dict()
        if self.command:
            result["command"] = " ".join(self.command)
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        return result


class UploadError(ExternalToolError):
    """Transfer of a built package to a remote service failed."""


class MissingReportError(RCheckError):
    """R CMD check finished without writing its log."""

    def __init__(self, log_path: str | Path):
        super().__init__(f"Check log not found: {log_path}")
        self.log_path = str(log_path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = super().to_dict()
        result["logPath"] = self.log_path
        return result


