"""R package metadata from DESCRIPTION files."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from ..errors import PackageNotFoundError

logger = logging.getLogger(__name__)

DESCRIPTION_FILE = "DESCRIPTION"

# Field names start at column 0; Authors@R keeps its @
FIELD_PATTERN = re.compile(r"^([A-Za-z][A-Za-z0-9_.@]+)\s*:")
EMAIL_PATTERN = re.compile(r"<([^<>\s]+@[^<>\s]+)>")
PERSON_PATTERN = re.compile(
    r"person\s*\((?:[^()]*|\((?:[^()]*|\([^()]*\))*\))*\)", re.DOTALL
)


@dataclass(frozen=True)
class PackageRef:
    """Identity of one R package source tree."""

    name: str
    version: str
    path: str
    maintainer: str | None = None

    @property
    def label(self) -> str:
        """``name_version`` as used in artifact file names."""
        return f"{self.name}_{self.version}"


def parse_description(path: Path) -> dict[str, str]:
    """Parse a DESCRIPTION file into a dict of fields.

    Continuation lines (leading whitespace) are joined with single spaces.
    Returns an empty dict when the file does not exist.
    """
    desc_file = path / DESCRIPTION_FILE
    if not desc_file.exists():
        return {}

    fields: dict[str, str] = {}
    current_key: str | None = None
    current_value: list[str] = []
    for line in desc_file.read_text(encoding="utf-8", errors="replace").splitlines():
        match = FIELD_PATTERN.match(line)
        if match and not line.startswith((" ", "\t")):
            if current_key:
                fields[current_key] = " ".join(current_value).strip()
            current_key = match.group(1)
            current_value = [line[match.end():].strip()]
        elif current_key and line.startswith((" ", "\t")):
            current_value.append(line.strip())
        elif not line.strip() and current_key:
            fields[current_key] = " ".join(current_value).strip()
            current_key = None
            current_value = []
    if current_key:
        fields[current_key] = " ".join(current_value).strip()
    return fields


def _email_from_person(block: str) -> str | None:
    named = re.search(r'email\s*=\s*["\']([^"\']+)["\']', block)
    if named:
        return named.group(1).strip()
    for match in re.finditer(r'["\']([^"\']+@[^"\']+)["\']', block):
        candidate = match.group(1)
        if "/" not in candidate and " " not in candidate:
            return candidate.strip()
    return None


def maintainer_email(fields: dict[str, str]) -> str | None:
    """Maintainer email from ``Maintainer`` or the ``cre`` person in Authors@R."""
    maintainer = fields.get("Maintainer")
    if maintainer:
        match = EMAIL_PATTERN.search(maintainer)
        if match:
            return match.group(1)

    authors = fields.get("Authors@R")
    if authors:
        for block in PERSON_PATTERN.findall(authors):
            if '"cre"' in block or "'cre'" in block:
                email = _email_from_person(block)
                if email:
                    return email
    return None


def as_package(path: str | Path) -> PackageRef:
    """Resolve package metadata from a source directory.

    Args:
        path: Package source directory

    Returns:
        Resolved package reference

    Raises:
        PackageNotFoundError: If the directory or its DESCRIPTION is missing
            or lacks Package/Version fields
    """
    pkg_path = Path(path).expanduser().resolve()
    if not pkg_path.is_dir():
        raise PackageNotFoundError(f"Package directory not found: {path}")

    fields = parse_description(pkg_path)
    if not fields:
        raise PackageNotFoundError(f"No {DESCRIPTION_FILE} file in {pkg_path}")

    name = fields.get("Package")
    version = fields.get("Version")
    if not name or not version:
        raise PackageNotFoundError(
            f"{DESCRIPTION_FILE} in {pkg_path} lacks Package or Version field"
        )

    pkg = PackageRef(
        name=name,
        version=version,
        path=str(pkg_path),
        maintainer=maintainer_email(fields),
    )
    logger.debug(f"Resolved package {pkg.label} at {pkg.path}")
    return pkg
