"""Utility modules for rcheck-mcp."""

from .host import ProbeResult, has_latex, probe_latex, probe_spellchecker
from .package import PackageRef, as_package, parse_description
from .project import (
    PackageRootConfig,
    configure_package_root,
    find_package_root,
    get_package_root,
    parse_file_uri,
)
from .upload import upload_ftp, win_builder_url

__all__ = [
    "PackageRef",
    "as_package",
    "parse_description",
    "ProbeResult",
    "probe_spellchecker",
    "probe_latex",
    "has_latex",
    "PackageRootConfig",
    "configure_package_root",
    "find_package_root",
    "get_package_root",
    "parse_file_uri",
    "upload_ftp",
    "win_builder_url",
]
