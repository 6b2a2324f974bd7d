"""Anonymous FTP upload for remote build services."""

from __future__ import annotations

import ftplib
import logging
import os
import posixpath
from urllib.parse import unquote, urlparse

from ..errors import UploadError

logger = logging.getLogger(__name__)

WIN_BUILDER_HOST = "win-builder.r-project.org"


def win_builder_url(version: str, file_name: str) -> str:
    """Upload location for one R version on win-builder."""
    return f"ftp://{WIN_BUILDER_HOST}/{version}/{file_name}"


def upload_ftp(url: str, file_path: str, timeout: float = 60.0) -> None:
    """Upload a local file to an ``ftp://host/dir/name`` URL.

    Blocking; run it in a worker thread from async code.

    Args:
        url: Target URL including the remote file name
        file_path: Local file to send
        timeout: Socket timeout in seconds

    Raises:
        UploadError: If the URL is not ftp:// or the transfer fails
    """
    parsed = urlparse(url)
    if parsed.scheme != "ftp" or not parsed.hostname:
        raise UploadError(f"Not an FTP URL: {url}")

    remote_path = unquote(parsed.path)
    remote_dir, remote_name = posixpath.split(remote_path)
    if not remote_name:
        remote_name = os.path.basename(file_path)

    logger.info(f"Uploading {file_path} to {url}")
    try:
        with ftplib.FTP(timeout=timeout) as ftp:
            ftp.connect(parsed.hostname, parsed.port or 21)
            ftp.login(parsed.username or "anonymous", parsed.password or "")
            if remote_dir and remote_dir != "/":
                ftp.cwd(remote_dir)
            with open(file_path, "rb") as f:
                ftp.storbinary(f"STOR {remote_name}", f)
    except ftplib.all_errors as e:
        raise UploadError(f"Upload to {url} failed: {e}") from e
