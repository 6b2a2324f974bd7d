"""Pytest fixtures for rcheck-mcp tests."""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


SAMPLE_DESCRIPTION = """\
Package: foo
Type: Package
Title: Does Foo Things
Version: 1.2.3
Authors@R: c(
    person("Ada", "Lovelace", email = "ada@example.org", role = c("aut", "cre")),
    person("Charles", "Babbage", role = "ctb"))
Description: Does foo things
    across several lines.
License: MIT + file LICENSE
Encoding: UTF-8
"""

SAMPLE_CHECK_LOG = """\
* using log directory 'x'
* ERROR
Required field missing.
* WARNING
Undocumented argument.
"""

REAL_CHECK_LOG = """\
* using log directory '/tmp/foo.Rcheck'
* using R version 4.3.2 (2023-10-31)
* checking for file 'foo/DESCRIPTION' ... OK
* checking Rd files ... NOTE
checkRd: (-1) foo.Rd:12: Lost braces
* checking Rd \\usage sections ... WARNING
Undocumented arguments in documentation object 'foo'
  'x'

* checking examples ... ERROR
Running examples in 'foo-Ex.R' failed
Error in foo(1) : boom
* checking PDF version of manual ... OK
* DONE

Status: 1 ERROR, 1 WARNING, 1 NOTE
"""


def fake_process(returncode: int = 0) -> AsyncMock:
    """Fake asyncio subprocess that exits with ``returncode``."""
    process = AsyncMock()
    process.pid = None
    process.returncode = returncode
    process.stdout = AsyncMock()
    process.stdout.readline = AsyncMock(return_value=b"")
    process.stderr = AsyncMock()
    process.stderr.readline = AsyncMock(return_value=b"")
    process.wait = AsyncMock(return_value=returncode)
    process.kill = MagicMock()
    return process


@pytest.fixture
def make_process():
    """Factory for fake subprocesses."""
    return fake_process


@pytest.fixture
def r_package(tmp_path):
    """Minimal R package source tree."""
    pkg = tmp_path / "foo"
    pkg.mkdir()
    (pkg / "DESCRIPTION").write_text(SAMPLE_DESCRIPTION, encoding="utf-8")
    (pkg / "R").mkdir()
    (pkg / "R" / "foo.R").write_text("foo <- function(x) x\n", encoding="utf-8")
    return pkg


@pytest.fixture
def sample_check_log():
    """Check log with one ERROR and one WARNING block."""
    return SAMPLE_CHECK_LOG


@pytest.fixture
def real_check_log():
    """Check log in the format R CMD check writes."""
    return REAL_CHECK_LOG
