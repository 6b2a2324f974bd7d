"""Tests for build and check environment composition."""

import os

from rcheck_mcp.build.env import (
    FORCE_SUGGESTS_VAR,
    INCOMING_CHECK_VAR,
    USE_ASPELL_VAR,
    compiler_flags,
    compose_build_env,
    compose_check_env,
    format_env_vars,
    r_env_vars,
)
from rcheck_mcp.utils.host import ProbeResult


def spell_available():
    return ProbeResult(True)


def spell_missing():
    return ProbeResult(False, "aspell not found on PATH")


def spell_broken():
    raise RuntimeError("probe exploded")


class TestCompilerFlags:
    """Tests for compiler_flags."""

    def test_default_flags(self):
        """Test baseline debugging flags."""
        flags = compiler_flags()

        assert flags["CFLAGS"] == "-UNDEBUG -Wall -pedantic -g -O0"
        assert flags["CXXFLAGS"] == flags["CFLAGS"]
        assert flags["FFLAGS"] == "-g -O0"
        assert "-fdiagnostics-color" not in flags["CFLAGS"]

    def test_debug_adds_color(self):
        """Test debug mode forces coloured diagnostics."""
        flags = compiler_flags(debug=True)
        assert flags["CFLAGS"].endswith("-fdiagnostics-color=always")


class TestComposeCheckEnv:
    """Tests for compose_check_env."""

    def test_flags_regardless_of_spellchecker(self):
        """Test incoming and suggests flags with and without aspell."""
        for probe in (spell_available, spell_missing, spell_broken):
            env = compose_check_env(
                cran=True, check_version=True, force_suggests=False, spell_probe=probe
            )
            assert env[INCOMING_CHECK_VAR] == "true"
            assert env[FORCE_SUGGESTS_VAR] == "false"

    def test_aspell_set_when_available(self):
        """Test aspell variable when the probe succeeds."""
        env = compose_check_env(spell_probe=spell_available)
        assert env[USE_ASPELL_VAR] == "true"

    def test_aspell_omitted_when_missing(self):
        """Test aspell variable is omitted, not set to false."""
        env = compose_check_env(spell_probe=spell_missing)
        assert USE_ASPELL_VAR not in env

    def test_probe_exception_swallowed(self):
        """Test a raising probe degrades to no aspell."""
        env = compose_check_env(spell_probe=spell_broken)
        assert USE_ASPELL_VAR not in env

    def test_includes_baseline(self):
        """Test baseline variables are present."""
        env = compose_check_env(spell_probe=spell_missing)

        for name, value in {**r_env_vars(), **compiler_flags()}.items():
            assert env[name] == value

    def test_does_not_touch_os_environ(self):
        """Test composition is pure with respect to os.environ."""
        before = dict(os.environ)
        compose_check_env(check_version=True, spell_probe=spell_available)
        assert dict(os.environ) == before

    def test_returns_fresh_mapping(self):
        """Test callers cannot mutate shared state."""
        env1 = compose_check_env(spell_probe=spell_missing)
        env1["EXTRA"] = "1"
        env2 = compose_check_env(spell_probe=spell_missing)
        assert "EXTRA" not in env2


class TestComposeBuildEnv:
    """Tests for compose_build_env."""

    def test_build_env_has_no_check_vars(self):
        """Test build env carries only the baseline."""
        env = compose_build_env()

        assert env["NOT_CRAN"] == "true"
        assert env["CFLAGS"] == compiler_flags()["CFLAGS"]
        assert INCOMING_CHECK_VAR not in env
        assert FORCE_SUGGESTS_VAR not in env


class TestFormatEnvVars:
    """Tests for format_env_vars."""

    def test_aligned(self):
        """Test names are padded to a common width."""
        text = format_env_vars({"A": "1", "LONGER": "2"})
        assert text.splitlines() == ["A     : 1", "LONGER: 2"]

    def test_empty(self):
        """Test empty overlay renders as empty string."""
        assert format_env_vars({}) == ""
