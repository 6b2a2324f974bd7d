"""Tests for build policy - argument validation and command composition."""

import pytest

from rcheck_mcp.build.policy import (
    ARGUMENT_PATTERN,
    BuildOptions,
    CheckOptions,
    RCommand,
    artifact_extension,
    build_args,
    build_command,
    check_args,
    check_command,
    check_log_path,
    conventional_artifact_name,
    document_command,
    needs_r_platform,
    package_name_from_artifact,
    validate_arguments,
    validate_versions,
)
from rcheck_mcp.utils.package import PackageRef


@pytest.fixture
def pkg(tmp_path):
    return PackageRef(name="foo", version="1.2.3", path=str(tmp_path / "foo"))


class TestRCommand:
    """Tests for RCommand enum."""

    def test_command_values(self):
        """Test command enum values."""
        assert RCommand.BUILD.value == "build"
        assert RCommand.INSTALL.value == "INSTALL"
        assert RCommand.CHECK.value == "check"

    def test_command_is_string(self):
        """Test command is string enum."""
        assert isinstance(RCommand.CHECK, str)
        assert RCommand.CHECK == "check"


class TestValidateArguments:
    """Tests for validate_arguments."""

    def test_valid_flags(self):
        """Test well-formed flags pass through unchanged."""
        args = ["--no-tests", "--output=/tmp/out", "--install-args=--no-test-load", "-o"]
        assert validate_arguments(args) == args

    def test_rejects_positional(self):
        """Test bare words are rejected."""
        with pytest.raises(ValueError, match="not allowed"):
            validate_arguments(["rm"])

    def test_rejects_control_characters(self):
        """Test NUL and newline are rejected."""
        for arg in ["--a\x00b", "--a\nb"]:
            with pytest.raises(ValueError, match="control characters"):
                validate_arguments([arg])

    def test_pattern_invalid(self):
        """Test shell fragments do not look like flags."""
        for arg in ["; rm -rf /", "$(whoami)", "--", "---x"]:
            assert not ARGUMENT_PATTERN.match(arg), f"Should not match: {arg}"


class TestValidateVersions:
    """Tests for validate_versions."""

    def test_default_is_devel(self):
        """Test empty selection defaults to R-devel."""
        assert validate_versions(None) == ["R-devel"]
        assert validate_versions([]) == ["R-devel"]

    def test_deduplicates_in_order(self):
        """Test duplicates dropped, order kept."""
        versions = ["R-release", "R-devel", "R-release"]
        assert validate_versions(versions) == ["R-release", "R-devel"]

    def test_unknown_version(self):
        """Test unknown versions raise ValueError."""
        with pytest.raises(ValueError, match="R-ancient"):
            validate_versions(["R-devel", "R-ancient"])


class TestArtifactNaming:
    """Tests for artifact file names."""

    def test_source_extension(self):
        """Test source builds are tarballs on every platform."""
        for platform in ("linux", "darwin", "win32"):
            assert artifact_extension(False, platform) == ".tar.gz"

    def test_binary_extension_windows(self):
        """Test Windows binaries are zip files."""
        assert artifact_extension(True, "win32") == ".zip"

    def test_binary_extension_macos(self):
        """Test macOS binaries are tgz files."""
        assert artifact_extension(True, "darwin") == ".tgz"

    def test_binary_extension_linux(self, monkeypatch):
        """Test Linux binaries carry the triplet R reported."""
        monkeypatch.delenv("R_PLATFORM", raising=False)
        extension = artifact_extension(True, "linux", r_platform="aarch64-unknown-linux-gnu")
        assert extension == "_R_aarch64-unknown-linux-gnu.tar.gz"

    def test_binary_extension_linux_env_fallback(self, monkeypatch):
        """Test R_PLATFORM from the environment when no triplet is given."""
        monkeypatch.setenv("R_PLATFORM", "x86_64-pc-linux-gnu")
        assert artifact_extension(True, "linux") == "_R_x86_64-pc-linux-gnu.tar.gz"

    def test_needs_r_platform(self):
        """Test only Unix binaries need R's platform triplet."""
        assert needs_r_platform(True, "linux")
        assert not needs_r_platform(True, "darwin")
        assert not needs_r_platform(True, "win32")
        assert not needs_r_platform(False, "linux")

    def test_conventional_linux_binary_name(self, pkg, monkeypatch):
        """Test binary artifact name on Linux."""
        monkeypatch.setattr("sys.platform", "linux")
        name = conventional_artifact_name(pkg, True, "x86_64-pc-linux-gnu")
        assert name == "foo_1.2.3_R_x86_64-pc-linux-gnu.tar.gz"

    def test_conventional_name(self, pkg):
        """Test source artifact name follows name_version."""
        assert conventional_artifact_name(pkg, False) == "foo_1.2.3.tar.gz"

    def test_conventional_binary_name(self, pkg, monkeypatch):
        """Test binary artifact name on macOS."""
        monkeypatch.setattr("sys.platform", "darwin")
        assert conventional_artifact_name(pkg, True) == "foo_1.2.3.tgz"

    def test_package_name_from_artifact(self):
        """Test package name is everything before the first underscore."""
        assert package_name_from_artifact("/tmp/x/foo_1.2.3.tar.gz") == "foo"
        assert package_name_from_artifact("foo.bar_0.1.tar.gz") == "foo.bar"

    def test_check_log_path(self, tmp_path):
        """Test log sits in <name>.Rcheck under the check directory."""
        path = check_log_path(tmp_path, "foo")
        assert path == tmp_path.resolve() / "foo.Rcheck" / "00check.log"


class TestBuildArgs:
    """Tests for build argument composition."""

    def test_source_defaults(self):
        """Test default source build skips manual and resaving data."""
        assert build_args(BuildOptions(), latex_available=True) == [
            "--no-resave-data",
            "--no-manual",
        ]

    def test_manual_with_latex(self):
        """Test manual is built only when LaTeX is present."""
        options = BuildOptions(manual=True)
        assert "--no-manual" not in build_args(options, latex_available=True)
        assert "--no-manual" in build_args(options, latex_available=False)

    def test_no_vignettes(self):
        """Test vignette building can be disabled."""
        args = build_args(BuildOptions(vignettes=False), latex_available=False)
        assert args[-1] == "--no-build-vignettes"

    def test_extra_args_first(self):
        """Test user arguments precede generated ones for source builds."""
        args = build_args(BuildOptions(extra_args=["--compact-vignettes=gs"]), False)
        assert args[0] == "--compact-vignettes=gs"

    def test_binary(self):
        """Test binary builds use INSTALL --build only."""
        options = BuildOptions(binary=True, vignettes=False, extra_args=["--no-test-load"])
        assert build_args(options, latex_available=False) == ["--build", "--no-test-load"]

    def test_invalid_extra_args(self):
        """Test malformed user arguments are rejected."""
        with pytest.raises(ValueError):
            build_args(BuildOptions(extra_args=["&&", "echo"]), False)

    def test_build_command(self, pkg):
        """Test full source build command line."""
        cmd = build_command("R", pkg, BuildOptions(), latex_available=False)
        assert cmd[:4] == ["R", "CMD", "build", pkg.path]

    def test_binary_build_command(self, pkg):
        """Test full binary build command line."""
        cmd = build_command("R", pkg, BuildOptions(binary=True), latex_available=False)
        assert cmd == ["R", "CMD", "INSTALL", pkg.path, "--build"]


class TestCheckArgs:
    """Tests for check argument composition."""

    def test_defaults(self):
        """Test CRAN mode is on by default."""
        assert check_args(CheckOptions()) == ["--as-cran", "--timings"]

    def test_not_cran(self):
        """Test --as-cran only when requested."""
        assert check_args(CheckOptions(cran=False)) == ["--timings"]

    def test_run_dont_test_first(self):
        """Test flag order with every switch enabled."""
        options = CheckOptions(run_dont_test=True, extra_args=["--no-vignettes"])
        assert check_args(options) == [
            "--run-donttest",
            "--as-cran",
            "--timings",
            "--no-vignettes",
        ]

    def test_check_command(self):
        """Test full check command line."""
        cmd = check_command("R", "/tmp/foo_1.2.3.tar.gz", CheckOptions(cran=False))
        assert cmd == ["R", "CMD", "check", "/tmp/foo_1.2.3.tar.gz", "--timings"]


class TestDocumentCommand:
    """Tests for document_command."""

    def test_roxygenise_call(self, pkg):
        """Test roxygen2 is invoked on the package path."""
        cmd = document_command("Rscript", pkg)

        assert cmd[:2] == ["Rscript", "-e"]
        assert cmd[2] == f"roxygen2::roxygenise('{pkg.path}')"
