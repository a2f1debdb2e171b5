import subprocess
from importlib.metadata import PackageNotFoundError
from unittest.mock import patch

from sarifconsolidator.version import get_version_string
from sarifconsolidator.version import installed_version
from sarifconsolidator.version import source_revision


class TestInstalledVersion:
    def test_installed_distribution(self):
        with patch("sarifconsolidator.version.metadata.version", return_value="1.2.3"):
            assert installed_version() == "1.2.3"

    def test_uninstalled_checkout(self):
        with patch(
            "sarifconsolidator.version.metadata.version",
            side_effect=PackageNotFoundError,
        ):
            assert installed_version() == "dev"


class TestSourceRevision:
    def test_describes_work_tree(self, tmp_path):
        with patch("sarifconsolidator.version.subprocess.run") as mock_run:
            mock_run.return_value.returncode = 0
            mock_run.return_value.stdout = "v0.1.0-3-gabc1234-dirty\n"

            assert source_revision(str(tmp_path)) == "v0.1.0-3-gabc1234-dirty"

        assert mock_run.call_args.kwargs["cwd"] == str(tmp_path)

    def test_git_missing(self):
        with patch(
            "sarifconsolidator.version.subprocess.run", side_effect=FileNotFoundError
        ):
            assert source_revision() is None

    def test_git_hangs(self):
        with patch(
            "sarifconsolidator.version.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="git", timeout=5),
        ):
            assert source_revision() is None

    def test_not_a_work_tree(self):
        with patch("sarifconsolidator.version.subprocess.run") as mock_run:
            mock_run.return_value.returncode = 128
            mock_run.return_value.stdout = ""

            assert source_revision() is None


class TestGetVersionString:
    def test_with_revision(self):
        with (
            patch("sarifconsolidator.version.installed_version", return_value="1.2.3"),
            patch("sarifconsolidator.version.source_revision", return_value="v1-gabc"),
        ):
            assert get_version_string() == (
                "sarif-consolidator 1.2.3 (SARIF 2.1.0, git v1-gabc)"
            )

    def test_without_revision(self):
        with (
            patch("sarifconsolidator.version.installed_version", return_value="1.2.3"),
            patch("sarifconsolidator.version.source_revision", return_value=None),
        ):
            assert get_version_string() == "sarif-consolidator 1.2.3 (SARIF 2.1.0)"
