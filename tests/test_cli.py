"""
Tests for chocopack.cli module.

Tests the command handlers through main() with the pipeline replaced:
- package: tool precondition, results banner, exit codes
- search: result listing
- rollback: exit codes
- setup: folder creation and tool download
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from chocopack.cli import build_parser, main
from chocopack.exceptions import NetworkError
from chocopack.results import (
    Artifact,
    FailureReason,
    PipelineResult,
    PipelineState,
    RollbackResult,
)

# All tests in this file are unit tests (fast, mocked)
pytestmark = pytest.mark.unit


@pytest.fixture
def config_file(create_yaml_file, tmp_test_dir):
    """YAML configuration rooted in the temporary directory."""
    return create_yaml_file(
        "chocopack.yaml",
        {
            "paths": {"apps_root": "Apps", "logos_dir": "Logos"},
            "packaging": {"tool": "Tools/IntuneWinAppUtil.exe"},
        },
    )


@pytest.fixture
def tool(tmp_test_dir):
    path = tmp_test_dir / "Tools" / "IntuneWinAppUtil.exe"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"MZ")
    return path


def _run(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


def test_parser_requires_command():
    """Test that a command is required."""
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


class TestPackageCommand:
    """Tests for 'chocopack package'."""

    def test_missing_tool_processes_nothing(self, config_file, capsys):
        """Test that a missing IntuneWinAppUtil.exe stops before any package."""
        with patch("chocopack.cli.DeploymentOrchestrator") as mock_orchestrator:
            code = _run(["package", "7zip", "--config", str(config_file)])

        assert code == 1
        mock_orchestrator.assert_not_called()
        out = capsys.readouterr().out
        assert "No packages were processed." in out

    def test_all_succeed(self, config_file, tool, capsys):
        """Test exit code 0 and the results banner when every package succeeds."""
        done = PipelineResult(
            raw_name="7zip",
            state=PipelineState.DONE,
            artifact=Artifact(Path("Apps/7zip/Output/7zip.intunewin")),
        )
        with patch("chocopack.cli.DeploymentOrchestrator") as mock_orchestrator:
            mock_orchestrator.return_value.run.return_value = done
            code = _run(["package", "7zip", "--config", str(config_file)])

        assert code == 0
        out = capsys.readouterr().out
        assert "PACKAGE RESULTS" in out
        assert "[OK] 7zip" in out
        assert "[SUCCESS] 1 package(s)" in out

    def test_any_failure_exits_one(self, config_file, tool, capsys):
        """Test that one failed package makes the command fail."""
        done = PipelineResult(
            raw_name="7zip",
            state=PipelineState.DONE,
            artifact=Artifact(Path("Apps/7zip/Output/7zip.intunewin")),
        )
        failed = PipelineResult(
            raw_name="broken",
            state=PipelineState.FAILED,
            reason=FailureReason.INSTALLER_NOT_FOUND,
            error="No installer found",
        )
        with patch("chocopack.cli.DeploymentOrchestrator") as mock_orchestrator:
            mock_orchestrator.return_value.run.side_effect = [done, failed]
            code = _run(
                [
                    "package",
                    "7zip",
                    "broken",
                    "--app-version",
                    "1.0",
                    "--config",
                    str(config_file),
                ]
            )

        assert code == 1
        calls = mock_orchestrator.return_value.run.call_args_list
        assert [c.args[0] for c in calls] == ["7zip", "broken"]
        assert calls[0].kwargs["app_version"] == "1.0"
        out = capsys.readouterr().out
        assert "installer_not_found" in out
        assert "[FAILED] 1 of 2" in out

    def test_bad_config(self, tmp_test_dir, capsys):
        """Test that a missing configuration file is an error."""
        code = _run(["package", "7zip", "--config", str(tmp_test_dir / "nope.yaml")])

        assert code == 1
        assert "Error:" in capsys.readouterr().out


class TestSearchCommand:
    """Tests for 'chocopack search'."""

    def test_lists_results(self, config_file, capsys):
        """Test that results are numbered and limited."""
        with patch("chocopack.cli.ChocolateyClient") as mock_client:
            mock_client.return_value.search.return_value = ["7zip", "7zip.install"]
            code = _run(
                ["search", "7zip", "--limit", "1", "--config", str(config_file)]
            )

        assert code == 0
        out = capsys.readouterr().out
        assert "1. 7zip" in out
        assert "7zip.install" not in out

    def test_no_results(self, config_file, capsys):
        """Test the message for an empty search."""
        with patch("chocopack.cli.ChocolateyClient") as mock_client:
            mock_client.return_value.search.return_value = []
            code = _run(["search", "zzz", "--config", str(config_file)])

        assert code == 0
        assert "No packages found" in capsys.readouterr().out

    def test_search_error(self, config_file, capsys):
        """Test that a failed search exits with 1."""
        with patch("chocopack.cli.ChocolateyClient") as mock_client:
            mock_client.return_value.search.side_effect = NetworkError("offline")
            code = _run(["search", "7zip", "--config", str(config_file)])

        assert code == 1
        assert "offline" in capsys.readouterr().out


class TestRollbackCommand:
    """Tests for 'chocopack rollback'."""

    def test_success(self, config_file):
        """Test exit code 0 for a successful rollback."""
        result = RollbackResult(app_name="7zip", ok=True, script_path=Path("x"))
        with patch("chocopack.cli.DeploymentOrchestrator") as mock_orchestrator:
            mock_orchestrator.return_value.rollback.return_value = result
            code = _run(["rollback", "7zip", "--config", str(config_file)])

        assert code == 0

    def test_failure(self, config_file, capsys):
        """Test exit code 1 when the rollback fails."""
        result = RollbackResult(
            app_name="7zip", ok=False, script_path=Path("x"), error="No uninstall"
        )
        with patch("chocopack.cli.DeploymentOrchestrator") as mock_orchestrator:
            mock_orchestrator.return_value.rollback.return_value = result
            code = _run(["rollback", "7zip", "--config", str(config_file)])

        assert code == 1
        assert "No uninstall" in capsys.readouterr().out


class TestSetupCommand:
    """Tests for 'chocopack setup'."""

    def test_creates_folders(self, config_file, tmp_test_dir):
        """Test that setup creates folders and fetches the tool."""
        tool_path = tmp_test_dir / "Tools" / "IntuneWinAppUtil.exe"
        with patch(
            "chocopack.cli.fetch_intunewin_tool", return_value=tool_path
        ) as mock_fetch:
            code = _run(["setup", "--config", str(config_file)])

        assert code == 0
        assert (tmp_test_dir / "Apps").is_dir()
        assert (tmp_test_dir / "Logos").is_dir()
        mock_fetch.assert_called_once()

    def test_download_failure(self, config_file, capsys):
        """Test exit code 1 when the tool cannot be downloaded."""
        with patch(
            "chocopack.cli.fetch_intunewin_tool",
            side_effect=NetworkError("download failed"),
        ):
            code = _run(["setup", "--config", str(config_file)])

        assert code == 1
        assert "download failed" in capsys.readouterr().out
