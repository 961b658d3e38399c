"""
Pytest configuration and shared fixtures for chocopack tests.

This module provides reusable fixtures and test utilities used across
the test suite.
"""

from __future__ import annotations

from pathlib import Path
import subprocess
from typing import Any

import pytest
import yaml

from chocopack.config import PipelineConfig, load_config


class FakePackageManager:
    """Package manager double that replays scripted install outcomes.

    Each install() call pops the next outcome; True/False are returned,
    exceptions are raised. Once the script runs out, the last outcome repeats.
    """

    def __init__(self, outcomes: list[Any] | None = None, on_install=None) -> None:
        self.outcomes = list(outcomes if outcomes is not None else [True])
        self.on_install = on_install
        self.installed: list[str] = []
        self.searches: list[str] = []

    def install(self, package_name: str) -> bool:
        self.installed.append(package_name)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if outcome and self.on_install is not None:
            self.on_install(package_name)
        return outcome

    def search(self, term: str) -> list[str]:
        self.searches.append(term)
        return [term]


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def config(tmp_test_dir: Path) -> PipelineConfig:
    """Provide a configuration rooted in the temporary directory.

    Retry delays are zero and downloads are attempted once so failure paths
    run fast. The packaging tool is not created; use the intunewin_tool
    fixture for that.
    """
    return load_config(
        apps_root=tmp_test_dir / "Apps",
        logos_dir=tmp_test_dir / "Logos",
        choco_lib_dir=tmp_test_dir / "lib",
        intunewin_tool=tmp_test_dir / "Tools" / "IntuneWinAppUtil.exe",
        install_retry_delay=0,
        download_retry_delay=0,
        download_attempts=1,
        fallback_icon_url="https://example.com/default.png",
    )


@pytest.fixture
def intunewin_tool(config: PipelineConfig) -> Path:
    """Create a placeholder IntuneWinAppUtil.exe at the configured path."""
    config.intunewin_tool.parent.mkdir(parents=True, exist_ok=True)
    config.intunewin_tool.write_bytes(b"MZ fake tool")
    return config.intunewin_tool


@pytest.fixture
def make_tools_folder(config: PipelineConfig):
    """
    Factory fixture for creating a Chocolatey tool folder.

    Usage:
        tools = make_tools_folder("7zip", ["7z.exe", "sub/readme.txt"])
    """

    def _create(package_name: str, files: list[str]) -> Path:
        tools = config.tools_folder(package_name)
        tools.mkdir(parents=True, exist_ok=True)
        for name in files:
            path = tools / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(f"content of {name}".encode())
        return tools

    return _create


@pytest.fixture
def fake_intunewin_run():
    """
    Provide a subprocess.run replacement that behaves like IntuneWinAppUtil.exe.

    It writes <output>/<source folder name>.intunewin and returns exit code 0.
    The list of received commands is available as ``fake.calls``.
    """

    def fake(cmd, *args, **kwargs):
        fake.calls.append(cmd)
        source = Path(cmd[cmd.index("-c") + 1])
        output = Path(cmd[cmd.index("-o") + 1])
        (output / f"{source.name}.intunewin").write_bytes(b"intunewin")
        return subprocess.CompletedProcess(cmd, 0, stdout="Done!", stderr="")

    fake.calls = []
    return fake


@pytest.fixture
def create_yaml_file(tmp_test_dir: Path):
    """
    Factory fixture for creating temporary YAML files.

    Usage:
        yaml_path = create_yaml_file("test.yaml", {"key": "value"})
    """

    def _create(filename: str, data: dict[str, Any]) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create


@pytest.fixture
def package_manager_factory():
    """Provide the FakePackageManager class for building test doubles."""
    return FakePackageManager
