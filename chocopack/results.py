# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Public API return types for chocopack.

This module defines the values passed between pipeline stages and returned
to callers. All dataclasses are frozen so a stage cannot mutate what an
earlier stage produced.

Example:
    Inspecting a pipeline run:
        ```python
        from chocopack.core import DeploymentOrchestrator
        from chocopack.results import PipelineState

        result = DeploymentOrchestrator(config).run("7zip")
        if result.state is PipelineState.DONE:
            print(result.artifact.path)
        else:
            print(f"{result.reason.value}: {result.error}")
        ```
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from chocopack.request import PackageRequest


class PipelineState(Enum):
    """Stages of a single package run, plus its terminal states."""

    INSTALLING = "installing"
    RESOLVING = "resolving"
    SYNTHESIZING = "synthesizing"
    PACKAGING = "packaging"
    ICON_ASSIGNING = "icon_assigning"
    DONE = "done"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class FailureReason(Enum):
    """Why a package run ended in FAILED (or ROLLED_BACK)."""

    INVALID_NAME = "invalid_name"
    INSTALL_EXHAUSTED = "install_exhausted"
    INSTALLER_NOT_FOUND = "installer_not_found"
    SCRIPT_SYNTHESIS_FAILED = "script_synthesis_failed"
    PACKAGING_FAILED = "packaging_failed"


@dataclass(frozen=True)
class InstallerDescriptor:
    """The installer chosen for a package.

    Attributes:
        path: Path to the installer file.
        discovered_via: Filename pattern that matched (e.g., "*.exe").
    """

    path: Path
    discovered_via: str


@dataclass(frozen=True)
class DeploymentScriptSet:
    """The three deployment scripts written for a package.

    Attributes:
        install_script_path: Path to Install.ps1.
        uninstall_script_path: Path to Uninstall.ps1.
        detection_script_path: Path to Detection.ps1.
        app_path: Installed application path the scripts check for.
        app_version: Version reported by the detection script.
    """

    install_script_path: Path
    uninstall_script_path: Path
    detection_script_path: Path
    app_path: str
    app_version: str


@dataclass(frozen=True)
class Artifact:
    """A packaged .intunewin file.

    Attributes:
        path: Path to the .intunewin file.
    """

    path: Path


@dataclass(frozen=True)
class IconResult:
    """Outcome of icon assignment.

    Icon assignment is cosmetic. Callers may ignore a failed result.

    Attributes:
        ok: True if logo.png was written.
        path: Destination path (logo.png inside the package folder).
        source: "custom" or "fallback" (None if nothing was attempted).
        error: Error message when ok is False.
    """

    ok: bool
    path: Path
    source: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class RollbackResult:
    """Outcome of running a package's uninstall script.

    Attributes:
        app_name: Package name the rollback was requested for.
        ok: True if the uninstall script ran and exited with code 0.
        script_path: Uninstall script that was (or would have been) run.
        exit_code: Exit code of the script, if it ran.
        error: Error message when ok is False.
    """

    app_name: str
    ok: bool
    script_path: Path
    exit_code: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class PipelineResult:
    """Result of running the pipeline for one package.

    Attributes:
        request: The package that was processed (None if the name was invalid).
        raw_name: Name as supplied by the caller.
        state: DONE, FAILED, or ROLLED_BACK.
        reason: Failure reason (None when state is DONE).
        failed_stage: Stage that failed (None when state is DONE).
        error: Error message for the failure.
        attempts: Package-manager install attempts made.
        installer: Installer that was resolved, if any.
        scripts: Scripts that were written, if any.
        artifact: Packaged file, if any.
        icon: Icon assignment outcome, if the stage ran.
        rollback: Rollback outcome, if one ran.
    """

    raw_name: str
    state: PipelineState
    request: PackageRequest | None = None
    reason: FailureReason | None = None
    failed_stage: PipelineState | None = None
    error: str | None = None
    attempts: int = 0
    installer: InstallerDescriptor | None = None
    scripts: DeploymentScriptSet | None = None
    artifact: Artifact | None = None
    icon: IconResult | None = None
    rollback: RollbackResult | None = None

    @property
    def ok(self) -> bool:
        """True only when every load-bearing stage succeeded."""
        return self.state is PipelineState.DONE
