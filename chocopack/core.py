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

"""Core orchestration for chocopack.

DeploymentOrchestrator turns one Chocolatey package name into an Intune
deployable by running these stages strictly in order:

    INSTALLING -> RESOLVING -> SYNTHESIZING -> PACKAGING -> ICON_ASSIGNING -> DONE

- **INSTALLING**: `choco install`, retried up to config.install_attempts times
  with a fixed config.install_retry_delay between attempts.
  Exhaustion fails with INSTALL_EXHAUSTED.
- **RESOLVING**: Find the installer in the package's tool folder. Nothing
  found fails with INSTALLER_NOT_FOUND.
- **SYNTHESIZING**: Stage the tool folder into <apps_root>/<name>/Files and
  write Install.ps1, Uninstall.ps1, Detection.ps1. Any error fails with
  SCRIPT_SYNTHESIS_FAILED.
- **PACKAGING**: Run IntuneWinAppUtil.exe. Any error (including a missing
  tool) fails with PACKAGING_FAILED.
- **ICON_ASSIGNING**: Attach logo.png. Failures are logged as warnings and
  the run still ends in DONE.

Every failure is caught here, logged, and returned as a PipelineResult in
state FAILED, so one package's failure never stops the next one.

Rollback runs a package's previously generated Uninstall.ps1. rollback()
takes a package name; apply_rollback() takes a FAILED result and moves it to
ROLLED_BACK when the script succeeds. Neither runs on its own unless
config.auto_rollback is set, in which case apply_rollback() follows any
failure that happens after this run wrote its scripts.

Note:
    There is no locking. Callers must not run the same package name
    concurrently; the runs would race on the same package folder.

Example:
    Programmatic usage:
        ```python
        from chocopack.config import load_config
        from chocopack.core import DeploymentOrchestrator

        orchestrator = DeploymentOrchestrator(load_config())
        for result in orchestrator.run_many(["7zip", "notepadplusplus"]):
            print(result.raw_name, result.state.value)
        ```
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
import subprocess
import time
from typing import Any

from chocopack.build.icon import assign_icon
from chocopack.build.packager import create_intunewin
from chocopack.build.resolver import resolve_installer
from chocopack.build.scripts import (
    UNINSTALL_SCRIPT,
    stage_installer,
    synthesize_scripts,
)
from chocopack.chocolatey import ChocolateyClient, PackageManager
from chocopack.config.loader import PipelineConfig
from chocopack.exceptions import ChocoPackError, ScriptWriteError
from chocopack.logging import Logger, get_global_logger
from chocopack.request import PackageRequest
from chocopack.results import (
    FailureReason,
    PipelineResult,
    PipelineState,
    RollbackResult,
)

_STAGES = (
    PipelineState.INSTALLING,
    PipelineState.RESOLVING,
    PipelineState.SYNTHESIZING,
    PipelineState.PACKAGING,
    PipelineState.ICON_ASSIGNING,
)

_STEP_MESSAGES = {
    PipelineState.INSTALLING: "Installing package...",
    PipelineState.RESOLVING: "Resolving installer...",
    PipelineState.SYNTHESIZING: "Writing deployment scripts...",
    PipelineState.PACKAGING: "Creating .intunewin package...",
    PipelineState.ICON_ASSIGNING: "Assigning icon...",
}


class _StageFailed(Exception):
    """Internal signal that a stage ended the run."""

    def __init__(self, reason: FailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


@dataclass
class _Run:
    """Mutable bookkeeping for one package run."""

    request: PackageRequest
    state: PipelineState = PipelineState.INSTALLING
    outputs: dict[str, Any] = field(default_factory=dict)


class DeploymentOrchestrator:
    """Run the packaging pipeline for one package at a time.

    Args:
        config: Pipeline configuration.
        package_manager: Package manager used for installs. Default:
            ChocolateyClient(config.choco_executable).
        logger: Logger for progress and errors. Default: the global logger.
        sleep: Sleep function used between install attempts.
    """

    def __init__(
        self,
        config: PipelineConfig,
        package_manager: PackageManager | None = None,
        logger: Logger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.package_manager = package_manager or ChocolateyClient(
            config.choco_executable
        )
        self._logger = logger
        self._sleep = sleep

    @property
    def logger(self) -> Logger:
        return self._logger or get_global_logger()

    # -------------------------------
    # Pipeline
    # -------------------------------

    def run(self, raw_name: str, app_version: str = "latest") -> PipelineResult:
        """Run every stage for one package.

        Args:
            raw_name: Chocolatey package name.
            app_version: Version written into the detection script.

        Returns:
            PipelineResult in state DONE, FAILED, or ROLLED_BACK. Never raises
            for stage failures.
        """
        try:
            request = PackageRequest.from_raw(raw_name)
        except ValueError as err:
            self.logger.error("PIPELINE", str(err))
            return PipelineResult(
                raw_name=raw_name,
                state=PipelineState.FAILED,
                reason=FailureReason.INVALID_NAME,
                error=str(err),
            )

        run = _Run(request=request)
        self.logger.verbose(
            "PIPELINE",
            f"Processing {request.raw_name} (folder: {request.sanitized_name})",
        )

        try:
            for stage in _STAGES:
                self._enter(run, stage)
                self._execute(run, stage, app_version)
        except _StageFailed as failure:
            return self._fail(run, failure.reason, str(failure))

        run.state = PipelineState.DONE
        self.logger.verbose("PIPELINE", f"[OK] {request.raw_name} packaged")
        return PipelineResult(
            raw_name=raw_name,
            state=PipelineState.DONE,
            request=request,
            **run.outputs,
        )

    def run_many(
        self, names: Iterable[str], app_version: str = "latest"
    ) -> list[PipelineResult]:
        """Run the pipeline for several packages, one after another.

        Each package is independent: a failure is recorded in its result and
        the next package still runs.
        """
        return [self.run(name, app_version=app_version) for name in names]

    def _enter(self, run: _Run, stage: PipelineState) -> None:
        run.state = stage
        index = _STAGES.index(stage) + 1
        self.logger.step(index, len(_STAGES), _STEP_MESSAGES[stage])

    def _execute(self, run: _Run, stage: PipelineState, app_version: str) -> None:
        if stage is PipelineState.INSTALLING:
            self._install(run)
        elif stage is PipelineState.RESOLVING:
            self._resolve(run)
        elif stage is PipelineState.SYNTHESIZING:
            self._synthesize(run, app_version)
        elif stage is PipelineState.PACKAGING:
            self._package(run)
        elif stage is PipelineState.ICON_ASSIGNING:
            self._assign_icon(run)
        else:
            raise ValueError(f"Not a pipeline stage: {stage}")

    def _install(self, run: _Run) -> None:
        name = run.request.raw_name
        attempts = self.config.install_attempts

        for attempt in range(1, attempts + 1):
            run.outputs["attempts"] = attempt
            self.logger.verbose(
                "CHOCO", f"Installing {name} (attempt {attempt}/{attempts})"
            )
            try:
                installed = self.package_manager.install(name)
            except Exception as err:
                # Any error from the package manager counts as a failed attempt
                self.logger.verbose("CHOCO", f"Install attempt {attempt} failed: {err}")
                installed = False

            if installed:
                return
            if attempt < attempts:
                self._sleep(self.config.install_retry_delay)

        raise _StageFailed(
            FailureReason.INSTALL_EXHAUSTED,
            f"choco install {name} failed after {attempts} attempt(s)",
        )

    def _resolve(self, run: _Run) -> None:
        tools_folder = self.config.tools_folder(run.request.raw_name)
        installer = resolve_installer(tools_folder)
        if installer is None:
            raise _StageFailed(
                FailureReason.INSTALLER_NOT_FOUND,
                f"No installer found in {tools_folder}",
            )
        run.outputs["installer"] = installer

    def _synthesize(self, run: _Run, app_version: str) -> None:
        request = run.request
        installer = run.outputs["installer"]
        app_folder = self.config.app_folder(request.sanitized_name)

        try:
            staged = stage_installer(
                self.config.tools_folder(request.raw_name), installer.path, app_folder
            )
            run.outputs["scripts"] = synthesize_scripts(
                request.sanitized_name,
                staged,
                app_folder,
                app_version=app_version,
                app_path=self.config.default_app_path(request.sanitized_name),
                uninstaller_name=self.config.uninstaller_name,
            )
        except ScriptWriteError as err:
            detail = " (partial script set written)" if err.partial else ""
            raise _StageFailed(
                FailureReason.SCRIPT_SYNTHESIS_FAILED, f"{err}{detail}"
            ) from err
        except (ChocoPackError, OSError) as err:
            raise _StageFailed(FailureReason.SCRIPT_SYNTHESIS_FAILED, str(err)) from err

    def _package(self, run: _Run) -> None:
        app_folder = self.config.app_folder(run.request.sanitized_name)
        try:
            run.outputs["artifact"] = create_intunewin(app_folder, self.config)
        except (ChocoPackError, OSError) as err:
            raise _StageFailed(FailureReason.PACKAGING_FAILED, str(err)) from err

    def _assign_icon(self, run: _Run) -> None:
        request = run.request
        icon = assign_icon(
            request.raw_name,
            self.config.app_folder(request.sanitized_name),
            self.config,
            sanitized_name=request.sanitized_name,
        )
        run.outputs["icon"] = icon
        if not icon.ok:
            self.logger.warning(
                "ICON", f"Icon not assigned for {request.raw_name}: {icon.error}"
            )

    def _fail(self, run: _Run, reason: FailureReason, message: str) -> PipelineResult:
        failed_stage = run.state
        self.logger.error(
            "PIPELINE",
            f"{run.request.raw_name} failed while {failed_stage.value} "
            f"({reason.value}): {message}",
        )
        result = PipelineResult(
            raw_name=run.request.raw_name,
            state=PipelineState.FAILED,
            request=run.request,
            reason=reason,
            failed_stage=failed_stage,
            error=message,
            **run.outputs,
        )

        # Only a script written by this run may be rolled back
        scripts = run.outputs.get("scripts")
        if (
            self.config.auto_rollback
            and scripts is not None
            and scripts.uninstall_script_path.is_file()
        ):
            result = self.apply_rollback(result)

        return result

    # -------------------------------
    # Rollback
    # -------------------------------

    def apply_rollback(self, result: PipelineResult) -> PipelineResult:
        """Roll back a failed run and return its updated result.

        The returned result is ROLLED_BACK if the uninstall script succeeded.
        Otherwise it stays FAILED. Either way the rollback outcome is attached
        and the original failure reason and stage are kept.

        Raises:
            ValueError: If result is not in state FAILED.
        """
        if result.state is not PipelineState.FAILED:
            raise ValueError(
                f"Only failed runs can be rolled back ({result.raw_name} is "
                f"{result.state.value})"
            )

        rollback = self.rollback(result.raw_name)
        state = PipelineState.ROLLED_BACK if rollback.ok else PipelineState.FAILED
        return replace(result, state=state, rollback=rollback)

    def rollback(self, app_name: str) -> RollbackResult:
        """Run a package's previously generated Uninstall.ps1.

        Best-effort cleanup: failures are reported in the result, never
        raised.

        Args:
            app_name: Package name (raw or sanitized).

        Returns:
            RollbackResult. ok is False if the script is absent, could not be
            run, or exited with a non-zero code.
        """
        try:
            request = PackageRequest.from_raw(app_name)
        except ValueError as err:
            self.logger.error("ROLLBACK", str(err))
            return RollbackResult(
                app_name=app_name,
                ok=False,
                script_path=self.config.apps_root / UNINSTALL_SCRIPT,
                error=str(err),
            )

        script = self.config.app_folder(request.sanitized_name) / UNINSTALL_SCRIPT
        if not script.is_file():
            message = f"No uninstall script for {app_name}: {script}"
            self.logger.error("ROLLBACK", message)
            return RollbackResult(
                app_name=app_name, ok=False, script_path=script, error=message
            )

        cmd = [
            self.config.powershell_executable,
            "-NoProfile",
            "-ExecutionPolicy",
            "Bypass",
            "-File",
            str(script),
        ]
        self.logger.verbose("ROLLBACK", f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.config.rollback_timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as err:
            message = f"Uninstall script could not be run: {err}"
            self.logger.error("ROLLBACK", message)
            return RollbackResult(
                app_name=app_name, ok=False, script_path=script, error=message
            )

        for line in (result.stdout or "").strip().splitlines():
            self.logger.verbose("ROLLBACK", f"  {line}")

        if result.returncode != 0:
            message = f"Uninstall script exited with code {result.returncode}"
            self.logger.error("ROLLBACK", message)
            return RollbackResult(
                app_name=app_name,
                ok=False,
                script_path=script,
                exit_code=result.returncode,
                error=message,
            )

        self.logger.verbose("ROLLBACK", f"[OK] Rolled back {app_name}")
        return RollbackResult(
            app_name=app_name, ok=True, script_path=script, exit_code=0
        )
