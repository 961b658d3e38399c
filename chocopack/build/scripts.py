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

"""Deployment script generation for Intune Win32 apps.

For every package three PowerShell scripts are written into the package
folder (<apps_root>/<name>/):

- Install.ps1: Runs the staged installer silently and waits for it
- Uninstall.ps1: Runs the application's uninstaller silently if the
  application is present, otherwise reports that it is absent
- Detection.ps1: Exits 0 with an "installed" message if the application
  path exists, otherwise exits 1 with a "not installed" message

Intune relies on the detection script's exit code (0 = present,
1 = absent), so that contract must not change.

Scripts are generated from fixed templates by substitution. Output depends
only on the inputs (no timestamps), so regenerating with the same inputs
gives byte-identical files. Each run overwrites the previous scripts.

Silent Install Commands (by installer type):
    - .ps1: powershell.exe -NoProfile -ExecutionPolicy Bypass -File <installer>
    - .exe: <installer> /S
    - .msi: msiexec.exe /i <installer> /qn /norestart
    - .bat, .cmd: cmd.exe /c <installer>

Example:
    ```python
    from pathlib import Path
    from chocopack.build.scripts import synthesize_scripts

    scripts = synthesize_scripts(
        app_name="7zip",
        installer_path=Path("Apps/7zip/Files/7z2301-x64.exe"),
        app_folder=Path("Apps/7zip"),
    )
    print(scripts.detection_script_path)
    ```
"""

from __future__ import annotations

from pathlib import Path, PureWindowsPath
import shutil
import string

from chocopack.config.loader import PipelineConfig
from chocopack.exceptions import InstallerMissingError, ScriptWriteError
from chocopack.results import DeploymentScriptSet

INSTALL_SCRIPT = "Install.ps1"
UNINSTALL_SCRIPT = "Uninstall.ps1"
DETECTION_SCRIPT = "Detection.ps1"
PAYLOAD_DIR = "Files"

_HEADER = """# ${title} script for ${app_name_comment}
# Generated by chocopack

$$AppName = ${app_name}
$$AppVersion = ${app_version}
$$AppPath = ${app_path}
"""

_INSTALL_TEMPLATE = (
    _HEADER
    + """$$Installer = ${installer}

Write-Output "Installing $$AppName $$AppVersion..."
$$Process = Start-Process -FilePath ${file_path} -ArgumentList ${arguments} -Wait -PassThru -NoNewWindow
Write-Output "Installer exited with code $$($$Process.ExitCode)"
exit $$Process.ExitCode
"""
)

_UNINSTALL_TEMPLATE = (
    _HEADER
    + """$$Uninstaller = Join-Path (Split-Path -Parent $$AppPath) ${uninstaller}

if (Test-Path -Path $$AppPath) {
    Write-Output "Uninstalling $$AppName..."
    $$Process = Start-Process -FilePath $$Uninstaller -ArgumentList '/S' -Wait -PassThru -NoNewWindow
    Write-Output "Uninstaller exited with code $$($$Process.ExitCode)"
    exit $$Process.ExitCode
} else {
    Write-Output "$$AppName is not installed, nothing to uninstall"
    exit 0
}
"""
)

_DETECTION_TEMPLATE = (
    _HEADER
    + """
if (Test-Path -Path $$AppPath) {
    Write-Output "$$AppName $$AppVersion is installed"
    exit 0
} else {
    Write-Output "$$AppName is not installed"
    exit 1
}
"""
)


def _ps_quote(value: str) -> str:
    """Format a string as a single-quoted PowerShell literal.

    Example:
        >>> _ps_quote("O'Brien")
        "'O''Brien'"
    """
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def _installer_expression(installer_path: Path, app_folder: Path) -> str:
    """PowerShell expression for the installer location.

    Installers inside the package folder are referenced relative to
    $PSScriptRoot so the script works wherever Intune unpacks the content.
    """
    try:
        relative = installer_path.resolve().relative_to(app_folder.resolve())
    except ValueError:
        return _ps_quote(str(installer_path))
    windows_relative = str(PureWindowsPath(*relative.parts))
    return f"(Join-Path $PSScriptRoot {_ps_quote(windows_relative)})"


def _silent_command(installer_path: Path) -> tuple[str, str]:
    """Return (FilePath, ArgumentList) expressions for a silent install."""
    suffix = installer_path.suffix.lower()
    if suffix == ".ps1":
        return (
            "'powershell.exe'",
            '"-NoProfile -ExecutionPolicy Bypass -File `"$Installer`""',
        )
    if suffix == ".msi":
        return "'msiexec.exe'", '"/i `"$Installer`" /qn /norestart"'
    if suffix in (".bat", ".cmd"):
        return "'cmd.exe'", '"/c `"$Installer`""'
    return "$Installer", "'/S'"


def _render(
    template: str,
    title: str,
    app_name: str,
    app_version: str,
    app_path: str,
    **extra: str,
) -> str:
    return string.Template(template).substitute(
        title=title,
        app_name_comment=app_name.replace("\n", " "),
        app_name=_ps_quote(app_name),
        app_version=_ps_quote(app_version),
        app_path=_ps_quote(app_path),
        **extra,
    )


def stage_installer(
    tools_folder: Path, installer_path: Path, app_folder: Path
) -> Path:
    """Copy a package's tool folder into <app_folder>/Files.

    The whole tool folder is copied because install scripts and installers
    often depend on sibling files. Any previous Files/ folder is replaced.

    Args:
        tools_folder: Chocolatey tool folder the installer was found in.
        installer_path: Resolved installer (inside tools_folder).
        app_folder: Package folder.

    Returns:
        Path of the staged copy of the installer.

    Raises:
        OSError: If the copy fails.
    """
    from chocopack.logging import get_global_logger

    logger = get_global_logger()
    payload_dir = app_folder / PAYLOAD_DIR

    if payload_dir.exists():
        logger.verbose("SCRIPTS", f"Removing previous payload: {payload_dir}")
        shutil.rmtree(payload_dir)

    app_folder.mkdir(parents=True, exist_ok=True)
    shutil.copytree(tools_folder, payload_dir)
    staged = payload_dir / installer_path.relative_to(tools_folder)
    logger.verbose("SCRIPTS", f"[OK] Staged installer: {staged}")
    return staged


def synthesize_scripts(
    app_name: str,
    installer_path: Path,
    app_folder: Path,
    app_version: str = "latest",
    app_path: str | None = None,
    uninstaller_name: str = "uninstall.exe",
) -> DeploymentScriptSet:
    """Write Install.ps1, Uninstall.ps1, and Detection.ps1 for a package.

    Args:
        app_name: Sanitized package name.
        installer_path: Installer the install script runs. Must exist.
        app_folder: Package folder the scripts are written to (created if
            missing).
        app_version: Version reported by the detection script.
        app_path: Installed application path the uninstall and detection
            scripts check. Default: C:\\Program Files\\<name>\\<name>.exe
        uninstaller_name: Uninstaller file name in the application's folder.

    Returns:
        DeploymentScriptSet describing the written scripts.

    Raises:
        InstallerMissingError: If installer_path does not exist. Nothing is
            written in that case.
        ScriptWriteError: If a script cannot be written. Its ``written``
            attribute lists the scripts written before the failure.
    """
    from chocopack.logging import get_global_logger

    logger = get_global_logger()

    if not installer_path.is_file():
        raise InstallerMissingError(f"Installer not found: {installer_path}")

    if app_path is None:
        app_path = PipelineConfig().default_app_path(app_name)

    file_path, arguments = _silent_command(installer_path)
    common = {"app_name": app_name, "app_version": app_version, "app_path": app_path}

    documents = [
        (
            app_folder / INSTALL_SCRIPT,
            _render(
                _INSTALL_TEMPLATE,
                "Install",
                installer=_installer_expression(installer_path, app_folder),
                file_path=file_path,
                arguments=arguments,
                **common,
            ),
        ),
        (
            app_folder / UNINSTALL_SCRIPT,
            _render(
                _UNINSTALL_TEMPLATE,
                "Uninstall",
                uninstaller=_ps_quote(uninstaller_name),
                **common,
            ),
        ),
        (
            app_folder / DETECTION_SCRIPT,
            _render(_DETECTION_TEMPLATE, "Detection", **common),
        ),
    ]

    written: list[Path] = []
    try:
        app_folder.mkdir(parents=True, exist_ok=True)
        for path, content in documents:
            # UTF-8 BOM so Windows PowerShell reads non-ASCII names correctly
            path.write_bytes(content.encode("utf-8-sig"))
            written.append(path)
            logger.verbose("SCRIPTS", f"[OK] Wrote {path.name}")
    except OSError as err:
        raise ScriptWriteError(
            f"Failed to write deployment scripts in {app_folder}: {err}",
            written=written,
        ) from err

    return DeploymentScriptSet(
        install_script_path=app_folder / INSTALL_SCRIPT,
        uninstall_script_path=app_folder / UNINSTALL_SCRIPT,
        detection_script_path=app_folder / DETECTION_SCRIPT,
        app_path=app_path,
        app_version=app_version,
    )
