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

"""Installer discovery inside a Chocolatey package's tool folder.

Chocolatey unpacks each package into <lib>/<name>/tools. The folder may hold
the package's own install script, an embedded installer, or both. The
resolver picks one file using a fixed priority order:

    1. chocolateyInstall.ps1   (the package's install script)
    2. *.exe                   (executable installer)
    3. *.msi                   (Windows Installer package)
    4. *.bat                   (batch file)

The first pattern that matches anything wins, even if a lower-priority file
sorts earlier. Within a pattern, matches are taken in case-insensitive path
order so the result is stable across runs. Matching is case-insensitive
(Windows file names).

Example:
    ```python
    from chocopack.build.resolver import resolve_installer

    installer = resolve_installer(Path("C:/ProgramData/chocolatey/lib/7zip/tools"))
    if installer is None:
        print("No installer found")
    ```
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import Path

from chocopack.results import InstallerDescriptor

INSTALLER_PATTERNS: tuple[str, ...] = (
    "chocolateyinstall.ps1",
    "*.exe",
    "*.msi",
    "*.bat",
)


def _list_files(folder: Path) -> list[Path]:
    """Return every file below folder, sorted case-insensitively."""
    files = [p for p in folder.rglob("*") if p.is_file()]
    return sorted(files, key=lambda p: p.relative_to(folder).as_posix().lower())


def resolve_installer(tools_folder: Path) -> InstallerDescriptor | None:
    """Find the most plausible installer below a package's tool folder.

    Args:
        tools_folder: Folder to search recursively.

    Returns:
        The chosen installer, or None if nothing matches (including when the
        folder does not exist). None is an expected outcome for nonstandard
        packages, not an error.
    """
    from chocopack.logging import get_global_logger

    logger = get_global_logger()

    if not tools_folder.is_dir():
        logger.verbose("RESOLVE", f"Tool folder not found: {tools_folder}")
        return None

    files = _list_files(tools_folder)
    logger.debug("RESOLVE", f"{len(files)} file(s) under {tools_folder}")

    for pattern in INSTALLER_PATTERNS:
        for candidate in files:
            if fnmatchcase(candidate.name.lower(), pattern):
                logger.verbose(
                    "RESOLVE", f"Found installer: {candidate} (pattern {pattern})"
                )
                return InstallerDescriptor(path=candidate, discovered_via=pattern)

    logger.verbose("RESOLVE", f"No installer found in {tools_folder}")
    return None
