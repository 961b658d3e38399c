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

"""Chocolatey package-manager client.

Thin wrapper around the choco command line. The pipeline only needs two
operations: install a package by name, and search for package identifiers
(used by the CLI 'search' command). Both are blocking subprocess calls.

Example:
    ```python
    from chocopack.chocolatey import ChocolateyClient

    choco = ChocolateyClient()
    names = choco.search("7zip")      # ["7zip", "7zip.install", ...]
    ok = choco.install("7zip")        # True/False
    ```

Note:
    install() never raises for a failed installation; it returns False so the
    orchestrator can apply its retry policy. A missing choco executable is
    also reported as False (the attempt is logged).
"""

from __future__ import annotations

import subprocess
from typing import Protocol

from chocopack.exceptions import NetworkError


class PackageManager(Protocol):
    """What the orchestrator needs from a package manager."""

    def install(self, package_name: str) -> bool:
        """Install a package. Returns True on success."""
        ...

    def search(self, term: str) -> list[str]:
        """Return matching package identifiers, best match first."""
        ...


class ChocolateyClient:
    """Run choco commands.

    Args:
        executable: choco command or full path to choco.exe.
        timeout: Seconds before a choco command is abandoned.
    """

    def __init__(self, executable: str = "choco", timeout: int = 1800) -> None:
        self.executable = executable
        self.timeout = timeout

    def install(self, package_name: str) -> bool:
        """Install (or reinstall) a package non-interactively.

        Args:
            package_name: Chocolatey package identifier.

        Returns:
            True if choco exited with a success code, False otherwise.
        """
        from chocopack.logging import get_global_logger

        logger = get_global_logger()
        cmd = [
            self.executable,
            "install",
            package_name,
            "-y",
            "--force",
            "--no-progress",
        ]
        logger.verbose("CHOCO", f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as err:
            logger.verbose("CHOCO", f"choco install failed to run: {err}")
            return False

        # 3010 = success, reboot required
        if result.returncode in (0, 3010):
            logger.verbose("CHOCO", f"[OK] Installed {package_name}")
            return True

        logger.verbose(
            "CHOCO",
            f"choco install {package_name} exited with code {result.returncode}",
        )
        for line in (result.stdout or "").strip().splitlines()[-5:]:
            logger.debug("CHOCO", f"  {line}")
        return False

    def search(self, term: str) -> list[str]:
        """Search the package repository.

        Args:
            term: Search term.

        Returns:
            Package identifiers in the order choco returned them.

        Raises:
            NetworkError: If choco cannot be run or the search fails.
        """
        cmd = [self.executable, "search", term, "--limit-output"]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as err:
            raise NetworkError(
                f"choco search failed (exit code {err.returncode})"
            ) from err
        except (OSError, subprocess.TimeoutExpired) as err:
            raise NetworkError(f"choco search failed: {err}") from err

        return parse_search_output(result.stdout)


def parse_search_output(output: str) -> list[str]:
    """Parse 'choco search --limit-output' lines ("name|version").

    Example:
        >>> parse_search_output("7zip|23.1.0\\n7zip.install|23.1.0\\n")
        ['7zip', '7zip.install']
    """
    names: list[str] = []
    for line in output.splitlines():
        line = line.strip()
        if not line or "|" not in line:
            continue
        name = line.split("|", 1)[0].strip()
        if name and name not in names:
            names.append(name)
    return names
