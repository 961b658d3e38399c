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

"""Exception hierarchy for chocopack.

This module defines the errors raised by the packaging pipeline so callers
can tell apart failures that are worth retrying from ones that are terminal
for a package:

- ConfigError: Invalid or unreadable configuration
- NetworkError: Download or package-manager failures that may be transient
- NotFoundError: Something the pipeline needs is absent (installer, rollback script)
- ExternalToolError: The external packaging tool is missing or produced nothing
- ScriptWriteError: Deployment scripts could not be written

All exceptions inherit from ChocoPackError, allowing users to catch all
chocopack errors with a single except clause if needed.

Example:
    Catching specific error types:
        ```python
        from chocopack.build.packager import create_intunewin
        from chocopack.exceptions import PackagingError, ToolMissingError

        try:
            artifact = create_intunewin(Path("Apps/7zip"), config)
        except ToolMissingError as e:
            print(f"Install IntuneWinAppUtil.exe first: {e}")
        except PackagingError as e:
            print(f"Packaging failed: {e}")
        ```
"""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "ChocoPackError",
    "ConfigError",
    "NetworkError",
    "NotFoundError",
    "InstallerMissingError",
    "ExternalToolError",
    "ToolMissingError",
    "PackagingError",
    "ScriptWriteError",
]


class ChocoPackError(Exception):
    """Base exception for all chocopack errors."""

    pass


class ConfigError(ChocoPackError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - YAML parse errors or a document that is not a mapping
    - Unknown configuration keys
    - Values of the wrong type or out of range (e.g., zero retry attempts)
    """

    pass


class NetworkError(ChocoPackError):
    """Raised for transient network and package-manager failures.

    These are the only failures the pipeline retries, with a fixed attempt
    count and a fixed delay between attempts.
    """

    pass


class NotFoundError(ChocoPackError):
    """Raised when a required file is absent.

    Not retried. Terminal for the package it concerns.
    """

    pass


class InstallerMissingError(NotFoundError):
    """Raised when script synthesis is given an installer that does not exist."""

    pass


class ExternalToolError(ChocoPackError):
    """Raised for failures of the external packaging tool."""

    pass


class ToolMissingError(ExternalToolError):
    """Raised when IntuneWinAppUtil.exe is not at its configured location.

    This is a setup precondition, not a transient fault. Every package would
    fail the same way, so callers may treat it as fatal.
    """

    pass


class PackagingError(ExternalToolError):
    """Raised when packaging did not produce the expected .intunewin file.

    Covers both a tool that failed to run (non-zero exit, timeout, OS error)
    and a tool that ran but left no output file.
    """

    pass


class ScriptWriteError(ChocoPackError):
    """Raised when a deployment script could not be written.

    Attributes:
        written: Scripts successfully written before the failure. A non-empty
            list means the package folder holds a partial script set.
    """

    def __init__(self, message: str, written: list[Path] | None = None) -> None:
        super().__init__(message)
        self.written = list(written or [])

    @property
    def partial(self) -> bool:
        """True if at least one script was written before the failure."""
        return bool(self.written)
