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

"""Console output for chocopack.

Library code never prints directly. It reports through a Logger, and the
CLI picks the implementation and verbosity for each command.

Levels:

- step: Numbered pipeline stage markers, always shown
- verbose: Stage detail, shown with --verbose
- debug: Raw tool output and similar, shown with --debug (implies verbose)
- warning: Problems that do not fail a package, always shown
- error: Package and command failures, always shown on stderr

Example:
    ```python
    from chocopack.logging import get_logger, set_global_logger

    set_global_logger(get_logger(verbose=True))
    ```

    The orchestrator also takes a logger directly:

    ```python
    orchestrator = DeploymentOrchestrator(config, logger=get_logger(debug=True))
    ```

Note:
    Until set_global_logger() is called the global logger is a SilentLogger,
    so importing and calling library functions prints nothing.
"""

from __future__ import annotations

import sys
from typing import Protocol, TextIO


class Logger(Protocol):
    """Output sink used by every chocopack module."""

    def step(self, step: int, total: int, message: str) -> None:
        """Report entry into a pipeline stage.

        Args:
            step: Stage number, starting at 1.
            total: Number of stages.
            message: What the stage does.
        """
        ...

    def verbose(self, prefix: str, message: str) -> None:
        """Report stage detail.

        Args:
            prefix: Source tag (e.g., "CHOCO", "PACKAGE").
            message: Message text.
        """
        ...

    def debug(self, prefix: str, message: str) -> None: ...

    def warning(self, prefix: str, message: str) -> None: ...

    def error(self, prefix: str, message: str) -> None: ...


class DefaultLogger:
    """Write "[PREFIX] message" lines to the console.

    Args:
        verbose: Show verbose messages.
        debug: Show debug messages as well (implies verbose).
        out: Stream for normal output. Default: sys.stdout at write time.
        err: Stream for errors. Default: sys.stderr at write time.
    """

    def __init__(
        self,
        verbose: bool = False,
        debug: bool = False,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self.show_verbose = verbose or debug
        self.show_debug = debug
        self._out = out
        self._err = err

    def _write(self, line: str, to_err: bool = False) -> None:
        if to_err:
            stream = self._err or sys.stderr
        else:
            stream = self._out or sys.stdout
        print(line, file=stream)

    def step(self, step: int, total: int, message: str) -> None:
        self._write(f"[{step}/{total}] {message}")

    def verbose(self, prefix: str, message: str) -> None:
        if self.show_verbose:
            self._write(f"[{prefix}] {message}")

    def debug(self, prefix: str, message: str) -> None:
        if self.show_debug:
            self._write(f"[{prefix}] {message}")

    def warning(self, prefix: str, message: str) -> None:
        self._write(f"[{prefix}] WARNING: {message}")

    def error(self, prefix: str, message: str) -> None:
        self._write(f"[{prefix}] ERROR: {message}", to_err=True)


class SilentLogger:
    """Logger that discards everything (the library default)."""

    def step(self, step: int, total: int, message: str) -> None:
        return None

    def verbose(self, prefix: str, message: str) -> None:
        return None

    def debug(self, prefix: str, message: str) -> None:
        return None

    def warning(self, prefix: str, message: str) -> None:
        return None

    def error(self, prefix: str, message: str) -> None:
        return None


_global_logger: Logger = SilentLogger()


def get_logger(verbose: bool = False, debug: bool = False) -> Logger:
    """Return a console logger with the given verbosity."""
    return DefaultLogger(verbose=verbose, debug=debug)


def get_global_logger() -> Logger:
    """Return the logger library functions fall back to."""
    return _global_logger


def set_global_logger(logger: Logger) -> None:
    """Replace the logger library functions fall back to.

    The CLI calls this once per command. Code that runs several pipelines
    with different verbosity should pass loggers explicitly instead.
    """
    global _global_logger
    _global_logger = logger
