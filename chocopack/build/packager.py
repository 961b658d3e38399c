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

""".intunewin package generation for chocopack.

This module bundles a package folder (<apps_root>/<name>/) into
<apps_root>/<name>/Output/<name>.intunewin using Microsoft's
IntuneWinAppUtil.exe.

Design Principles:
    - IntuneWinAppUtil.exe must already be at the configured location;
      a missing tool fails immediately (run 'chocopack setup' to fetch it)
    - The tool's exit code is not trusted: success means the expected
      .intunewin file exists after the tool ran
    - A stale .intunewin from an earlier run is removed before packaging so
      it cannot be mistaken for fresh output
    - Tool failures and missing output both raise PackagingError; the
      message says which one happened

Example:
    Basic usage:
        ```python
        from pathlib import Path
        from chocopack.build.packager import create_intunewin
        from chocopack.config import load_config

        artifact = create_intunewin(Path("Apps/7zip"), load_config())
        print(f"Package: {artifact.path}")
        ```
"""

from __future__ import annotations

from pathlib import Path
import subprocess

from chocopack.config.loader import PipelineConfig
from chocopack.exceptions import PackagingError, ToolMissingError
from chocopack.results import Artifact

OUTPUT_DIR = "Output"
PACKAGE_EXTENSION = ".intunewin"


def expected_package_path(app_folder: Path) -> Path:
    """Return <app_folder>/Output/<folder name>.intunewin."""
    return app_folder / OUTPUT_DIR / f"{app_folder.name}{PACKAGE_EXTENSION}"


def verify_tool(config: PipelineConfig) -> Path:
    """Check that IntuneWinAppUtil.exe is present.

    Returns:
        Path to the tool.

    Raises:
        ToolMissingError: If the tool is not at config.intunewin_tool.
    """
    tool_path = config.intunewin_tool
    if not tool_path.is_file():
        raise ToolMissingError(
            f"IntuneWinAppUtil.exe not found at {tool_path}. "
            f"Run 'chocopack setup' to download it."
        )
    return tool_path


def fetch_intunewin_tool(config: PipelineConfig) -> Path:
    """Download IntuneWinAppUtil.exe to its configured location if missing.

    Args:
        config: Pipeline configuration (tool path, URL, download retry policy).

    Returns:
        Path to the tool.

    Raises:
        NetworkError: If the download fails after all attempts.
    """
    from chocopack.io import download_file
    from chocopack.logging import get_global_logger

    logger = get_global_logger()
    tool_path = config.intunewin_tool

    if tool_path.is_file():
        logger.verbose("PACKAGE", f"Using existing IntuneWinAppUtil: {tool_path}")
        return tool_path

    logger.verbose("PACKAGE", "Downloading IntuneWinAppUtil.exe...")
    download_file(
        config.intunewin_tool_url,
        tool_path,
        attempts=config.download_attempts,
        retry_delay=config.download_retry_delay,
        timeout=config.download_timeout,
    )
    logger.verbose("PACKAGE", f"[OK] IntuneWinAppUtil.exe saved: {tool_path}")
    return tool_path


def _execute_packaging(
    tool_path: Path,
    source_dir: Path,
    output_dir: Path,
    timeout: int,
) -> int:
    """Run IntuneWinAppUtil.exe.

    Returns:
        The tool's exit code (informational only).

    Raises:
        PackagingError: If the tool cannot be started or times out.
    """
    from chocopack.logging import get_global_logger

    logger = get_global_logger()

    # IntuneWinAppUtil.exe -c <source> -s <setup> -o <output> -q
    cmd = [
        str(tool_path),
        "-c",
        str(source_dir),
        "-s",
        str(source_dir),
        "-o",
        str(output_dir),
        "-q",  # Quiet mode
    ]

    logger.verbose("PACKAGE", f"Running: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as err:
        raise PackagingError(
            f"IntuneWinAppUtil.exe timed out after {err.timeout}s"
        ) from err
    except OSError as err:
        raise PackagingError(f"IntuneWinAppUtil.exe could not be run: {err}") from err

    for line in (result.stdout or "").strip().splitlines():
        logger.debug("PACKAGE", f"  {line}")

    if result.returncode != 0:
        logger.verbose(
            "PACKAGE", f"IntuneWinAppUtil.exe exited with code {result.returncode}"
        )
        for line in (result.stderr or "").strip().splitlines():
            logger.verbose("PACKAGE", f"  {line}")

    return result.returncode


def create_intunewin(app_folder: Path, config: PipelineConfig) -> Artifact:
    """Create <app_folder>/Output/<name>.intunewin.

    Args:
        app_folder: Package folder holding the scripts and staged installer.
            Used as both the content source and the setup source.
        config: Pipeline configuration (tool path, timeout).

    Returns:
        The created artifact.

    Raises:
        ToolMissingError: If IntuneWinAppUtil.exe is missing. Not retried.
        PackagingError: If the tool failed to run, or ran but the expected
            .intunewin file does not exist afterwards.
    """
    from chocopack.logging import get_global_logger

    logger = get_global_logger()

    tool_path = verify_tool(config)

    if not app_folder.is_dir():
        raise PackagingError(f"Package folder not found: {app_folder}")

    output_dir = app_folder / OUTPUT_DIR
    expected = expected_package_path(app_folder)

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        if expected.exists():
            logger.verbose("PACKAGE", f"Removing previous package: {expected}")
            expected.unlink()
    except OSError as err:
        raise PackagingError(
            f"Cannot prepare output folder {output_dir}: {err}"
        ) from err

    exit_code = _execute_packaging(
        tool_path, app_folder, output_dir, config.packaging_timeout
    )

    if not expected.is_file():
        raise PackagingError(
            f"IntuneWinAppUtil.exe completed (exit code {exit_code}) "
            f"but {expected.name} was not found in {output_dir}"
        )

    logger.verbose("PACKAGE", f"[OK] Package created: {expected}")
    return Artifact(path=expected)
