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

"""Package icon assignment.

Each package folder gets a logo.png. A custom icon is used when the logos
folder holds <name>.png (the raw package name is tried first, then the
sanitized name); otherwise a generic placeholder is downloaded.

Icon assignment is cosmetic. Failures come back as an IconResult with
ok=False instead of an exception, so the pipeline can log them and carry on.
"""

from __future__ import annotations

from pathlib import Path
import shutil

from chocopack.config.loader import PipelineConfig
from chocopack.exceptions import ChocoPackError
from chocopack.results import IconResult

ICON_FILENAME = "logo.png"


def _custom_icon(logos_dir: Path, names: list[str]) -> Path | None:
    for name in names:
        candidate = logos_dir / f"{name}.png"
        if candidate.is_file():
            return candidate
    return None


def assign_icon(
    app_name: str,
    app_folder: Path,
    config: PipelineConfig,
    sanitized_name: str | None = None,
) -> IconResult:
    """Write <app_folder>/logo.png from a custom icon or the fallback URL.

    Args:
        app_name: Package name used to look up a custom icon.
        app_folder: Package folder.
        config: Pipeline configuration (logos folder, fallback URL, retry policy).
        sanitized_name: Also tried when looking up a custom icon.

    Returns:
        IconResult. Never raises for copy or download failures.
    """
    from chocopack.io import download_file
    from chocopack.logging import get_global_logger

    logger = get_global_logger()
    destination = app_folder / ICON_FILENAME

    names = [app_name]
    if sanitized_name and sanitized_name != app_name:
        names.append(sanitized_name)

    custom = _custom_icon(config.logos_dir, names)
    source = "custom" if custom else "fallback"

    try:
        app_folder.mkdir(parents=True, exist_ok=True)
        if custom:
            shutil.copyfile(custom, destination)
            logger.verbose("ICON", f"[OK] Custom icon copied: {custom.name}")
        else:
            logger.verbose(
                "ICON", f"No custom icon in {config.logos_dir}, using fallback"
            )
            download_file(
                config.fallback_icon_url,
                destination,
                attempts=config.download_attempts,
                retry_delay=config.download_retry_delay,
                timeout=config.download_timeout,
            )
            logger.verbose("ICON", "[OK] Fallback icon downloaded")
    except (OSError, ChocoPackError) as err:
        return IconResult(ok=False, path=destination, source=source, error=str(err))

    return IconResult(ok=True, path=destination, source=source)
