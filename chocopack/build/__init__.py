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

"""Package building for chocopack.

The stages that turn an installed Chocolatey package into an Intune
deployable: find the installer, write the deployment scripts, run
IntuneWinAppUtil.exe, and attach an icon.

Example:
    from pathlib import Path
    from chocopack.build import (
        assign_icon,
        create_intunewin,
        resolve_installer,
        synthesize_scripts,
    )

    installer = resolve_installer(Path("C:/ProgramData/chocolatey/lib/7zip/tools"))
    scripts = synthesize_scripts("7zip", installer.path, Path("Apps/7zip"))
    artifact = create_intunewin(Path("Apps/7zip"), config)
"""

from .icon import assign_icon
from .packager import create_intunewin, fetch_intunewin_tool, verify_tool
from .resolver import resolve_installer
from .scripts import stage_installer, synthesize_scripts

__all__ = [
    "assign_icon",
    "create_intunewin",
    "fetch_intunewin_tool",
    "resolve_installer",
    "stage_installer",
    "synthesize_scripts",
    "verify_tool",
]
