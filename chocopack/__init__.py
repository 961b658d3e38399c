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

"""chocopack - Chocolatey to Intune packaging

A Python-based CLI tool that turns Chocolatey packages into Win32 app
packages (.intunewin) for Microsoft Intune.

For each package chocopack:

- Installs it with Chocolatey (with a fixed retry policy)
- Finds its installer in the package's tool folder
- Writes Install.ps1, Uninstall.ps1, and Detection.ps1
- Runs IntuneWinAppUtil.exe to build <name>.intunewin
- Attaches a display icon (custom or generic)

Quick Start:
Fetch IntuneWinAppUtil.exe:

    $ chocopack setup

Package one or more Chocolatey packages:

    $ chocopack package 7zip notepadplusplus

Roll back a package using its generated uninstall script:

    $ chocopack rollback 7zip

For full CLI documentation:

    $ chocopack --help
"""

__version__ = "0.1.0"
__author__ = "Roger Cibrian"
__license__ = "Apache-2.0"
__description__ = "Chocolatey to Intune packaging"

# Re-export commonly used functions for convenience
from chocopack.config import PipelineConfig, load_config
from chocopack.core import DeploymentOrchestrator
from chocopack.exceptions import (
    ChocoPackError,
    ConfigError,
    ExternalToolError,
    InstallerMissingError,
    NetworkError,
    NotFoundError,
    PackagingError,
    ScriptWriteError,
    ToolMissingError,
)
from chocopack.request import PackageRequest, sanitize_name
from chocopack.results import (
    Artifact,
    DeploymentScriptSet,
    FailureReason,
    IconResult,
    InstallerDescriptor,
    PipelineResult,
    PipelineState,
    RollbackResult,
)

__all__ = [
    "__version__",
    "__author__",
    "__license__",
    "__description__",
    "Artifact",
    "ChocoPackError",
    "ConfigError",
    "DeploymentOrchestrator",
    "DeploymentScriptSet",
    "ExternalToolError",
    "FailureReason",
    "IconResult",
    "InstallerDescriptor",
    "InstallerMissingError",
    "NetworkError",
    "NotFoundError",
    "PackageRequest",
    "PackagingError",
    "PipelineConfig",
    "PipelineResult",
    "PipelineState",
    "RollbackResult",
    "ScriptWriteError",
    "ToolMissingError",
    "load_config",
    "sanitize_name",
]
