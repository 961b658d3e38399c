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

"""Configuration loading for chocopack.

Pipeline settings (root folders, retry policy, tool locations, fallback
URLs) live in a single immutable PipelineConfig value that is passed to the
orchestrator at construction time. Nothing is read from module-level state,
so tests and parallel callers can use distinct temporary roots.

Configuration Layers
--------------------
1. **Built-in defaults** (PipelineConfig field defaults)
2. **YAML file** (optional), grouped into sections:

       paths:
         apps_root: Apps
         logos_dir: Logos
       chocolatey:
         executable: choco
         lib_dir: C:\\ProgramData\\chocolatey\\lib
         install_attempts: 3
         install_retry_delay: 5
       packaging:
         tool: Tools/IntuneWinAppUtil.exe
         timeout: 300
       icon:
         fallback_url: https://...
       download:
         attempts: 3
         retry_delay: 5
         timeout: 60
       scripts:
         app_path_template: C:\\Program Files\\{name}\\{name}.exe
         uninstaller_name: uninstall.exe
         powershell: powershell.exe
       rollback:
         auto: false
         timeout: 600

3. **Keyword overrides** passed to load_config (PipelineConfig field names)

Merge Behavior
--------------
  - **Dicts**: Recursively merged (keys from overlay override base)
  - **Lists**: Completely replaced (NOT appended/extended)
  - **Scalars**: Overwritten

Path Resolution
---------------
Relative paths in the YAML file (apps_root, logos_dir, packaging tool) are
resolved against the YAML file's directory. Keyword overrides and built-in
defaults are left relative to the working directory.

Examples
--------
    >>> from pathlib import Path
    >>> from chocopack.config import load_config
    >>> cfg = load_config(Path("chocopack.yaml"), install_retry_delay=0)
    >>> cfg.apps_root
    PosixPath('/work/Apps')
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from chocopack.exceptions import ConfigError

INTUNEWIN_TOOL_URL = (
    "https://github.com/microsoft/Microsoft-Win32-Content-Prep-Tool"
    "/raw/master/IntuneWinAppUtil.exe"
)
FALLBACK_ICON_URL = (
    "https://community.chocolatey.org/Content/Images/packageDefaultIcon-50x50.png"
)

# -------------------------------
# Data types
# -------------------------------


@dataclass(frozen=True)
class PipelineConfig:
    """Settings for a pipeline run.

    Attributes:
        apps_root: Root of the per-package folders (<apps_root>/<name>/).
        logos_dir: Folder searched for custom <name>.png icons.
        choco_executable: Chocolatey command.
        choco_lib_dir: Chocolatey lib folder; a package's tool folder is
            <choco_lib_dir>/<name>/tools.
        install_attempts: Maximum package-manager install attempts.
        install_retry_delay: Seconds between install attempts.
        intunewin_tool: Path to IntuneWinAppUtil.exe.
        intunewin_tool_url: Where the tool is fetched from by 'chocopack setup'.
        packaging_timeout: Seconds before IntuneWinAppUtil.exe is abandoned.
        fallback_icon_url: Generic icon used when no custom icon exists.
        download_attempts: Maximum attempts per file download.
        download_retry_delay: Seconds between download attempts.
        download_timeout: Per-request timeout in seconds.
        app_path_template: Installed application path, formatted with
            name=<sanitized name>.
        uninstaller_name: Uninstaller file name next to the application.
        powershell_executable: PowerShell used to run rollback scripts.
        rollback_timeout: Seconds before an uninstall script is abandoned.
        auto_rollback: Run the uninstall script automatically when a run fails
            after scripts were written.
    """

    apps_root: Path = Path("Apps")
    logos_dir: Path = Path("Logos")
    choco_executable: str = "choco"
    choco_lib_dir: Path = Path("C:/ProgramData/chocolatey/lib")
    install_attempts: int = 3
    install_retry_delay: float = 5
    intunewin_tool: Path = Path("Tools/IntuneWinAppUtil.exe")
    intunewin_tool_url: str = INTUNEWIN_TOOL_URL
    packaging_timeout: int = 300
    fallback_icon_url: str = FALLBACK_ICON_URL
    download_attempts: int = 3
    download_retry_delay: float = 5
    download_timeout: int = 60
    app_path_template: str = "C:\\Program Files\\{name}\\{name}.exe"
    uninstaller_name: str = "uninstall.exe"
    powershell_executable: str = "powershell.exe"
    rollback_timeout: int = 600
    auto_rollback: bool = False

    def app_folder(self, sanitized_name: str) -> Path:
        """Return <apps_root>/<sanitized_name>."""
        return self.apps_root / sanitized_name

    def tools_folder(self, raw_name: str) -> Path:
        """Return the Chocolatey tool folder for a package."""
        return self.choco_lib_dir / raw_name / "tools"

    def default_app_path(self, sanitized_name: str) -> str:
        """Return the installed application path for a package."""
        return self.app_path_template.format(name=sanitized_name)


# (section, key) in YAML -> PipelineConfig field
_YAML_KEYS: dict[tuple[str, str], str] = {
    ("paths", "apps_root"): "apps_root",
    ("paths", "logos_dir"): "logos_dir",
    ("chocolatey", "executable"): "choco_executable",
    ("chocolatey", "lib_dir"): "choco_lib_dir",
    ("chocolatey", "install_attempts"): "install_attempts",
    ("chocolatey", "install_retry_delay"): "install_retry_delay",
    ("packaging", "tool"): "intunewin_tool",
    ("packaging", "tool_url"): "intunewin_tool_url",
    ("packaging", "timeout"): "packaging_timeout",
    ("icon", "fallback_url"): "fallback_icon_url",
    ("download", "attempts"): "download_attempts",
    ("download", "retry_delay"): "download_retry_delay",
    ("download", "timeout"): "download_timeout",
    ("scripts", "app_path_template"): "app_path_template",
    ("scripts", "uninstaller_name"): "uninstaller_name",
    ("scripts", "powershell"): "powershell_executable",
    ("rollback", "auto"): "auto_rollback",
    ("rollback", "timeout"): "rollback_timeout",
}

# Relative values for these are resolved against the YAML file's directory
_RELATIVE_PATH_FIELDS = ("apps_root", "logos_dir", "intunewin_tool")

_PATH_FIELDS = ("apps_root", "logos_dir", "choco_lib_dir", "intunewin_tool")
_INT_FIELDS = (
    "install_attempts",
    "packaging_timeout",
    "download_attempts",
    "download_timeout",
    "rollback_timeout",
)
_DELAY_FIELDS = ("install_retry_delay", "download_retry_delay")
_STR_FIELDS = (
    "choco_executable",
    "intunewin_tool_url",
    "fallback_icon_url",
    "app_path_template",
    "uninstaller_name",
    "powershell_executable",
)

# -------------------------------
# YAML helpers
# -------------------------------


def _load_yaml_file(p: Path) -> Any:
    """Loads a YAML file and returns the parsed Python object.

    Raises:
        ConfigError: When the file is missing, empty, or not valid YAML.
    """
    if not p.exists():
        raise ConfigError(f"file not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f"Error parsing YAML: {p}: {err}") from err
    if data is None:
        raise ConfigError(f"YAML file is empty: {p}")
    return data


# -------------------------------
# Merge logic
# -------------------------------


def _deep_merge_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep-merges two dicts with "overlay wins" semantics.

    This function does not mutate inputs; returns a new dict.
    """
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge_dicts(result[k], v)
        else:
            # Replace lists and scalars entirely
            result[k] = v
    return result


def _defaults_as_sections() -> dict[str, dict[str, Any]]:
    """Render PipelineConfig defaults in the YAML section layout."""
    defaults = PipelineConfig()
    sections: dict[str, dict[str, Any]] = {}
    for (section, key), field_name in _YAML_KEYS.items():
        sections.setdefault(section, {})[key] = getattr(defaults, field_name)
    return sections


def _flatten(sections: dict[str, Any], source: Path) -> dict[str, Any]:
    """Map a sectioned config mapping onto PipelineConfig field names."""
    values: dict[str, Any] = {}
    for section, body in sections.items():
        if not isinstance(body, dict):
            raise ConfigError(f"{source}: section {section!r} must be a mapping")
        for key, value in body.items():
            field_name = _YAML_KEYS.get((section, key))
            if field_name is None:
                raise ConfigError(f"{source}: unknown setting {section}.{key}")
            values[field_name] = value
    return values


# -------------------------------
# Validation
# -------------------------------


def _coerce(values: dict[str, Any]) -> dict[str, Any]:
    """Type-check and normalize field values.

    Raises:
        ConfigError: If a value has the wrong type or is out of range.
    """
    out = dict(values)
    for name in _PATH_FIELDS:
        if name in out:
            if not isinstance(out[name], (str, Path)) or str(out[name]) == "":
                raise ConfigError(f"{name} must be a non-empty path")
            out[name] = Path(out[name])
    for name in _INT_FIELDS:
        if name in out:
            value = out[name]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
    for name in _DELAY_FIELDS:
        if name in out:
            value = out[name]
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or value < 0
            ):
                raise ConfigError(
                    f"{name} must be a non-negative number, got {value!r}"
                )
    for name in _STR_FIELDS:
        if name in out and (not isinstance(out[name], str) or not out[name]):
            raise ConfigError(f"{name} must be a non-empty string")
    if "auto_rollback" in out and not isinstance(out["auto_rollback"], bool):
        raise ConfigError("auto_rollback must be true or false")
    if "app_path_template" in out:
        try:
            out["app_path_template"].format(name="x")
        except (KeyError, IndexError, ValueError) as err:
            raise ConfigError(
                f"app_path_template may only use the {{name}} placeholder: {err}"
            ) from err
    return out


# -------------------------------
# Public API
# -------------------------------


def load_config(path: Path | None = None, **overrides: Any) -> PipelineConfig:
    """Load pipeline configuration.

    Args:
        path: Optional YAML file. Missing sections and keys keep their defaults.
        **overrides: PipelineConfig field values applied last.

    Returns:
        The effective, validated configuration.

    Raises:
        ConfigError: If the file cannot be read or parsed, contains unknown
            settings, or any value is invalid.

    Example:
        ```python
        cfg = load_config(apps_root=tmp_path / "Apps", install_retry_delay=0)
        ```
    """
    from chocopack.logging import get_global_logger

    logger = get_global_logger()
    known = {f.name for f in fields(PipelineConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ConfigError(f"unknown setting(s): {', '.join(unknown)}")

    sections = _defaults_as_sections()
    file_values: dict[str, Any] = {}

    if path is not None:
        path = Path(path).resolve()
        logger.verbose("CONFIG", f"Loading configuration: {path}")
        data = _load_yaml_file(path)
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top level must be a mapping")
        file_values = _flatten(data, path)
        sections = _deep_merge_dicts(sections, data)

    values = _flatten(sections, path or Path("<defaults>"))
    for name in _RELATIVE_PATH_FIELDS:
        value = file_values.get(name)
        if isinstance(value, str) and value and not Path(value).is_absolute():
            values[name] = path.parent / value

    values.update(overrides)
    values = _coerce(values)
    config = replace(PipelineConfig(), **values)
    logger.debug("CONFIG", f"Effective configuration: {config}")
    return config
