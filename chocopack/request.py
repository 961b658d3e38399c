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

"""Package names and their filesystem-safe keys.

A package is requested by its raw package-manager identifier (e.g.
"googlechrome" or a display name picked in a search front end). Everything
the pipeline writes to disk is keyed by the sanitized form of that name.

Sanitization Rules:
    - Remove every character that is not a word character (A-Z, a-z, 0-9,
      underscore), whitespace, or a hyphen
    - Collapse each run of whitespace into a single underscore

The rules are ASCII-only so the result never contains characters outside
[A-Za-z0-9_-], and applying them twice gives the same result as once.

Example:
    ```python
    from chocopack.request import PackageRequest, sanitize_name

    sanitize_name("My App!")          # "My_App"
    PackageRequest.from_raw("Google Chrome").sanitized_name  # "Google_Chrome"
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
import re

_DISALLOWED = re.compile(r"[^\w\s-]", re.ASCII)
_WHITESPACE_RUN = re.compile(r"\s+", re.ASCII)


def sanitize_name(raw_name: str) -> str:
    """Derive the filesystem-safe key for a package name.

    Args:
        raw_name: Package name as supplied by the caller.

    Returns:
        The sanitized name. May be empty if raw_name has no usable characters.

    Example:
        ```python
        sanitize_name("My App!")        # "My_App"
        sanitize_name("Notepad++  8")   # "Notepad_8"
        ```
    """
    stripped = _DISALLOWED.sub("", raw_name)
    return _WHITESPACE_RUN.sub("_", stripped)


@dataclass(frozen=True)
class PackageRequest:
    """A package to run through the pipeline.

    Attributes:
        raw_name: Name passed to the package manager.
        sanitized_name: Folder and file key derived from raw_name.
    """

    raw_name: str
    sanitized_name: str

    @classmethod
    def from_raw(cls, raw_name: str) -> PackageRequest:
        """Build a request, deriving sanitized_name from raw_name.

        Raises:
            ValueError: If the name is blank or sanitizes to an empty string.
        """
        if not raw_name or not raw_name.strip():
            raise ValueError("Package name must not be empty")
        sanitized = sanitize_name(raw_name)
        if not sanitized.strip("_"):
            raise ValueError(
                f"Package name {raw_name!r} has no filesystem-safe characters"
            )
        return cls(raw_name=raw_name, sanitized_name=sanitized)
