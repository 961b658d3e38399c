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

"""HTTP(S) file download for chocopack.

Used for the fallback package icon and for fetching IntuneWinAppUtil.exe
during setup.

Key Features:

- **Fixed Retry Policy** - Connection errors, read errors, and HTTP 429/5xx
  responses are retried by the session's urllib3 Retry a fixed number of
  times with the same delay before every retry (no exponential backoff).
  Other HTTP errors fail immediately.
- **Atomic Writes** - Downloads to a temporary .part file and renames it onto
  the destination on success, so a failed download never leaves a truncated
  file behind (an existing destination is only replaced on success).
- **Stream Hashing** - SHA-256 is computed while the file is written.

Example:
    >>> from pathlib import Path
    >>> from chocopack.io import download_file
    >>> path, sha256 = download_file(
    ...     "https://example.com/logo.png",
    ...     Path("Apps/7zip/logo.png"),
    ...     attempts=3,
    ...     retry_delay=5,
    ... )
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from chocopack import __version__
from chocopack.exceptions import NetworkError

# Stream size per chunk (1 MiB)
DEFAULT_CHUNK = 1024 * 1024

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class FixedDelayRetry(Retry):
    """urllib3 Retry that waits the same number of seconds before every retry.

    A Retry-After header on 429/503 responses still takes precedence, as with
    the stock Retry.
    """

    def __init__(self, *args, fixed_delay: float = 0, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fixed_delay = fixed_delay

    def new(self, **kw) -> FixedDelayRetry:
        # Retry.new() rebuilds the object from its own parameter list
        retry = super().new(**kw)
        retry.fixed_delay = self.fixed_delay
        return retry

    def get_backoff_time(self) -> float:
        return self.fixed_delay


def retry_policy(attempts: int, retry_delay: float) -> FixedDelayRetry:
    """Build the retry policy for at most ``attempts`` requests.

    Example:
        >>> retry_policy(3, 5).total
        2
    """
    return FixedDelayRetry(
        total=max(1, attempts) - 1,
        status_forcelist=RETRY_STATUS_CODES,
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
        fixed_delay=retry_delay,
    )


def make_session(retries: Retry | None = None) -> requests.Session:
    """Create a requests.Session with chocopack's headers and retry policy.

    We force 'Accept-Encoding: identity' so binaries (icons, the packaging
    tool) arrive byte-for-byte as served.
    """
    s = requests.Session()
    if retries is None:
        retries = retry_policy(attempts=3, retry_delay=5)
    s.headers.update(
        {
            "User-Agent": f"chocopack/{__version__}",
            "Accept-Encoding": "identity",
        }
    )
    s.mount("http://", HTTPAdapter(max_retries=retries))
    s.mount("https://", HTTPAdapter(max_retries=retries))
    return s


def download_file(
    url: str,
    destination: Path,
    *,
    attempts: int = 3,
    retry_delay: float = 5,
    timeout: int = 60,
) -> tuple[Path, str]:
    """Download a URL to an exact destination path, retrying transient failures.

    Args:
        url: Source URL.
        destination: File to write (parent folders are created).
        attempts: Maximum number of requests (at least 1).
        retry_delay: Seconds to wait before each retry.
        timeout: Per-request timeout in seconds.

    Returns:
        A tuple (file_path, sha256_hex).

    Raises:
        NetworkError: If the download still fails after all attempts, or
            fails with a non-retryable HTTP error.
        OSError: If the destination cannot be written.
    """
    from chocopack.logging import get_global_logger

    logger = get_global_logger()
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp = destination.with_name(destination.name + ".part")

    logger.verbose("HTTP", f"GET {url} (up to {max(1, attempts)} attempt(s))")
    with make_session(retry_policy(attempts, retry_delay)) as session:
        try:
            resp = session.get(
                url, stream=True, allow_redirects=True, timeout=timeout
            )
        except requests.RequestException as err:
            raise NetworkError(f"download failed for {url}: {err}") from err

        try:
            try:
                resp.raise_for_status()
            except requests.HTTPError as err:
                raise NetworkError(f"download failed for {url}: {err}") from err

            sha = hashlib.sha256()
            try:
                with tmp.open("wb") as f:
                    for chunk in resp.iter_content(chunk_size=DEFAULT_CHUNK):
                        if not chunk:
                            continue
                        f.write(chunk)
                        sha.update(chunk)
                # Atomically "commit" the file.
                tmp.replace(destination)
            except requests.RequestException as err:
                raise NetworkError(f"download failed for {url}: {err}") from err
            finally:
                if tmp.exists():
                    tmp.unlink()
        finally:
            resp.close()

    digest = sha.hexdigest()
    logger.verbose("FILE", f"Download complete: {destination} ({digest})")
    return destination, digest
