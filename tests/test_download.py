"""
Tests for chocopack.io.download module.

Tests HTTP download functionality including:
- Successful downloads and hashing
- The fixed-delay urllib3 retry policy mounted on the session
- Failure mapping to NetworkError
- Atomic writes (no partial files)
"""

from __future__ import annotations

import hashlib
from unittest.mock import patch

import pytest
import requests
import requests_mock
from urllib3.exceptions import MaxRetryError
from urllib3.response import HTTPResponse

from chocopack.exceptions import NetworkError
from chocopack.io.download import (
    FixedDelayRetry,
    download_file,
    make_session,
    retry_policy,
)

# All tests in this file are unit tests (fast, mocked)
pytestmark = pytest.mark.unit

URL = "https://example.com/logo.png"


class TestDownloadFile:
    """Tests for download_file."""

    def test_download_success(self, tmp_test_dir):
        """Test that the content is written to the exact destination."""
        content = b"png bytes"
        destination = tmp_test_dir / "Apps" / "7zip" / "logo.png"

        with requests_mock.Mocker() as m:
            m.get(URL, content=content)
            path, digest = download_file(URL, destination)

        assert path == destination
        assert destination.read_bytes() == content
        assert digest == hashlib.sha256(content).hexdigest()

    def test_sends_user_agent(self, tmp_test_dir):
        """Test that requests identify chocopack."""
        with requests_mock.Mocker() as m:
            m.get(URL, content=b"x")
            download_file(URL, tmp_test_dir / "logo.png")

        assert m.last_request.headers["User-Agent"].startswith("chocopack/")

    def test_session_uses_requested_policy(self, tmp_test_dir):
        """Test that attempts and delay reach the session's retry policy."""
        with patch(
            "chocopack.io.download.make_session", wraps=make_session
        ) as mock_session:
            with requests_mock.Mocker() as m:
                m.get(URL, content=b"x")
                download_file(
                    URL, tmp_test_dir / "logo.png", attempts=4, retry_delay=2
                )

        retries = mock_session.call_args[0][0]
        assert retries.total == 3
        assert retries.get_backoff_time() == 2

    def test_server_error_after_retries(self, tmp_test_dir):
        """Test that a final 5xx response becomes NetworkError."""
        destination = tmp_test_dir / "logo.png"

        with requests_mock.Mocker() as m:
            m.get(URL, status_code=503)
            with pytest.raises(NetworkError, match="503"):
                download_file(URL, destination, attempts=1)

        assert not destination.exists()

    def test_connection_error(self, tmp_test_dir):
        """Test that connection errors become NetworkError."""
        with requests_mock.Mocker() as m:
            m.get(URL, exc=requests.exceptions.ConnectionError("refused"))
            with pytest.raises(NetworkError, match="download failed"):
                download_file(URL, tmp_test_dir / "logo.png")

    def test_client_error(self, tmp_test_dir):
        """Test that a 404 fails with NetworkError."""
        with requests_mock.Mocker() as m:
            m.get(URL, status_code=404)
            with pytest.raises(NetworkError, match="404"):
                download_file(URL, tmp_test_dir / "logo.png", attempts=3)

        assert m.call_count == 1

    def test_failure_keeps_existing_file(self, tmp_test_dir):
        """Test that a failed download leaves the previous file untouched."""
        destination = tmp_test_dir / "logo.png"
        destination.write_bytes(b"previous")

        with requests_mock.Mocker() as m:
            m.get(URL, status_code=404)
            with pytest.raises(NetworkError):
                download_file(URL, destination, attempts=1)

        assert destination.read_bytes() == b"previous"
        assert not (tmp_test_dir / "logo.png.part").exists()


class TestRetryPolicy:
    """Tests for the fixed-delay retry policy."""

    def test_attempts_map_to_total_retries(self):
        """Test that N attempts means N - 1 retries."""
        assert retry_policy(3, 5).total == 2
        assert retry_policy(1, 5).total == 0
        assert retry_policy(0, 5).total == 0

    def test_retried_status_codes(self):
        """Test which responses are retried."""
        retry = retry_policy(3, 5)

        assert retry.is_retry("GET", 503)
        assert retry.is_retry("GET", 429)
        assert not retry.is_retry("GET", 404)

    def test_delay_does_not_grow(self):
        """Test that the delay stays fixed across retries."""
        retry = retry_policy(4, 5)
        response = HTTPResponse(status=503)

        retry = retry.increment(method="GET", url="/logo.png", response=response)
        retry = retry.increment(method="GET", url="/logo.png", response=response)

        assert isinstance(retry, FixedDelayRetry)
        assert retry.get_backoff_time() == 5

    def test_sleeps_fixed_delay(self):
        """Test that sleeping between retries waits the configured delay."""
        retry = retry_policy(3, 2).increment(method="GET", url="/logo.png")

        with patch("urllib3.util.retry.time.sleep") as mock_sleep:
            retry.sleep()

        mock_sleep.assert_called_once_with(2)

    def test_exhausted(self):
        """Test that retries stop after the configured attempts."""
        retry = retry_policy(2, 0)
        retry = retry.increment(method="GET", url="/logo.png")

        with pytest.raises(MaxRetryError):
            retry.increment(method="GET", url="/logo.png")


def test_make_session_headers_and_adapters():
    """Test the default session headers and mounted retry policy."""
    session = make_session(retry_policy(3, 1))

    assert session.headers["Accept-Encoding"] == "identity"
    assert "chocopack" in session.headers["User-Agent"]
    adapter = session.get_adapter("https://example.com")
    assert isinstance(adapter.max_retries, FixedDelayRetry)
    assert adapter.max_retries.total == 2
