"""Tests for the requests-backed HTTP client."""

from unittest.mock import MagicMock

import pytest
import requests

from depinject.common.http_client import HttpClient
from depinject.common.logging_utils import extra_context, safe_url


def _response(status=200, text="", chunks=()):
    response = MagicMock()
    response.status_code = status
    response.text = text
    response.iter_content.return_value = list(chunks)
    response.__enter__.return_value = response
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status}")
    return response


def _client(session):
    return HttpClient(probe_timeout=1, fetch_timeout=2, user_agent="test-agent", session=session)


class TestPing:
    """Test liveness probes."""

    def test_success(self):
        """Test a 2xx HEAD is reachable."""
        session = MagicMock()
        session.headers = {}
        session.head.return_value = _response(200)

        assert _client(session).ping("https://r/a.zip") is True
        session.head.assert_called_once_with("https://r/a.zip", timeout=1, allow_redirects=True)
        assert session.headers["User-Agent"] == "test-agent"

    def test_not_found(self):
        """Test a 404 is unreachable."""
        session = MagicMock()
        session.head.return_value = _response(404)

        assert _client(session).ping("https://r/a.zip") is False

    def test_head_not_allowed_falls_back_to_get(self):
        """Test servers refusing HEAD are probed with a streamed GET."""
        session = MagicMock()
        session.head.return_value = _response(405)
        session.get.return_value = _response(200)

        assert _client(session).ping("https://r/a.zip") is True
        session.get.assert_called_once_with("https://r/a.zip", timeout=1, stream=True)

    def test_connection_error(self):
        """Test network errors are unreachable, not raised."""
        session = MagicMock()
        session.head.side_effect = requests.ConnectionError("down")

        assert _client(session).ping("https://r/a.zip") is False


class TestGetText:
    """Test small document fetches."""

    def test_ok(self):
        """Test a 200 returns the body."""
        session = MagicMock()
        session.get.return_value = _response(200, text="abc")

        assert _client(session).get_text("https://r/a.sha1") == "abc"

    @pytest.mark.parametrize("side_effect, response", [
        (None, _response(404)),
        (requests.Timeout("slow"), None),
    ])
    def test_unavailable(self, side_effect, response):
        """Test non-200 and errors return None."""
        session = MagicMock()
        session.get.return_value = response
        session.get.side_effect = side_effect

        assert _client(session).get_text("https://r/a.sha1") is None


class TestDownload:
    """Test streaming downloads."""

    def test_writes_chunks(self, tmp_path):
        """Test the body is streamed to the destination."""
        session = MagicMock()
        session.get.return_value = _response(200, chunks=[b"ab", b"", b"cd"])
        destination = tmp_path / "a.zip"

        _client(session).download("https://r/a.zip", destination)

        assert destination.read_bytes() == b"abcd"
        session.get.assert_called_once_with("https://r/a.zip", timeout=2, stream=True)

    def test_http_error_propagates(self, tmp_path):
        """Test non-2xx statuses raise."""
        session = MagicMock()
        session.get.return_value = _response(500)

        with pytest.raises(requests.HTTPError):
            _client(session).download("https://r/a.zip", tmp_path / "a.zip")


class TestLoggingHelpers:
    """Test the logging helpers used by the client."""

    def test_safe_url_strips_credentials_and_query(self):
        """Test secrets never reach the logs."""
        assert safe_url("https://user:pw@r.example:8443/p/a.zip?token=x") == "https://r.example:8443/p/a.zip"

    def test_extra_context_drops_none(self):
        """Test None values are omitted."""
        assert extra_context(event="x", target=None) == {"event": "x"}
