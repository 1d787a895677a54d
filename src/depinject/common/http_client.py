"""Shared HTTP helpers used by the enquirer, verifier and downloader.

Encapsulates common request/timeout handling so components avoid duplicating
try/except blocks. Probes and small text fetches treat network failures as
"not available"; only :meth:`HttpClient.download` lets them propagate, because
a failed fetch of a chosen artifact is an error the caller must report.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import requests

from ..constants import Constants
from .logging_utils import Timer, extra_context, is_debug_enabled, safe_url

logger = logging.getLogger(__name__)


class HttpClient:
    """Thin requests wrapper with per-operation timeouts and DEBUG traces."""

    def __init__(
        self,
        probe_timeout: float = Constants.PROBE_TIMEOUT,
        fetch_timeout: float = Constants.FETCH_TIMEOUT,
        user_agent: str = Constants.USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            probe_timeout: Timeout in seconds for HEAD probes and small GETs.
            fetch_timeout: Timeout in seconds for artifact downloads.
            user_agent: User-Agent header sent with every request.
            session: Optional pre-built session (tests, connection pooling).
        """
        self.probe_timeout = probe_timeout
        self.fetch_timeout = fetch_timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", user_agent)

    def ping(self, url: str) -> bool:
        """Lightweight existence check.

        Args:
            url: Candidate URL.

        Returns:
            True if the server answered 2xx, False on any other status,
            timeout or connection error.
        """
        target = safe_url(url)
        with Timer() as t:
            try:
                res = self._session.head(url, timeout=self.probe_timeout, allow_redirects=True)
                if res.status_code == 405:
                    # Some servers refuse HEAD; a streamed GET that is never read is the fallback.
                    res = self._session.get(url, timeout=self.probe_timeout, stream=True)
                    res.close()
            except requests.RequestException as exc:
                logger.debug(
                    "Probe failed: %s",
                    exc,
                    extra=extra_context(
                        event="http_exception",
                        component="http_client",
                        action="HEAD",
                        outcome="unreachable",
                        target=target,
                    ),
                )
                return False
        if is_debug_enabled(logger):
            logger.debug(
                "Probe response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="HEAD",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=target,
                ),
            )
        return 200 <= res.status_code < 300

    def get_text(self, url: str) -> Optional[str]:
        """Fetch a small text document (checksum file, POM, metadata).

        Args:
            url: Document URL.

        Returns:
            Body text on HTTP 200, otherwise None.
        """
        target = safe_url(url)
        try:
            res = self._session.get(url, timeout=self.probe_timeout)
        except requests.RequestException as exc:
            logger.debug(
                "GET failed: %s",
                exc,
                extra=extra_context(
                    event="http_exception",
                    component="http_client",
                    action="GET",
                    outcome="request_exception",
                    target=target,
                ),
            )
            return None
        if res.status_code != 200:
            if is_debug_enabled(logger):
                logger.debug(
                    "GET returned non-200",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        status_code=res.status_code,
                        target=target,
                    ),
                )
            return None
        return res.text

    def download(self, url: str, destination: Path) -> None:
        """Stream a URL into ``destination``.

        Args:
            url: Artifact URL.
            destination: File to write; parent must exist.

        Raises:
            requests.RequestException: On connection errors, timeouts or
                non-2xx status codes.
            OSError: If the destination cannot be written.
        """
        target = safe_url(url)
        with Timer() as t:
            with self._session.get(url, timeout=self.fetch_timeout, stream=True) as res:
                res.raise_for_status()
                with open(destination, "wb") as fh:
                    for chunk in res.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
        if is_debug_enabled(logger):
            logger.debug(
                "Download complete",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success",
                    duration_ms=t.duration_ms(),
                    target=target,
                ),
            )

    def close(self) -> None:
        self._session.close()
