"""Artifact downloader.

Streams a resolved artifact to its deterministic download path. An existing
file is a cache hit and causes no network traffic; whether its content can be
trusted is the verifier's decision, not the downloader's.
"""
from __future__ import annotations

import logging

import requests

from .common.fileio import atomic_path, file_digest
from .common.http_client import HttpClient
from .common.logging_utils import Timer, extra_context, is_debug_enabled, safe_url
from .errors import DownloadFailed
from .models import ArtifactStage, Dependency, LocalArtifact, ResolutionResult
from .storage import StorageLayout

logger = logging.getLogger(__name__)


class URLDependencyDownloader:
    def __init__(self, layout: StorageLayout, http: HttpClient):
        self._layout = layout
        self._http = http

    def fetch(self, dependency: Dependency, result: ResolutionResult,
              refresh: bool = False) -> LocalArtifact:
        """Download an artifact unless it is already on disk.

        Args:
            dependency: Declaration (selects the file name and extension).
            result: Resolution result naming the URL to fetch.
            refresh: Ignore an existing file and download again.

        Returns:
            LocalArtifact at the DOWNLOADED stage.

        Raises:
            DownloadFailed: On network or IO errors.
        """
        destination = self._layout.download_path(dependency)
        if destination.exists() and not refresh:
            logger.debug("Download cache hit for %s", dependency.coordinate)
            return self._artifact(dependency, destination)

        logger.info("Downloading %s from %s", dependency.coordinate, safe_url(result.artifact_url))
        try:
            with Timer() as t, atomic_path(destination) as tmp:
                self._http.download(result.artifact_url, tmp)
        except (requests.RequestException, OSError) as exc:
            raise DownloadFailed(
                f"failed to download {dependency.coordinate} from {safe_url(result.artifact_url)}: {exc}",
                dependency.coordinate,
            ) from exc
        if is_debug_enabled(logger):
            logger.debug(
                "Artifact stored",
                extra=extra_context(
                    event="download",
                    component="downloader",
                    outcome="success",
                    duration_ms=t.duration_ms(),
                    target=str(destination),
                ),
            )
        return self._artifact(dependency, destination)

    @staticmethod
    def _artifact(dependency: Dependency, path) -> LocalArtifact:
        try:
            content_hash = file_digest(path)
        except OSError as exc:
            raise DownloadFailed(f"cannot read {path}: {exc}", dependency.coordinate) from exc
        return LocalArtifact(dependency.coordinate, path, content_hash, ArtifactStage.DOWNLOADED)

    def discard(self, artifact: LocalArtifact) -> None:
        """Remove a cached download that failed verification."""
        try:
            artifact.path.unlink()
        except FileNotFoundError:
            pass
