"""Artifact verification.

Expected checksums come from, in order: the dependency's declared checksum,
a checksum persisted by an earlier run, the repository's checksum file. When
none exists the computed checksum is persisted (trust on first use) and the
fallback verifier decides whether the unverified artifact is accepted.
"""
from __future__ import annotations

import logging
import string
from pathlib import Path
from typing import Optional, Protocol, Tuple

from .common.fileio import file_digest, write_text_atomic
from .common.http_client import HttpClient
from .common.logging_utils import safe_url
from .constants import ChecksumAlgorithms, Constants
from .errors import VerificationFailed
from .models import ArtifactStage, Dependency, LocalArtifact, ResolutionResult
from .storage import StorageLayout

logger = logging.getLogger(__name__)


class FallbackVerifier(Protocol):
    def verify(self, artifact: LocalArtifact, dependency: Dependency) -> LocalArtifact: ...


class PassthroughVerifier:
    """Accepts artifacts no checksum could be obtained for, loudly."""

    def verify(self, artifact: LocalArtifact, dependency: Dependency) -> LocalArtifact:
        logger.warning(
            "No checksum available for %s; accepting it unverified", dependency.coordinate
        )
        return artifact.at_stage(ArtifactStage.VERIFIED)


class RejectingVerifier:
    """Refuses artifacts no checksum could be obtained for."""

    def verify(self, artifact: LocalArtifact, dependency: Dependency) -> LocalArtifact:
        raise VerificationFailed(
            f"no checksum available for {dependency.coordinate} and unverified artifacts are rejected",
            dependency.coordinate,
        )


def parse_checksum(text: str, default_algorithm: Optional[str] = None) -> Tuple[str, str]:
    """Split a checksum into (algorithm, lowercase hex).

    Accepts ``"sha256:<hex>"``, bare hex (algorithm inferred from its length
    unless ``default_algorithm`` is given) and checksum files of the form
    ``"<hex>  file-name"``.

    Raises:
        ValueError: If the text is not a recognisable checksum.
    """
    token = text.strip().split()[0] if text.strip() else ""
    algorithm = default_algorithm
    if ":" in token:
        prefix, token = token.split(":", 1)
        algorithm = prefix.lower().replace("-", "")
    if not token or any(ch not in string.hexdigits for ch in token):
        raise ValueError(f"not a hex checksum: {text!r}")
    if algorithm is None:
        algorithm = Constants.CHECKSUM_LENGTHS.get(len(token))
        if algorithm is None:
            raise ValueError(f"cannot infer checksum algorithm from length {len(token)}")
    return ChecksumAlgorithms(algorithm).value, token.lower()


class ChecksumVerifier:
    def __init__(
        self,
        layout: StorageLayout,
        http: HttpClient,
        fallback: FallbackVerifier,
        algorithm: str = Constants.DEFAULT_CHECKSUM_ALGORITHM,
    ):
        self._layout = layout
        self._http = http
        self._fallback = fallback
        self.algorithm = ChecksumAlgorithms(algorithm).value

    def verify(self, artifact: LocalArtifact, dependency: Dependency,
               result: Optional[ResolutionResult] = None) -> LocalArtifact:
        """Verify an artifact against the best available checksum.

        Args:
            artifact: Downloaded artifact; never modified.
            dependency: Declaration, possibly carrying a checksum.
            result: Resolution result, possibly naming a checksum URL.

        Returns:
            The artifact at the VERIFIED stage.

        Raises:
            VerificationFailed: On mismatch, or when nothing is obtainable and
                the fallback rejects unverified artifacts.
        """
        if dependency.checksum:
            try:
                algorithm, expected = parse_checksum(dependency.checksum)
            except ValueError as exc:
                raise VerificationFailed(
                    f"declared checksum of {dependency.coordinate} is invalid: {exc}",
                    dependency.coordinate,
                ) from exc
            return self._compare(artifact, algorithm, expected, "declared")

        stored = self._layout.checksum_path(dependency, self.algorithm)
        expected = self._read_stored(stored)
        if expected is not None:
            return self._compare(artifact, self.algorithm, expected, "stored")

        if result is not None and result.checksum_url:
            expected = self._fetch_remote(result.checksum_url)
            if expected is not None:
                write_text_atomic(stored, expected)
                return self._compare(artifact, self.algorithm, expected, "repository")

        # Record first-use checksums only for artifacts the fallback accepted.
        accepted = self._fallback.verify(artifact, dependency)
        write_text_atomic(stored, file_digest(artifact.path, self.algorithm))
        logger.info("Recorded first-use %s checksum for %s", self.algorithm, dependency.coordinate)
        return accepted

    def _read_stored(self, path: Path) -> Optional[str]:
        if not path.exists():
            return None
        try:
            return parse_checksum(path.read_text(encoding="utf-8"), self.algorithm)[1]
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable checksum file %s: %s", path, exc)
            return None

    def _fetch_remote(self, url: str) -> Optional[str]:
        text = self._http.get_text(url)
        if text is None:
            return None
        try:
            return parse_checksum(text, self.algorithm)[1]
        except ValueError as exc:
            logger.warning("Ignoring malformed checksum at %s: %s", safe_url(url), exc)
            return None

    @staticmethod
    def _compare(artifact: LocalArtifact, algorithm: str, expected: str, source: str) -> LocalArtifact:
        actual = file_digest(artifact.path, algorithm)
        if actual.lower() != expected.lower():
            raise VerificationFailed(
                f"{algorithm} mismatch for {artifact.coordinate} ({source} checksum): "
                f"expected {expected}, got {actual}",
                artifact.coordinate,
            )
        logger.debug("Verified %s against %s %s checksum", artifact.coordinate, source, algorithm)
        return artifact.at_stage(ArtifactStage.VERIFIED)
