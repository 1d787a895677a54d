"""Repository enquirer: find a reachable artifact URL for one dependency."""
from __future__ import annotations

import logging
from typing import Optional

from ..common.http_client import HttpClient
from ..common.logging_utils import extra_context, is_debug_enabled, safe_url
from ..models import Dependency, ResolutionResult
from .mirrors import MirrorSelector
from .strategy import ChecksumPathStrategy, PathResolutionStrategy

logger = logging.getLogger(__name__)


class PingingRepositoryEnquirer:
    """Probes repositories, mirrors and path candidates in preference order.

    Order is declared repository order, then mirror order, then the order the
    path strategy yields (release before snapshot). The first candidate that
    answers a HEAD probe wins and nothing after it is contacted.
    """

    def __init__(
        self,
        path_strategy: PathResolutionStrategy,
        checksum_strategy: ChecksumPathStrategy,
        http: HttpClient,
        mirror_selector: MirrorSelector,
    ):
        self._path_strategy = path_strategy
        self._checksum_strategy = checksum_strategy
        self._http = http
        self._mirror_selector = mirror_selector

    def locate(self, dependency: Dependency) -> Optional[ResolutionResult]:
        """Locate an artifact.

        Args:
            dependency: Dependency carrying its candidate repositories.

        Returns:
            ResolutionResult for the first reachable candidate, or None when
            every repository and mirror has been exhausted.
        """
        coordinate = dependency.coordinate
        for repository in dependency.repositories:
            for base_url in self._mirror_selector.select(repository):
                for artifact_url in self._path_strategy.resolve(base_url, dependency):
                    if not self._http.ping(artifact_url):
                        if is_debug_enabled(logger):
                            logger.debug(
                                "Candidate unreachable",
                                extra=extra_context(
                                    event="probe",
                                    component="enquirer",
                                    outcome="unreachable",
                                    target=safe_url(artifact_url),
                                    coordinate=str(coordinate),
                                ),
                            )
                        continue
                    checksum_url = self._checksum_strategy.checksum_url(artifact_url)
                    if not self._http.ping(checksum_url):
                        checksum_url = None
                    logger.info("Resolved %s from %s", coordinate, safe_url(artifact_url))
                    return ResolutionResult(
                        coordinate=coordinate,
                        artifact_url=artifact_url,
                        repository=repository,
                        base_url=base_url,
                        checksum_url=checksum_url,
                    )
        logger.warning(
            "No repository serves %s (tried %d repositories)",
            coordinate,
            len(dependency.repositories),
        )
        return None
