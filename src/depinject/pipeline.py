"""The resolution, verification, relocation and injection pipeline.

Collaborators are chosen once, when the :class:`Pipeline` is built, from the
settings plus any explicit replacements (tests swap in a fake HTTP client or
mirror selector). Per-coordinate stages run on a thread pool; the first
terminal failure stops the run.
"""
from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .common.http_client import HttpClient
from .common.logging_utils import Timer, extra_context, is_debug_enabled
from .config import Settings
from .downloader import URLDependencyDownloader
from .errors import VerificationFailed
from .injector import inject
from .models import Dependency, InjectionTarget, LocalArtifact, ResolutionResult
from .relocation import ArchiveRelocator, DistInfoMediator
from .resolver import (
    CachingDependencyResolver,
    ChecksumPathStrategy,
    MavenPathStrategy,
    MavenSnapshotPathStrategy,
    MediatingPathStrategy,
    MirrorSelector,
    PingingRepositoryEnquirer,
    PomDescriptorReader,
    SimpleMirrorSelector,
)
from .storage import StorageLayout
from .verify import ChecksumVerifier, PassthroughVerifier, RejectingVerifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedArtifact:
    """A dependency ready for injection."""

    dependency: Dependency
    result: ResolutionResult
    artifact: LocalArtifact


class Pipeline:
    """Single entry point wiring every stage together."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        http: Optional[HttpClient] = None,
        mirror_selector: Optional[MirrorSelector] = None,
        resolver: Optional[CachingDependencyResolver] = None,
        downloader: Optional[URLDependencyDownloader] = None,
        verifier: Optional[ChecksumVerifier] = None,
        relocator: Optional[ArchiveRelocator] = None,
        injector: Callable[[InjectionTarget], object] = inject,
    ):
        """Build the pipeline.

        Args:
            settings: Runtime settings; defaults to ``Settings()``.
            http: HTTP client shared by every network stage.
            mirror_selector: Orders a repository's base URLs.
            resolver: Replaces the cached resolver (and its enquirer).
            downloader: Replaces the downloader.
            verifier: Replaces the checksum verifier.
            relocator: Replaces the archive relocator.
            injector: Callable turning an InjectionTarget into a handle.
        """
        self.settings = settings or Settings()
        self._owns_http = http is None
        self.http = http or HttpClient(
            probe_timeout=self.settings.probe_timeout,
            fetch_timeout=self.settings.fetch_timeout,
            user_agent=self.settings.user_agent,
        )
        self.layout = StorageLayout(self.settings.storage_root)
        algorithm = self.settings.checksum_algorithm

        if resolver is None:
            enquirer = PingingRepositoryEnquirer(
                path_strategy=MediatingPathStrategy(
                    MavenPathStrategy(), MavenSnapshotPathStrategy(self.http)
                ),
                checksum_strategy=ChecksumPathStrategy(algorithm),
                http=self.http,
                mirror_selector=mirror_selector or SimpleMirrorSelector(),
            )
            reader = PomDescriptorReader(self.http) if self.settings.follow_poms else None
            resolver = CachingDependencyResolver(enquirer, reader, self.settings.max_workers)
        self.resolver = resolver
        self.downloader = downloader or URLDependencyDownloader(self.layout, self.http)
        if verifier is None:
            fallback = (
                RejectingVerifier() if self.settings.unverified_policy == "reject"
                else PassthroughVerifier()
            )
            verifier = ChecksumVerifier(self.layout, self.http, fallback, algorithm)
        self.verifier = verifier
        self.relocator = relocator or ArchiveRelocator(self.layout, DistInfoMediator())
        self._injector = injector

    def __enter__(self) -> "Pipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def prepare(self, dependencies: Iterable[Dependency]) -> List[PreparedArtifact]:
        """Resolve, download, verify and relocate without injecting.

        Returns:
            One PreparedArtifact per resolved coordinate, in resolution order.

        Raises:
            DepInjectError: The first terminal failure of any stage.
        """
        with Timer() as t:
            results = self.resolver.resolve(list(dependencies), fail_fast=True)
            plan: List[Tuple[Dependency, ResolutionResult]] = [
                (self.resolver.declarations[coordinate], result)
                for coordinate, result in results.items()
            ]
            prepared = self._process_all(plan)
        logger.info("Prepared %d artifacts", len(prepared))
        if is_debug_enabled(logger):
            logger.debug(
                "Pipeline prepared",
                extra=extra_context(
                    event="prepare",
                    component="pipeline",
                    outcome="success",
                    count=len(prepared),
                    duration_ms=t.duration_ms(),
                ),
            )
        return prepared

    def run(self, dependencies: Iterable[Dependency]):
        """Run every stage and inject the result.

        Returns:
            The injection handle (AppendingContext or IsolatedContext).

        Raises:
            DepInjectError: The first terminal failure of any stage.
        """
        prepared = self.prepare(dependencies)
        target = InjectionTarget(
            artifacts=tuple(p.artifact for p in prepared),
            mode=self.settings.mode,
            name=self.settings.application_name,
        )
        return self._injector(target)

    def _process_all(self, plan: List[Tuple[Dependency, ResolutionResult]]) -> List[PreparedArtifact]:
        if not plan:
            return []
        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="depinject-fetch"
        ) as pool:
            futures = [pool.submit(self._process, dependency, result) for dependency, result in plan]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in pending:
                future.cancel()
            # Re-raise the failure of the earliest-declared coordinate.
            for future in futures:
                if future in done and future.exception() is not None:
                    raise future.exception()
        return [future.result() for future in futures]

    def _process(self, dependency: Dependency, result: ResolutionResult) -> PreparedArtifact:
        cached = self.layout.download_path(dependency).exists()
        artifact = self.downloader.fetch(dependency, result)
        try:
            verified = self.verifier.verify(artifact, dependency, result)
        except VerificationFailed as exc:
            if not cached:
                raise
            logger.warning("Cached %s failed verification (%s); downloading again", dependency.coordinate, exc)
            self.downloader.discard(artifact)
            artifact = self.downloader.fetch(dependency, result, refresh=True)
            verified = self.verifier.verify(artifact, dependency, result)
        relocated = self.relocator.relocate(verified, dependency.relocations)
        return PreparedArtifact(dependency, result, relocated)


def load(dependencies: Iterable[Dependency], settings: Optional[Settings] = None):
    """Resolve, fetch, verify, relocate and inject ``dependencies`` in one call."""
    with Pipeline(settings) as pipeline:
        return pipeline.run(dependencies)


def describe(prepared: Iterable[PreparedArtifact]) -> List[Dict[str, object]]:
    """JSON-friendly summary of prepared artifacts."""
    return [
        {
            "coordinate": str(p.dependency.coordinate),
            "url": p.result.artifact_url,
            "repository": p.result.repository.id,
            "path": str(p.artifact.path),
            "sha256": p.artifact.content_hash,
            "stage": p.artifact.stage.value,
        }
        for p in prepared
    ]


__all__ = ["Pipeline", "PreparedArtifact", "describe", "load"]
