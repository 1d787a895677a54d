"""Cached dependency resolver driving the enquirer over the transitive closure."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from ..common.logging_utils import Timer, extra_context, is_debug_enabled
from ..constants import Constants
from ..errors import ResolutionFailed
from ..models import Coordinate, Dependency, ResolutionResult
from .enquirer import PingingRepositoryEnquirer

logger = logging.getLogger(__name__)


class DescriptorReader(Protocol):
    def read(self, dependency: Dependency, result: ResolutionResult) -> List[Dependency]: ...


@dataclass(frozen=True)
class _Entry:
    result: Optional[ResolutionResult]
    children: Tuple[Dependency, ...]


class CachingDependencyResolver:
    """Resolves each coordinate at most once for the process lifetime.

    The cache maps a coordinate to a future. The first task to ask for a
    coordinate installs the future under the lock and performs the network
    probe; concurrent askers block on the same future instead of probing
    again. Failed lookups are evicted so a later call may retry them.
    """

    def __init__(
        self,
        enquirer: PingingRepositoryEnquirer,
        descriptor_reader: Optional[DescriptorReader] = None,
        max_workers: int = Constants.MAX_WORKERS,
    ):
        self._enquirer = enquirer
        self._reader = descriptor_reader
        self._max_workers = max(int(max_workers), 1)
        self._lock = threading.Lock()
        self._cache: Dict[Coordinate, Future] = {}
        self.declarations: Dict[Coordinate, Dependency] = {}
        self.failures: List[Coordinate] = []

    def resolve_one(self, dependency: Dependency) -> Optional[ResolutionResult]:
        """Resolve a single dependency through the cache."""
        return self._entry(dependency).result

    def _entry(self, dependency: Dependency) -> _Entry:
        coordinate = dependency.coordinate
        with self._lock:
            future = self._cache.get(coordinate)
            owner = future is None
            if owner:
                future = Future()
                self._cache[coordinate] = future
        if not owner:
            return future.result()

        try:
            result = self._enquirer.locate(dependency)
            children: Tuple[Dependency, ...] = tuple(dependency.dependencies)
            if result is not None and dependency.transitive and self._reader is not None:
                children += tuple(self._reader.read(dependency, result))
        except BaseException as exc:
            with self._lock:
                self._cache.pop(coordinate, None)
            future.set_exception(exc)
            raise
        entry = _Entry(result, children)
        if result is None:
            with self._lock:
                self._cache.pop(coordinate, None)
        future.set_result(entry)
        return entry

    def resolve(
        self, dependencies: Iterable[Dependency], *, fail_fast: bool = True
    ) -> Dict[Coordinate, ResolutionResult]:
        """Resolve a dependency set and everything it transitively declares.

        Args:
            dependencies: Root dependencies.
            fail_fast: Raise if any coordinate cannot be located. When False
                the failures are logged, skipped and left in ``self.failures``.

        Returns:
            Mapping of every resolved coordinate to its result.

        Raises:
            ResolutionFailed: When ``fail_fast`` and a coordinate was not found.
        """
        results: Dict[Coordinate, ResolutionResult] = {}
        seen: Dict[Coordinate, Dependency] = {}
        failed: List[Coordinate] = []
        wave = self._claim(dependencies, seen)

        with Timer() as t, ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="depinject-resolve"
        ) as pool:
            while wave:
                entries = list(pool.map(self._entry, wave))
                discovered: List[Dependency] = []
                for dependency, entry in zip(wave, entries):
                    if entry.result is None:
                        failed.append(dependency.coordinate)
                        continue
                    results[dependency.coordinate] = entry.result
                    discovered.extend(child.inherit(dependency) for child in entry.children)
                wave = self._claim(discovered, seen)

        self.declarations = dict(seen)
        self.failures = failed
        if is_debug_enabled(logger):
            logger.debug(
                "Resolution finished",
                extra=extra_context(
                    event="resolve",
                    component="resolver",
                    resolved=len(results),
                    failed=len(failed),
                    duration_ms=t.duration_ms(),
                ),
            )
        if failed:
            if fail_fast:
                raise ResolutionFailed(failed)
            for coordinate in failed:
                logger.warning("Skipping unresolved dependency %s", coordinate)
        return results

    @staticmethod
    def _claim(candidates: Iterable[Dependency], seen: Dict[Coordinate, Dependency]) -> List[Dependency]:
        # First declaration of a coordinate wins; repeats and cycles are dropped here.
        claimed = []
        for dependency in candidates:
            if dependency.coordinate in seen:
                continue
            seen[dependency.coordinate] = dependency
            claimed.append(dependency)
        return claimed
