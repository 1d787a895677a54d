"""Dependency resolution: mirrors, path strategies, enquirer and cached resolver."""

from .enquirer import PingingRepositoryEnquirer
from .mirrors import MirrorSelector, SimpleMirrorSelector
from .pom import PomDescriptorReader, parse_pom
from .resolver import CachingDependencyResolver
from .strategy import (
    ChecksumPathStrategy,
    MavenPathStrategy,
    MavenSnapshotPathStrategy,
    MediatingPathStrategy,
)

__all__ = [
    "CachingDependencyResolver",
    "ChecksumPathStrategy",
    "MavenPathStrategy",
    "MavenSnapshotPathStrategy",
    "MediatingPathStrategy",
    "MirrorSelector",
    "PingingRepositoryEnquirer",
    "PomDescriptorReader",
    "SimpleMirrorSelector",
    "parse_pom",
]
