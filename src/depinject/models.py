"""Data model shared by every pipeline stage."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from .constants import Constants


class ExecutionMode(Enum):
    """Where injected code becomes visible."""

    ISOLATED = "isolated"
    APPENDING = "appending"


class ArtifactStage(Enum):
    """Lifecycle stage of a LocalArtifact."""

    DOWNLOADED = "downloaded"
    VERIFIED = "verified"
    RELOCATED = "relocated"


@dataclass(frozen=True)
class Coordinate:
    """Unique identifier of one dependency artifact."""

    group: str
    artifact: str
    version: str
    classifier: Optional[str] = None

    @classmethod
    def parse(cls, text: str) -> "Coordinate":
        """Parse ``group:artifact:version[:classifier]``.

        Args:
            text: Coordinate in Maven notation.

        Returns:
            Coordinate instance.

        Raises:
            ValueError: If the text has the wrong number of parts.
        """
        parts = [part.strip() for part in text.strip().split(":")]
        if len(parts) not in (3, 4) or not all(parts):
            raise ValueError(
                f"Invalid coordinate '{text}'. Expected 'group:artifact:version[:classifier]'."
            )
        return cls(*parts)

    @property
    def is_snapshot(self) -> bool:
        return self.version.endswith(Constants.SNAPSHOT_SUFFIX)

    def file_name(self, extension: str, version: Optional[str] = None) -> str:
        """Artifact file name, optionally with a concrete snapshot version."""
        base = f"{self.artifact}-{version or self.version}"
        if self.classifier:
            base = f"{base}-{self.classifier}"
        return f"{base}.{extension}"

    def path_segments(self) -> Tuple[str, ...]:
        """Repository directory segments: group path, artifact, version."""
        return (*self.group.split("."), self.artifact, self.version)

    def __str__(self) -> str:
        parts = [self.group, self.artifact, self.version]
        if self.classifier:
            parts.append(self.classifier)
        return ":".join(parts)


@dataclass(frozen=True)
class Repository:
    """A remote repository and its mirrors."""

    id: str
    url: str
    mirrors: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "url", _with_slash(self.url))
        object.__setattr__(self, "mirrors", tuple(_with_slash(m) for m in self.mirrors))


@dataclass(frozen=True)
class Relocation:
    """Rewrite of a dotted namespace prefix.

    ``includes``/``excludes`` are glob patterns over fully qualified names
    that narrow where the rule applies.
    """

    pattern: str
    replacement: str
    includes: Tuple[str, ...] = ()
    excludes: Tuple[str, ...] = ()

    def matches(self, name: str) -> bool:
        """Return True if ``name`` lies inside this rule's namespace."""
        if name != self.pattern and not name.startswith(self.pattern + "."):
            return False
        if self.includes and not any(fnmatch.fnmatchcase(name, p) for p in self.includes):
            return False
        return not any(fnmatch.fnmatchcase(name, p) for p in self.excludes)

    def apply(self, name: str) -> str:
        return self.replacement + name[len(self.pattern):]


@dataclass(frozen=True)
class Dependency:
    """A declared dependency, immutable once created."""

    coordinate: Coordinate
    checksum: Optional[str] = None
    relocations: Tuple[Relocation, ...] = ()
    repositories: Tuple[Repository, ...] = ()
    transitive: bool = True
    dependencies: Tuple["Dependency", ...] = ()
    extension: str = Constants.DEFAULT_EXTENSION

    def inherit(self, parent: "Dependency") -> "Dependency":
        """Fill empty repositories/relocations from a declaring parent."""
        return Dependency(
            coordinate=self.coordinate,
            checksum=self.checksum,
            relocations=self.relocations or parent.relocations,
            repositories=self.repositories or parent.repositories,
            transitive=self.transitive,
            dependencies=self.dependencies,
            extension=self.extension,
        )


@dataclass(frozen=True)
class ResolutionResult:
    coordinate: Coordinate
    artifact_url: str
    repository: Repository
    base_url: str
    checksum_url: Optional[str] = None


@dataclass(frozen=True)
class LocalArtifact:
    """Bytes on disk at one lifecycle stage."""

    coordinate: Coordinate
    path: Path
    content_hash: str
    stage: ArtifactStage = ArtifactStage.DOWNLOADED

    def at_stage(self, stage: ArtifactStage) -> "LocalArtifact":
        return LocalArtifact(self.coordinate, self.path, self.content_hash, stage)


@dataclass(frozen=True)
class InjectionTarget:
    artifacts: Tuple[LocalArtifact, ...]
    mode: ExecutionMode = ExecutionMode.APPENDING
    name: str = Constants.DEFAULT_APPLICATION_NAME
    paths: Tuple[Path, ...] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(a.path for a in self.artifacts))


def _with_slash(url: str) -> str:
    url = url.strip()
    return url if url.endswith("/") else url + "/"
