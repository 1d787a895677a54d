"""Path-resolution strategies for Maven-layout repositories.

A strategy turns (base URL, dependency) into the candidate artifact URLs to
probe, most preferred first.
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional, Protocol

from ..common.http_client import HttpClient
from ..constants import ChecksumAlgorithms, Constants
from ..models import Dependency

logger = logging.getLogger(__name__)


class PathResolutionStrategy(Protocol):
    def resolve(self, base_url: str, dependency: Dependency) -> List[str]: ...


def _directory_url(base_url: str, dependency: Dependency) -> str:
    return base_url + "/".join(dependency.coordinate.path_segments()) + "/"


class MavenPathStrategy:
    """Release layout: ``g/r/o/u/p/artifact/version/artifact-version[-classifier].ext``."""

    def resolve(self, base_url: str, dependency: Dependency) -> List[str]:
        coordinate = dependency.coordinate
        return [_directory_url(base_url, dependency) + coordinate.file_name(dependency.extension)]


class MavenSnapshotPathStrategy:
    """Timestamped snapshot layout read from the version's maven-metadata.xml."""

    def __init__(self, http: HttpClient):
        self._http = http

    def resolve(self, base_url: str, dependency: Dependency) -> List[str]:
        coordinate = dependency.coordinate
        if not coordinate.is_snapshot:
            return []
        directory = _directory_url(base_url, dependency)
        text = self._http.get_text(directory + Constants.MAVEN_METADATA_FILE)
        if not text:
            return []
        value = snapshot_version(text, dependency)
        if value is None:
            return []
        return [directory + coordinate.file_name(dependency.extension, version=value)]


class MediatingPathStrategy:
    """Release candidates first, then snapshot candidates."""

    def __init__(self, release: PathResolutionStrategy, snapshot: PathResolutionStrategy):
        self._release = release
        self._snapshot = snapshot

    def resolve(self, base_url: str, dependency: Dependency) -> List[str]:
        candidates = list(self._release.resolve(base_url, dependency))
        if dependency.coordinate.is_snapshot:
            for url in self._snapshot.resolve(base_url, dependency):
                if url not in candidates:
                    candidates.append(url)
        return candidates


class ChecksumPathStrategy:
    """Checksum sits next to the artifact with the algorithm as suffix."""

    def __init__(self, algorithm: str = Constants.DEFAULT_CHECKSUM_ALGORITHM):
        self.algorithm = ChecksumAlgorithms(algorithm.lower().replace("-", "")).value

    def checksum_url(self, artifact_url: str) -> str:
        return f"{artifact_url}.{self.algorithm}"


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for item in element:
        if _local(item.tag) == name:
            return item
    return None


def _text(element: Optional[ET.Element], name: str) -> Optional[str]:
    if element is None:
        return None
    node = _child(element, name)
    if node is None or node.text is None:
        return None
    return node.text.strip() or None


def snapshot_version(metadata_xml: str, dependency: Dependency) -> Optional[str]:
    """Concrete snapshot version (``1.0-20240101.120000-3``) from version metadata.

    Args:
        metadata_xml: Contents of the version-level maven-metadata.xml.
        dependency: Dependency whose extension/classifier select the entry.

    Returns:
        The timestamped version, or None if the metadata does not name one.
    """
    try:
        root = ET.fromstring(metadata_xml)
    except ET.ParseError as exc:
        logger.warning("Unparseable snapshot metadata for %s: %s", dependency.coordinate, exc)
        return None
    versioning = _child(root, "versioning")
    if versioning is None:
        return None

    versions = _child(versioning, "snapshotVersions")
    if versions is not None:
        for entry in versions:
            if _local(entry.tag) != "snapshotVersion":
                continue
            if (_text(entry, "extension") or "") != dependency.extension:
                continue
            if _text(entry, "classifier") != dependency.coordinate.classifier:
                continue
            value = _text(entry, "value")
            if value:
                return value

    snapshot = _child(versioning, "snapshot")
    timestamp = _text(snapshot, "timestamp")
    build = _text(snapshot, "buildNumber")
    if timestamp and build:
        base = dependency.coordinate.version[: -len(Constants.SNAPSHOT_SUFFIX)]
        return f"{base}-{timestamp}-{build}"
    return None
