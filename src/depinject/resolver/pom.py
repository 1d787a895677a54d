"""Read transitive dependencies declared in an artifact's POM."""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from ..common.http_client import HttpClient
from ..constants import Constants
from ..models import Coordinate, Dependency, ResolutionResult

logger = logging.getLogger(__name__)

_PROPERTY_RE = re.compile(r"\$\{([^}]+)\}")


def pom_url(result: ResolutionResult, dependency: Dependency) -> str:
    """POM URL next to the resolved artifact (classifier dropped, snapshot version kept)."""
    directory, name = result.artifact_url.rsplit("/", 1)
    stem = name[: -(len(dependency.extension) + 1)]
    classifier = dependency.coordinate.classifier
    if classifier and stem.endswith(f"-{classifier}"):
        stem = stem[: -(len(classifier) + 1)]
    return f"{directory}/{stem}.pom"


class PomDescriptorReader:
    """Fetches the POM of a resolved artifact and lists its runtime dependencies.

    A missing POM is not an error: many artifacts declare nothing.
    """

    def __init__(self, http: HttpClient):
        self._http = http

    def read(self, dependency: Dependency, result: ResolutionResult) -> List[Dependency]:
        text = self._http.get_text(pom_url(result, dependency))
        if not text:
            logger.debug("No POM for %s", dependency.coordinate)
            return []
        return parse_pom(text, dependency)


def _find(element: ET.Element, name: str) -> Optional[str]:
    node = element.find(f"{Constants.POM_NAMESPACE}{name}")
    if node is None:
        node = element.find(name)
    if node is None or node.text is None:
        return None
    return node.text.strip()


def _properties(root: ET.Element, parent: Dependency) -> Dict[str, str]:
    ns = Constants.POM_NAMESPACE
    props = {
        "project.version": _find(root, "version") or parent.coordinate.version,
        "project.groupId": _find(root, "groupId") or parent.coordinate.group,
        "project.artifactId": _find(root, "artifactId") or parent.coordinate.artifact,
    }
    parent_node = root.find(f"{ns}parent")
    if parent_node is None:
        parent_node = root.find("parent")
    if parent_node is not None:
        props["project.parent.version"] = _find(parent_node, "version") or ""
        props["project.parent.groupId"] = _find(parent_node, "groupId") or ""
        if _find(root, "groupId") is None and props["project.parent.groupId"]:
            props["project.groupId"] = props["project.parent.groupId"]
    for section in (root.find(f"{ns}properties"), root.find("properties")):
        if section is None:
            continue
        for prop in section:
            if prop.text is not None:
                props[prop.tag.rsplit("}", 1)[-1]] = prop.text.strip()
    return props


def _substitute(value: str, props: Dict[str, str]) -> Optional[str]:
    for _ in range(5):
        if "${" not in value:
            return value
        value = _PROPERTY_RE.sub(lambda m: props.get(m.group(1), m.group(0)), value)
    return None if "${" in value else value


def parse_pom(text: str, parent: Dependency) -> List[Dependency]:
    """Runtime dependencies declared by a POM.

    Args:
        text: POM XML.
        parent: Dependency the POM belongs to; its version backs
            ``${project.version}`` and its extension is the default type.

    Returns:
        Non-optional compile/runtime-scoped dependencies. Entries whose
        version cannot be resolved are skipped with a warning.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        logger.warning("Couldn't parse POM for %s: %s", parent.coordinate, exc)
        return []
    ns = Constants.POM_NAMESPACE
    props = _properties(root, parent)
    container = root.find(f"{ns}dependencies")
    if container is None:
        container = root.find("dependencies")
    if container is None:
        return []

    found: List[Dependency] = []
    for node in container:
        if node.tag.rsplit("}", 1)[-1] != "dependency":
            continue
        scope = _find(node, "scope") or "compile"
        if scope not in Constants.POM_SCOPES or (_find(node, "optional") or "").lower() == "true":
            continue
        group = _substitute(_find(node, "groupId") or "", props)
        artifact = _substitute(_find(node, "artifactId") or "", props)
        version = _substitute(_find(node, "version") or "", props)
        if not group or not artifact or not version:
            logger.warning(
                "Skipping dependency %s:%s of %s: version not resolvable",
                group, artifact, parent.coordinate,
            )
            continue
        found.append(
            Dependency(
                coordinate=Coordinate(group, artifact, version, _find(node, "classifier")),
                extension=_find(node, "type") or parent.extension,
            )
        )
    return found
