"""Dependency descriptor loading (YAML or JSON).

Shape::

    repositories:
      - {id: central, url: https://repo1.maven.org/maven2/, mirrors: [...]}
    relocations:
      - {pattern: six, replacement: myapp_libs.six}
    dependencies:
      - coordinate: "org.example:six:1.16.0"
        checksum: "sha256:..."
        dependencies: [...]

Maven-style keys (``groupId``/``artifactId``/``version``/``classifier``,
``originalPackagePattern``/``relocatedPattern``, ``include``/``exclude``)
are accepted too. Top-level repositories and relocations apply to every
dependency that declares none of its own; without any repository, Maven
Central is used.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import yaml

from .constants import Constants
from .errors import DescriptorError
from .models import Coordinate, Dependency, Relocation, Repository

logger = logging.getLogger(__name__)


def _first(item: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return default


def _strings(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_repository(item: Any, index: int = 0) -> Repository:
    if isinstance(item, str):
        return Repository(id=f"repository-{index}", url=item)
    if not isinstance(item, dict) or not _first(item, "url"):
        raise DescriptorError(f"repository #{index} needs a url")
    return Repository(
        id=str(_first(item, "id", "name", default=f"repository-{index}")),
        url=str(item["url"]),
        mirrors=_strings(_first(item, "mirrors")),
    )


def parse_relocation(item: Any) -> Relocation:
    if not isinstance(item, dict):
        raise DescriptorError(f"relocation must be a mapping, got {item!r}")
    pattern = _first(item, "pattern", "originalPackagePattern")
    replacement = _first(item, "replacement", "relocatedPattern")
    if not pattern or not replacement:
        raise DescriptorError(f"relocation needs pattern and replacement: {item!r}")
    return Relocation(
        pattern=str(pattern),
        replacement=str(replacement),
        includes=_strings(_first(item, "includes", "include")),
        excludes=_strings(_first(item, "excludes", "exclude")),
    )


def _coordinate(item: Any) -> Coordinate:
    try:
        if isinstance(item, str):
            return Coordinate.parse(item)
        if "coordinate" in item:
            return Coordinate.parse(str(item["coordinate"]))
        group = _first(item, "group", "groupId")
        artifact = _first(item, "artifact", "artifactId")
        version = _first(item, "version")
    except ValueError as exc:
        raise DescriptorError(str(exc)) from exc
    if not group or not artifact or not version:
        raise DescriptorError(f"dependency needs group, artifact and version: {item!r}")
    classifier = _first(item, "classifier")
    return Coordinate(str(group), str(artifact), str(version), str(classifier) if classifier else None)


def parse_dependency(
    item: Any,
    repositories: Sequence[Repository] = (),
    relocations: Sequence[Relocation] = (),
) -> Dependency:
    """Build a Dependency from one descriptor entry, nested entries included."""
    if not isinstance(item, (str, dict)):
        raise DescriptorError(f"dependency must be a string or mapping, got {item!r}")
    coordinate = _coordinate(item)
    if isinstance(item, str):
        return Dependency(
            coordinate=coordinate,
            repositories=tuple(repositories),
            relocations=tuple(relocations),
        )
    own_repos = tuple(
        parse_repository(r, i) for i, r in enumerate(_first(item, "repositories", default=[]))
    )
    own_rules = tuple(parse_relocation(r) for r in _first(item, "relocations", default=[]))
    repos = own_repos or tuple(repositories)
    rules = own_rules or tuple(relocations)
    children = tuple(
        parse_dependency(child, repos, rules)
        for child in _first(item, "dependencies", "transitiveDependencies", default=[])
    )
    return Dependency(
        coordinate=coordinate,
        checksum=_first(item, "checksum"),
        relocations=rules,
        repositories=repos,
        transitive=bool(_first(item, "transitive", default=True)),
        dependencies=children,
        extension=str(_first(item, "extension", "type", default=Constants.DEFAULT_EXTENSION)),
    )


def parse_descriptor(data: Any) -> List[Dependency]:
    """Parse an already-loaded descriptor document."""
    if not isinstance(data, dict):
        raise DescriptorError("descriptor must be a mapping")
    repositories = [parse_repository(r, i) for i, r in enumerate(data.get("repositories") or [])]
    if not repositories:
        repositories = [Repository(id="central", url=Constants.REPOSITORY_URL_CENTRAL)]
    relocations = [parse_relocation(r) for r in data.get("relocations") or []]
    return [parse_dependency(d, repositories, relocations) for d in data.get("dependencies") or []]


def load_descriptor(path: Path) -> List[Dependency]:
    """Load dependencies from a YAML or JSON descriptor file.

    Raises:
        DescriptorError: If the file cannot be read or understood.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise DescriptorError(f"cannot read descriptor {path}: {exc}") from exc
    try:
        data: Dict[str, Any] = json.loads(text) if str(path).endswith(".json") else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise DescriptorError(f"cannot parse descriptor {path}: {exc}") from exc
    dependencies = parse_descriptor(data or {})
    logger.info("Loaded %d dependencies from %s", len(dependencies), path)
    return dependencies
